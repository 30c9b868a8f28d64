"""
Runtime configuration for the FreightIQ API.

Everything is read from environment variables so the service can be started
with plain `uvicorn main:app` or `python main.py`.
"""
import os
import random
from dataclasses import dataclass, field
from typing import List, Optional


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    data_dir: str = "data"
    host: str = "0.0.0.0"
    port: int = 5001
    simulate_latency: bool = True
    random_seed: Optional[int] = None
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    def make_random(self) -> random.Random:
        # None seeds from system entropy
        return random.Random(self.random_seed)


def get_settings() -> Settings:
    seed = os.getenv("FREIGHTIQ_RANDOM_SEED")
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        data_dir=os.getenv("FREIGHTIQ_DATA_DIR", "data"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", 5001)),
        simulate_latency=_as_bool(os.getenv("FREIGHTIQ_SIMULATE_LATENCY"), True),
        random_seed=int(seed) if seed else None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
    )
