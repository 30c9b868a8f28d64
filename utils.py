import math
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def round_money(value: float, places: int = 2) -> float:
    """Round half up at the given decimal place (cents by default)."""
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
