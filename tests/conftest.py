"""
Shared fixtures: a pinned random source and a settable clock make every
calculation in the pricing chain reproducible.
"""
import random
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from database import TrainingStore
from engine import FreightIQEngine
from lci_connector import LCIConnector
from main import create_app
from rms_connector import RMSConnector
from schemas import CostData, EconomicIndicators, MarketData, WeatherImpact
from settings import Settings

# A Sunday in March: seasonal adjustment 0.0, inside business hours
FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FixedRandom(random.Random):
    """random() always returns `value`, so uniform(a, b) is a + (b - a) * value."""

    def __init__(self, value: float = 0.5):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_cost_data(base_cost: float = 1000.0, surcharges: float = 100.0) -> CostData:
    return CostData(
        base_cost=base_cost,
        surcharges=surcharges,
        total_cost=base_cost + surcharges,
        route="Test-Route",
        forwarder_id=None,
        timestamp=FIXED_NOW,
        valid_until=FIXED_NOW,
    )


def make_market_data(**overrides) -> MarketData:
    fields = dict(
        competitiveness_index=0.5,
        adjustment=0.0,
        volatility=0.2,
        route_popularity=0.6,
        congestion_level=0.5,
        bunker_fuel_price=450.0,
        shanghai_index=1200.0,
        historical_volatility=0.2,
        data_quality=0.8,
        port_delays=6.0,
        weather_impact=WeatherImpact(event="normal", impact=0.0),
        economic_indicators=EconomicIndicators(
            gdp_growth=2.5, inflation=2.0, trade_volume=1.0, currency_strength=0.5,
        ),
        timestamp=FIXED_NOW,
    )
    fields.update(overrides)
    return MarketData(**fields)


@pytest.fixture
def rng():
    return FixedRandom()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rms(rng, clock):
    return RMSConnector(rng=rng, clock=clock, simulate_latency=False)


@pytest.fixture
def lci(rng, clock):
    return LCIConnector(rng=rng, clock=clock, simulate_latency=False)


@pytest.fixture
def engine(clock):
    return FreightIQEngine(clock=clock, simulate_latency=False)


@pytest.fixture
def store(tmp_path, rng, clock):
    return TrainingStore(str(tmp_path), rng=rng, clock=clock)


@pytest.fixture
def client(tmp_path, rng, clock):
    config = Settings(data_dir=str(tmp_path), simulate_latency=False)
    return TestClient(create_app(config, rng=rng, clock=clock))
