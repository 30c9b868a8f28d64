"""
Unit Tests for the LCI market signal generator
"""
import asyncio
import math
import random
from datetime import datetime, timezone

import pytest

from lci_connector import LCIConnector, RouteProfile
from utils import round_money

from tests.conftest import FakeClock, FixedRandom

SEASON = math.sin(74 / 365 * 2 * math.pi)  # 2026-03-15 is day 74


def fetch(lci, origin="Shanghai", destination="Los Angeles"):
    return asyncio.run(lci.get_market_data(origin, destination, "general"))


class TestMarketConditions:

    def test_business_hours_congestion(self, lci):
        # 0.3 base + 0.2 business hours + 0.15 noise
        assert lci.get_current_market_conditions().congestion == pytest.approx(0.65)

    def test_off_hours_congestion(self, rng):
        night = FakeClock(datetime(2026, 3, 15, 3, 0, tzinfo=timezone.utc))
        lci = LCIConnector(rng=rng, clock=night, simulate_latency=False)
        assert lci.get_current_market_conditions().congestion == pytest.approx(0.45)

    def test_fuel_and_index_follow_season(self, lci):
        conditions = lci.get_current_market_conditions()
        assert conditions.bunker_fuel == pytest.approx(round_money(450 + 50 * SEASON))
        assert conditions.shanghai_index == pytest.approx(round_money(1200 + 200 * SEASON))

    def test_port_delays(self, lci):
        assert lci.get_current_market_conditions().port_delays == pytest.approx(2 + 0.65 * 8)

    def test_congestion_never_exceeds_one(self, clock):
        lci = LCIConnector(rng=random.Random(7), clock=clock, simulate_latency=False)
        for _ in range(200):
            assert 0.0 <= lci.get_current_market_conditions().congestion <= 1.0


class TestMarketData:

    def test_busy_lane(self, lci):
        data = fetch(lci)
        # 0.5 + 0.9*0.3 - 0.65*0.2 + 0.2 (high competition) + 0 noise
        assert data.competitiveness_index == pytest.approx(0.84)
        assert data.volatility == pytest.approx(0.15 + 0.025)
        assert data.route_popularity == 0.9
        assert data.historical_volatility == 0.15
        assert data.data_quality == pytest.approx(0.89)

    def test_adjustment_formula(self, lci):
        data = fetch(lci)
        expected = (-(0.84 - 0.5) * 0.2 + 0.65 * 0.15
                    + (data.bunker_fuel_price - 450) / 450 * 0.1
                    + (data.shanghai_index - 1200) / 1200 * 0.05)
        assert data.adjustment == pytest.approx(expected, abs=0.001)
        assert round(data.adjustment, 3) == data.adjustment

    def test_default_lane(self, lci):
        data = fetch(lci, "Oslo", "Lagos")
        assert data.competitiveness_index == pytest.approx(0.5 + 0.18 - 0.13 + 0.1)
        assert data.volatility == pytest.approx(0.25 + 0.025)
        assert data.route_popularity == 0.6

    def test_volatility_is_capped(self, clock):
        routes = {"default": RouteProfile(0.3, 0.48, "low", "low")}
        lci = LCIConnector(rng=FixedRandom(0.99), clock=clock, routes=routes, simulate_latency=False)
        # congestion 0.797 and unpopular lane push it past 0.5
        assert fetch(lci).volatility == 0.5

    def test_ranges_hold_for_random_sampling(self, clock):
        lci = LCIConnector(rng=random.Random(3), clock=clock, simulate_latency=False)
        for origin, destination in [("Shanghai", "Los Angeles"), ("Singapore", "Rotterdam"), ("A", "B")]:
            for _ in range(50):
                data = fetch(lci, origin, destination)
                assert 0.0 <= data.competitiveness_index <= 1.0
                assert 0.05 <= data.volatility <= 0.5
                assert 0.5 <= data.data_quality <= 1.0


class TestDefaultClock:

    def test_collaborators_run_on_utc(self):
        """Business hours and seasons are read from a UTC clock by default."""
        from engine import FreightIQEngine

        assert LCIConnector(simulate_latency=False).clock().tzinfo == timezone.utc
        assert FreightIQEngine(simulate_latency=False).clock().tzinfo == timezone.utc
