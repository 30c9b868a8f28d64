"""
Rate Management System (RMS) connector.

Stands in for the carrier rate feeds: a fixed per-route cost table, a set of
percentage surcharges and per-forwarder contract adjustments. Route keys are
directional ("A-B" and "B-A" are priced separately).
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping, Optional

from schemas import CostData
from utils import Clock, round_money, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteCost:
    distance: float  # km
    per_km: float
    per_ton: float
    per_cubic_meter: float


@dataclass(frozen=True)
class SurchargeRates:
    fuel: float = 0.08
    security: float = 0.02
    hazardous: float = 0.15
    refrigerated: float = 0.12
    heavy_cargo: float = 0.05
    express: float = 0.20


DEFAULT_ROUTE = "default"

BASE_COSTS: Mapping[str, RouteCost] = MappingProxyType({
    "Shanghai-Los Angeles": RouteCost(10000, 0.15, 1200, 80),
    "Los Angeles-Shanghai": RouteCost(10000, 0.12, 1000, 70),
    "Hamburg-New York": RouteCost(6000, 0.18, 1400, 90),
    "New York-Hamburg": RouteCost(6000, 0.16, 1300, 85),
    "Singapore-Rotterdam": RouteCost(12000, 0.14, 1100, 75),
    DEFAULT_ROUTE: RouteCost(8000, 0.16, 1200, 80),
})

FORWARDER_ADJUSTMENTS: Mapping[str, float] = MappingProxyType({
    "forwarder-001": 0.95,  # volume discount
    "forwarder-002": 1.0,
    "forwarder-003": 1.05,  # premium service
})

HEAVY_CARGO_KG = 1000
QUOTE_VALIDITY = timedelta(hours=24)


def route_key(origin: str, destination: str) -> str:
    return f"{origin}-{destination}"


class RMSConnector:
    def __init__(self,
                 rng: Optional[random.Random] = None,
                 clock: Clock = utcnow,
                 base_costs: Mapping[str, RouteCost] = BASE_COSTS,
                 surcharges: SurchargeRates = SurchargeRates(),
                 forwarder_adjustments: Mapping[str, float] = FORWARDER_ADJUSTMENTS,
                 simulate_latency: bool = True):
        self.rng = rng or random.Random()
        self.clock = clock
        self.base_costs = base_costs
        self.surcharges = surcharges
        self.forwarder_adjustments = forwarder_adjustments
        self.simulate_latency = simulate_latency
        self.last_refresh = clock()

    async def get_cost_data(self, origin: str, destination: str, cargo_type: Optional[str],
                            weight: float, volume: float, service_type: Optional[str],
                            forwarder_id: Optional[str]) -> CostData:
        logger.info("RMS: fetching cost data for %s to %s", origin, destination)
        await self._simulate_api_delay()

        base_cost = self.calculate_base_cost(origin, destination, weight, volume)
        surcharges = self.calculate_surcharges(cargo_type, weight, service_type, base_cost)
        adjusted_base = round_money(base_cost * self.get_forwarder_adjustment(forwarder_id))

        now = self.clock()
        return CostData(
            base_cost=adjusted_base,
            surcharges=surcharges,
            total_cost=round_money(adjusted_base + surcharges),
            currency="USD",
            route=route_key(origin, destination),
            forwarder_id=forwarder_id,
            timestamp=now,
            valid_until=now + QUOTE_VALIDITY,
        )

    def calculate_base_cost(self, origin: str, destination: str, weight: float, volume: float) -> float:
        """Distance + weight + volume cost for the route, with a ±10% market jitter."""
        costs = self.base_costs.get(route_key(origin, destination)) or self.base_costs[DEFAULT_ROUTE]

        distance_cost = costs.distance * costs.per_km
        weight_cost = (weight / 1000) * costs.per_ton
        volume_cost = volume * costs.per_cubic_meter

        variation = self.rng.uniform(0.9, 1.1)
        return round_money((distance_cost + weight_cost + volume_cost) * variation)

    def calculate_surcharges(self, cargo_type: Optional[str], weight: float,
                             service_type: Optional[str], base_cost: float) -> float:
        """Sum of the applicable surcharge fractions of base_cost (not compounded)."""
        rates = self.surcharges
        fraction = rates.fuel + rates.security
        if cargo_type == "hazardous":
            fraction += rates.hazardous
        if cargo_type == "refrigerated":
            fraction += rates.refrigerated
        if weight > HEAVY_CARGO_KG:
            fraction += rates.heavy_cargo
        if service_type == "express":
            fraction += rates.express
        return round_money(base_cost * fraction)

    def get_forwarder_adjustment(self, forwarder_id: Optional[str]) -> float:
        return self.forwarder_adjustments.get(forwarder_id or "", 1.0)

    async def refresh_cost_data(self) -> dict:
        logger.info("RMS: refreshing cost data")
        self.last_refresh = self.clock()
        return {"success": True, "timestamp": self.last_refresh}

    async def _simulate_api_delay(self):
        if self.simulate_latency:
            await asyncio.sleep(self.rng.uniform(0.05, 0.2))
