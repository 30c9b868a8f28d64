"""
FreightIQ pricing engine.

Turns RMS cost data and LCI market data into a quoted price, a confidence
score, a confidence band and a margin range. Given its inputs and the clock
(seasonality) every step is deterministic; all randomness lives upstream in
the connectors.
"""
import asyncio
import logging
import random
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from rms_connector import HEAVY_CARGO_KG
from schemas import ConfidenceBand, CostData, MarginRange, MarketData, Prediction
from utils import Clock, clamp, round_money, utcnow

logger = logging.getLogger(__name__)

MODEL_VERSION = "1.0.0"

CARGO_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "general": 1.0,
    "hazardous": 1.3,
    "refrigerated": 1.2,
    "oversized": 1.4,
    "fragile": 1.1,
})

SERVICE_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "standard": 1.0,
    "express": 1.3,
    "economy": 0.8,
    "premium": 1.5,
})

# Insertion order matters: the tier is picked by position
CUSTOMER_TIERS: Mapping[str, float] = MappingProxyType({
    "premium": 1.0,
    "standard": 0.95,
    "volume": 0.9,
    "new": 1.05,
})

# January first
SEASONAL_ADJUSTMENTS: Sequence[float] = (0.05, 0.02, 0.0, -0.02, 0.0, 0.03, 0.08, 0.1, 0.05, 0.0, -0.02, 0.03)

VERY_HEAVY_CARGO_KG = 2000
BULKY_CARGO_CBM = 50

BASE_CONFIDENCE = 0.8
MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95


class FreightIQEngine:
    def __init__(self,
                 clock: Clock = utcnow,
                 rng: Optional[random.Random] = None,
                 simulate_latency: bool = True):
        self.clock = clock
        self.rng = rng or random.Random()
        self.simulate_latency = simulate_latency
        self.model_version = MODEL_VERSION
        self.last_training_date = clock()

    async def predict_optimal_price(self, cost_data: CostData, market_data: MarketData,
                                    cargo_type: Optional[str], weight: float, volume: float,
                                    service_type: Optional[str], customer_id: Optional[str],
                                    forwarder_id: Optional[str],
                                    request_id: Optional[str] = None) -> Prediction:
        logger.info("FreightIQ: processing prediction for request %s", request_id)
        await self._simulate_processing_delay()

        base = self.calculate_base_prediction(cost_data, market_data, cargo_type,
                                              weight, volume, service_type)
        price = self.apply_optimization(base, customer_id, market_data)
        confidence = self.calculate_confidence_score(market_data, cargo_type, weight)

        return Prediction(
            price=price,
            confidence=confidence,
            confidence_band=self.generate_confidence_band(price, confidence),
            margin_range=self.calculate_margin_range(price, cost_data.base_cost),
            ml_adjustment=round_money(price - cost_data.base_cost),
            model_version=self.model_version,
            processing_time=self.clock(),
        )

    @staticmethod
    def calculate_base_prediction(cost_data: CostData, market_data: MarketData,
                                  cargo_type: Optional[str], weight: float, volume: float,
                                  service_type: Optional[str]) -> float:
        price = cost_data.base_cost
        price *= CARGO_MULTIPLIERS.get(cargo_type or "", 1.0)
        if weight > HEAVY_CARGO_KG:
            price *= 1.1
        if volume > BULKY_CARGO_CBM:
            price *= 1.05
        price *= SERVICE_MULTIPLIERS.get(service_type or "", 1.0)
        price *= 1 + market_data.adjustment
        price += cost_data.surcharges
        return round_money(price)

    def apply_optimization(self, base_prediction: float, customer_id: Optional[str],
                           market_data: MarketData) -> float:
        """Customer tier, lane competitiveness and seasonality applied to the base prediction."""
        price = base_prediction * self.get_customer_multiplier(customer_id)
        price *= 1 + market_data.competitiveness_index * 0.1
        price *= 1 + self.get_seasonal_adjustment()
        return round_money(price)

    @staticmethod
    def calculate_confidence_score(market_data: MarketData, cargo_type: Optional[str],
                                   weight: float) -> float:
        confidence = BASE_CONFIDENCE
        if market_data.volatility > 0.3:
            confidence -= 0.1
        if cargo_type in ("hazardous", "oversized"):
            confidence -= 0.05
        if weight > VERY_HEAVY_CARGO_KG:
            confidence -= 0.05
        if market_data.route_popularity > 0.7:
            confidence += 0.05
        return clamp(confidence, MIN_CONFIDENCE, MAX_CONFIDENCE)

    @staticmethod
    def generate_confidence_band(price: float, confidence: float) -> ConfidenceBand:
        band = (1 - confidence) * 0.3
        return ConfidenceBand(
            lower=round_money(price * (1 - band)),
            upper=round_money(price * (1 + band)),
            percentage=int(round_money(band * 100, places=0)),
        )

    @staticmethod
    def calculate_margin_range(price: float, base_cost: float) -> MarginRange:
        """Point margin over base cost with a fixed ±20% window around it."""
        margin = price - base_cost
        percentage = margin / base_cost * 100 if base_cost else 0.0
        return MarginRange(
            absolute=round_money(margin),
            percentage=round_money(percentage),
            min_margin=round_money(margin * 0.8),
            max_margin=round_money(margin * 1.2),
        )

    @staticmethod
    def get_customer_multiplier(customer_id: Optional[str]) -> float:
        # Tier comes from the id length, not the customer record
        tiers = list(CUSTOMER_TIERS)
        tier = tiers[len(customer_id or "") % len(tiers)]
        return CUSTOMER_TIERS[tier]

    def get_seasonal_adjustment(self) -> float:
        return SEASONAL_ADJUSTMENTS[self.clock().month - 1]

    async def update_model(self, training_data: dict) -> dict:
        logger.info("FreightIQ: updating model with %s training records",
                    training_data.get("recordsProcessed", 0))
        self.last_training_date = self.clock()
        return {"success": True, "modelVersion": self.model_version}

    async def _simulate_processing_delay(self):
        if self.simulate_latency:
            await asyncio.sleep(self.rng.uniform(0.1, 0.5))
