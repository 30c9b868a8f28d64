"""
API and Domain Schemas for the FreightIQ quoting service

Wire format is camelCase (the web client posts `cargoType`, `forwarderId`, ...),
while the Python side uses snake_case attributes. Every model accepts both.
"""
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=_to_camel, populate_by_name=True, protected_namespaces=())


# --------- Request bodies ---------

class QuoteRequest(CamelModel):
    # Only origin, destination, cargo_type and weight are required, and that is
    # checked by the endpoint so it can answer 400 instead of 422.
    origin: Optional[str] = None
    destination: Optional[str] = None
    cargo_type: Optional[str] = Field(None, description="general, hazardous, refrigerated, oversized, fragile or high-value; unknown values price neutrally")
    weight: Optional[float] = Field(None, gt=0, allow_inf_nan=False, description="Kilograms")
    volume: Optional[float] = Field(None, ge=0, allow_inf_nan=False, description="Cubic meters")
    service_type: Optional[str] = Field("standard", description="standard, express, economy or premium")
    customer_id: Optional[str] = None
    forwarder_id: Optional[str] = None

    def missing_fields(self) -> List[str]:
        required = {
            "origin": self.origin,
            "destination": self.destination,
            "cargoType": self.cargo_type,
            "weight": self.weight,
        }
        return [name for name, value in required.items() if not value]


class BookingRequest(CamelModel):
    request_id: Optional[str] = None
    booking_id: Optional[str] = None
    customer_id: Optional[str] = None
    forwarder_id: Optional[str] = None
    final_price: Optional[float] = None


class DeclineRequest(CamelModel):
    request_id: Optional[str] = None
    reason: Optional[str] = None
    customer_id: Optional[str] = None
    forwarder_id: Optional[str] = None


# --------- Collaborator outputs ---------

class CostData(CamelModel):
    base_cost: float
    surcharges: float
    total_cost: float
    currency: Literal["USD"] = "USD"
    route: str
    forwarder_id: Optional[str] = None
    timestamp: datetime
    valid_until: datetime


class WeatherImpact(CamelModel):
    event: Literal["normal", "storm", "fog", "ice"]
    impact: float


class EconomicIndicators(CamelModel):
    gdp_growth: float
    inflation: float
    trade_volume: float
    currency_strength: float


class MarketConditions(CamelModel):
    congestion: float = Field(..., ge=0, le=1)
    bunker_fuel: float
    shanghai_index: float
    port_delays: float = Field(..., description="Hours")
    weather_impact: WeatherImpact
    economic_indicators: EconomicIndicators


class MarketData(CamelModel):
    competitiveness_index: float = Field(..., ge=0, le=1)
    adjustment: float
    volatility: float = Field(..., ge=0.05, le=0.5)
    route_popularity: float = Field(..., ge=0, le=1)
    congestion_level: float
    bunker_fuel_price: float
    shanghai_index: float
    historical_volatility: float
    data_quality: float = Field(..., ge=0.5, le=1)
    port_delays: float
    weather_impact: WeatherImpact
    economic_indicators: EconomicIndicators
    timestamp: datetime


# --------- Prediction ---------

class ConfidenceBand(CamelModel):
    lower: float
    upper: float
    percentage: int


class MarginRange(CamelModel):
    absolute: float
    percentage: float
    min_margin: float
    max_margin: float


class Prediction(CamelModel):
    price: float
    confidence: float = Field(..., ge=0.5, le=0.95)
    confidence_band: ConfidenceBand
    margin_range: MarginRange
    ml_adjustment: float
    model_version: str
    processing_time: datetime


# --------- Responses ---------

class PriceBreakdown(CamelModel):
    base_cost: float
    surcharges: float
    market_adjustment: float
    ml_prediction: float


class QuoteResponse(CamelModel):
    request_id: str
    predicted_price: float
    confidence_score: float
    confidence_band: ConfidenceBand
    margin_range: MarginRange
    breakdown: PriceBreakdown
    model_version: str
    timestamp: datetime


class BookingResponse(CamelModel):
    success: bool
    message: str
    booking_id: str
    timestamp: datetime


class DeclineResponse(CamelModel):
    success: bool
    message: str
    timestamp: datetime


class HealthResponse(CamelModel):
    status: str
    service: str
    timestamp: datetime


# --------- Persisted documents ---------

class TrainingEvent(CamelModel):
    """One booking or decline, stored verbatim apart from the fields added here."""
    model_config = ConfigDict(extra="allow")

    id: str
    type: Literal["booking", "decline"]
    request_id: str
    customer_id: Optional[str] = None
    forwarder_id: Optional[str] = None
    logged_at: datetime


class TrainingData(CamelModel):
    bookings: List[TrainingEvent] = Field(default_factory=list)
    declines: List[TrainingEvent] = Field(default_factory=list)
    last_updated: Optional[datetime] = None


class AnalyticsSnapshot(CamelModel):
    total_requests: int = 0
    total_bookings: int = 0
    total_declines: int = 0
    win_rate: float = 0
    average_confidence: float = 0
    last_updated: Optional[datetime] = None


class ModelPerformance(CamelModel):
    accuracy: float
    precision: float
    recall: float


class AnalyticsResponse(AnalyticsSnapshot):
    recent_win_rate: float
    recent_bookings: int
    recent_declines: int
    total_recent_requests: int
    model_performance: ModelPerformance


class TrainingDataResponse(CamelModel):
    bookings: List[TrainingEvent]
    declines: List[TrainingEvent]
    total_records: int
    date_range: Optional[Dict[str, datetime]] = None
    generated_at: datetime


class RetrainResponse(CamelModel):
    success: bool
    records_processed: int
    model_version: str
    timestamp: datetime
