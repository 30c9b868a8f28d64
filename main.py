import logging
import random
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from database import TrainingStore
from engine import FreightIQEngine
from lci_connector import LCIConnector
from rms_connector import RMSConnector
from schemas import (AnalyticsResponse, BookingRequest, BookingResponse, DeclineRequest,
                     DeclineResponse, HealthResponse, PriceBreakdown, QuoteRequest, QuoteResponse,
                     RetrainResponse, TrainingDataResponse)
from settings import Settings, get_settings
from utils import Clock, utcnow

settings = get_settings()

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s [%(name)s] - %(message)s")
logger = logging.getLogger(__name__)

SERVICE_NAME = "FreightIQ API"

router = APIRouter(prefix="/api")

# --------- Helper functions ---------

def _bad_request(error: str, message: Optional[str] = None) -> JSONResponse:
    content = {"error": error}
    if message is not None:
        content["message"] = message
    return JSONResponse(status_code=400, content=content)


def _server_error(exc: Exception, context: str) -> JSONResponse:
    logger.exception("Error %s", context)
    return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(exc)})


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if all(err["loc"] and err["loc"][0] == "body" for err in errors):
        return _bad_request("Invalid request body", str(errors))
    return _bad_request("Invalid request", str(errors))

# --------- Health ---------

@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="healthy", service=SERVICE_NAME, timestamp=utcnow())

# --------- Quote Endpoints ---------

@router.post("/predict-rate", response_model=QuoteResponse)
async def predict_rate(payload: QuoteRequest, request: Request):
    if payload.missing_fields():
        return _bad_request("Missing required fields: origin, destination, cargoType, weight")

    state = request.app.state
    request_id = str(uuid.uuid4())
    volume = payload.volume or 0.0
    logger.info("Processing rate request %s for %s to %s", request_id, payload.origin, payload.destination)

    try:
        cost_data = await state.rms.get_cost_data(
            payload.origin, payload.destination, payload.cargo_type, payload.weight,
            volume, payload.service_type, payload.forwarder_id,
        )
        market_data = await state.lci.get_market_data(payload.origin, payload.destination, payload.cargo_type)
        prediction = await state.engine.predict_optimal_price(
            cost_data, market_data, payload.cargo_type, payload.weight, volume,
            payload.service_type, payload.customer_id, payload.forwarder_id,
            request_id=request_id,
        )
    except Exception as e:
        return _server_error(e, "in rate prediction")

    return QuoteResponse(
        request_id=request_id,
        predicted_price=prediction.price,
        confidence_score=prediction.confidence,
        confidence_band=prediction.confidence_band,
        margin_range=prediction.margin_range,
        breakdown=PriceBreakdown(
            base_cost=cost_data.base_cost,
            surcharges=cost_data.surcharges,
            market_adjustment=market_data.adjustment,
            ml_prediction=prediction.ml_adjustment,
        ),
        model_version=prediction.model_version,
        timestamp=utcnow(),
    )

# --------- Booking Endpoints ---------

@router.post("/confirm-booking", response_model=BookingResponse)
def confirm_booking(payload: BookingRequest, request: Request):
    if not (payload.request_id and payload.booking_id and payload.final_price):
        return _bad_request("Missing required fields: requestId, bookingId, finalPrice")

    try:
        request.app.state.store.log_booking({
            "requestId": payload.request_id,
            "bookingId": payload.booking_id,
            "customerId": payload.customer_id,
            "forwarderId": payload.forwarder_id,
            "finalPrice": payload.final_price,
            "status": "booked",
            "timestamp": utcnow(),
        })
    except Exception as e:
        return _server_error(e, "confirming booking")

    return BookingResponse(
        success=True,
        message="Booking confirmed and logged for training",
        booking_id=payload.booking_id,
        timestamp=utcnow(),
    )


@router.post("/decline-quote", response_model=DeclineResponse)
def decline_quote(payload: DeclineRequest, request: Request):
    if not payload.request_id:
        return _bad_request("Missing required field: requestId")

    try:
        request.app.state.store.log_decline({
            "requestId": payload.request_id,
            "reason": payload.reason,
            "customerId": payload.customer_id,
            "forwarderId": payload.forwarder_id,
            "status": "declined",
            "timestamp": utcnow(),
        })
    except Exception as e:
        return _server_error(e, "logging quote decline")

    return DeclineResponse(success=True, message="Quote decline logged for training", timestamp=utcnow())

# --------- Analytics & Training ---------

@router.get("/analytics", response_model=AnalyticsResponse)
def analytics(request: Request):
    try:
        return request.app.state.store.get_analytics()
    except Exception as e:
        return _server_error(e, "fetching analytics")


@router.get("/training-data", response_model=TrainingDataResponse)
def training_data(request: Request,
                  forwarder_id: Optional[str] = Query(None, alias="forwarderId"),
                  start_date: Optional[datetime] = Query(None, alias="startDate"),
                  end_date: Optional[datetime] = Query(None, alias="endDate")):
    try:
        return request.app.state.store.get_training_data(start=start_date, end=end_date,
                                                         forwarder_id=forwarder_id)
    except Exception as e:
        return _server_error(e, "fetching training data")


@router.post("/retrain", response_model=RetrainResponse)
async def retrain(request: Request):
    state = request.app.state
    try:
        gathered = await run_in_threadpool(state.store.trigger_model_retraining)
        updated = await state.engine.update_model(gathered)
    except Exception as e:
        return _server_error(e, "retraining model")

    return RetrainResponse(
        success=updated["success"],
        records_processed=gathered["recordsProcessed"],
        model_version=updated["modelVersion"],
        timestamp=utcnow(),
    )


@router.post("/refresh")
async def refresh(request: Request):
    state = request.app.state
    try:
        rms = await state.rms.refresh_cost_data()
        lci = await state.lci.refresh_market_data()
    except Exception as e:
        return _server_error(e, "refreshing market and cost data")
    return {"success": rms["success"] and lci["success"], "rms": rms, "lci": lci}

# --------- App factory ---------

def create_app(config: Optional[Settings] = None,
               rng: Optional[random.Random] = None,
               clock: Clock = utcnow) -> FastAPI:
    config = config or settings
    rng = rng or config.make_random()

    app = FastAPI(title=SERVICE_NAME, version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error)

    latency = config.simulate_latency
    app.state.rms = RMSConnector(rng=rng, clock=clock, simulate_latency=latency)
    app.state.lci = LCIConnector(rng=rng, clock=clock, simulate_latency=latency)
    app.state.engine = FreightIQEngine(clock=clock, rng=rng, simulate_latency=latency)
    app.state.store = TrainingStore(config.data_dir, rng=rng, clock=clock)

    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    logger.info("%s running on port %s", SERVICE_NAME, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
