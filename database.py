"""
File-backed training store.

Two JSON documents live in the data directory:

- training-data.json: the append-only booking/decline event lists
- analytics.json:     the running counters shown on the dashboard

Every mutation is a read-modify-write of whole documents. A single process-wide
lock serializes those cycles and each document is replaced atomically, so
concurrent bookings never lose an event and a crash never leaves half a file.
"""
import logging
import os
import random
import tempfile
import threading
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from schemas import (AnalyticsResponse, AnalyticsSnapshot, ModelPerformance, TrainingData,
                     TrainingDataResponse, TrainingEvent)
from utils import Clock, round_money, utcnow

logger = logging.getLogger(__name__)

TRAINING_FILE = "training-data.json"
ANALYTICS_FILE = "analytics.json"

RECENT_WINDOW = timedelta(days=30)
RETRAINING_WINDOW = timedelta(days=90)

M = TypeVar("M", bound=BaseModel)


class StoreError(Exception):
    """A persisted document exists but cannot be parsed."""


class TrainingStore:
    def __init__(self, data_dir: str, rng: Optional[random.Random] = None, clock: Clock = utcnow):
        self.data_dir = Path(data_dir)
        self.data_file = self.data_dir / TRAINING_FILE
        self.analytics_file = self.data_dir / ANALYTICS_FILE
        self.rng = rng or random.Random()
        self.clock = clock
        self._lock = threading.Lock()

    # --------- Event logging ---------

    def log_booking(self, booking: Dict[str, Any]) -> dict:
        """Record a confirmed booking. `booking` must carry a requestId."""
        event = self._log("booking", booking)
        logger.info("Training store: logged booking %s", booking.get("bookingId"))
        return {"success": True, "bookingId": event.id}

    def log_decline(self, decline: Dict[str, Any]) -> dict:
        """Record a declined quote. `decline` must carry a requestId."""
        event = self._log("decline", decline)
        logger.info("Training store: logged decline for request %s", decline.get("requestId"))
        return {"success": True, "declineId": event.id}

    def _log(self, kind: str, fields: Dict[str, Any]) -> TrainingEvent:
        with self._lock:
            now = self.clock()
            event = TrainingEvent(**{**fields, "id": self.generate_id(), "type": kind, "loggedAt": now})

            data = self.load_training_data()
            if kind == "booking":
                data.bookings.append(event)
            else:
                data.declines.append(event)
            data.last_updated = now
            self.save_training_data(data)

            analytics = self.load_analytics()
            analytics.total_requests += 1
            if kind == "booking":
                analytics.total_bookings += 1
            else:
                analytics.total_declines += 1
            analytics.win_rate = analytics.total_bookings / analytics.total_requests * 100
            analytics.last_updated = now
            self.save_analytics(analytics)
        return event

    # --------- Reads ---------

    def get_analytics(self) -> AnalyticsResponse:
        with self._lock:
            analytics = self.load_analytics()
            data = self.load_training_data()

        cutoff = self.clock() - RECENT_WINDOW
        recent_bookings = [b for b in data.bookings if b.logged_at > cutoff]
        recent_declines = [d for d in data.declines if d.logged_at > cutoff]
        total_recent = len(recent_bookings) + len(recent_declines)
        recent_win_rate = len(recent_bookings) / total_recent * 100 if total_recent else 0.0

        # Confidence and model performance are simulated, not measured
        snapshot = analytics.model_dump(exclude={"average_confidence", "last_updated"})
        return AnalyticsResponse(
            **snapshot,
            average_confidence=round_money(self.rng.uniform(0.75, 0.90)),
            last_updated=self.clock(),
            recent_win_rate=round_money(recent_win_rate),
            recent_bookings=len(recent_bookings),
            recent_declines=len(recent_declines),
            total_recent_requests=total_recent,
            model_performance=ModelPerformance(
                accuracy=round_money(self.rng.uniform(0.85, 0.95)),
                precision=round_money(self.rng.uniform(0.82, 0.92)),
                recall=round_money(self.rng.uniform(0.88, 0.96)),
            ),
        )

    def get_training_data(self, start: Optional[datetime] = None, end: Optional[datetime] = None,
                          forwarder_id: Optional[str] = None) -> TrainingDataResponse:
        with self._lock:
            data = self.load_training_data()

        # Bounds without an offset are taken as UTC
        if start is not None and start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end is not None and end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)

        def keep(event: TrainingEvent) -> bool:
            if start is not None and event.logged_at < start:
                return False
            if end is not None and event.logged_at > end:
                return False
            if forwarder_id is not None and event.forwarder_id != forwarder_id:
                return False
            return True

        bookings = [b for b in data.bookings if keep(b)]
        declines = [d for d in data.declines if keep(d)]
        date_range = None
        if start is not None or end is not None:
            date_range = {k: v for k, v in (("startDate", start), ("endDate", end)) if v is not None}
        return TrainingDataResponse(
            bookings=bookings,
            declines=declines,
            total_records=len(bookings) + len(declines),
            date_range=date_range,
            generated_at=self.clock(),
        )

    def trigger_model_retraining(self) -> dict:
        now = self.clock()
        logger.info("Training store: gathering data for model retraining")
        training = self.get_training_data(start=now - RETRAINING_WINDOW, end=now)
        return {"success": True, "recordsProcessed": training.total_records, "timestamp": now}

    # --------- Persistence ---------

    def load_training_data(self) -> TrainingData:
        return self._load(self.data_file, TrainingData)

    def save_training_data(self, data: TrainingData):
        self._save(self.data_file, data)

    def load_analytics(self) -> AnalyticsSnapshot:
        return self._load(self.analytics_file, AnalyticsSnapshot)

    def save_analytics(self, analytics: AnalyticsSnapshot):
        self._save(self.analytics_file, analytics)

    def _load(self, path: Path, model: Type[M]) -> M:
        if not path.exists():
            return model()
        try:
            return model.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise StoreError(f"Malformed document {path.name}: {e}") from e

    def _save(self, path: Path, document: BaseModel):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(document.model_dump_json(by_alias=True, indent=2))
            os.replace(tmp, path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def generate_id(self) -> str:
        millis = int(self.clock().timestamp() * 1000)
        return f"training_{millis}_{uuid.uuid4().hex[:9]}"
