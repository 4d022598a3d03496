"""Server-side location batch ingest.

Samples of one employee are scored strictly in arrival order: each sample is
compared with the employee's latest stored sample, which may be one stored a
moment ago from the same batch. Batches of different employees are
independent and may run concurrently; batches of the same employee are
serialized within the process.
"""
import logging
import threading
from collections import defaultdict
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from fieldtrack.core.config import settings
from fieldtrack.models.location import LocationRecord
from fieldtrack.schemas.location import LocationSampleIn, LocationBatchResult
from fieldtrack.services.spoofing import compute_risk_score, save_alerts

logger = logging.getLogger(__name__)

_employee_locks = defaultdict(threading.Lock)
_registry_lock = threading.Lock()


def employee_lock(employee_id: int) -> threading.Lock:
    with _registry_lock:
        return _employee_locks[employee_id]


class LocationIngestService:
    """Scores and persists location batches for one employee at a time."""

    def __init__(self, db: Session, batch_max: Optional[int] = None, max_speed_kmh: Optional[float] = None):
        self.db = db
        self.batch_max = batch_max or settings.LOCATION_BATCH_MAX
        self.max_speed_kmh = max_speed_kmh or settings.IMPOSSIBLE_TRAVEL_SPEED_KMH

    def latest_sample(self, employee_id: int) -> Optional[LocationRecord]:
        return (
            self.db.query(LocationRecord)
            .filter(LocationRecord.employee_id == employee_id)
            .order_by(LocationRecord.recorded_at.desc(), LocationRecord.id.desc())
            .first()
        )

    def is_duplicate(self, employee_id: int, sample: LocationSampleIn) -> bool:
        return (
            self.db.query(LocationRecord.id)
            .filter(
                LocationRecord.employee_id == employee_id,
                LocationRecord.recorded_at == sample.recorded_at,
                LocationRecord.latitude == sample.latitude,
                LocationRecord.longitude == sample.longitude,
            )
            .first()
            is not None
        )

    def ingest_sample(self, employee_id: int, sample: LocationSampleIn, device_id: Optional[str] = None) -> Optional[LocationRecord]:
        """Score and store one sample. Returns None if it was already stored."""
        if self.is_duplicate(employee_id, sample):
            return None

        previous = self.latest_sample(employee_id)
        assessment = compute_risk_score(sample, previous, max_speed_kmh=self.max_speed_kmh)

        record = LocationRecord(
            employee_id=employee_id,
            latitude=sample.latitude,
            longitude=sample.longitude,
            accuracy=sample.accuracy,
            altitude=sample.altitude,
            speed=sample.speed,
            bearing=sample.bearing,
            provider=sample.provider,
            is_mock=sample.is_mock,
            battery_level=sample.battery_level,
            device_id=device_id or sample.device_id,
            satellite_count=sample.satellite_count,
            snr_average=sample.snr_average,
            accelerometer_x=sample.accelerometer_x,
            accelerometer_y=sample.accelerometer_y,
            accelerometer_z=sample.accelerometer_z,
            risk_score=assessment.score,
            recorded_at=sample.recorded_at,
            synced_at=datetime.utcnow(),
        )
        self.db.add(record)
        self.db.flush()

        save_alerts(self.db, employee_id, record.id, assessment)
        self.db.commit()
        return record

    def ingest_batch(
        self,
        employee_id: int,
        samples: List[LocationSampleIn],
        device_id: Optional[str] = None,
    ) -> LocationBatchResult:
        if not samples:
            raise ValueError("Location batch is empty")
        if len(samples) > self.batch_max:
            raise ValueError(f"Location batch exceeds {self.batch_max} samples")

        synced = 0
        duplicates = 0
        with employee_lock(employee_id):
            for sample in samples:
                try:
                    record = self.ingest_sample(employee_id, sample, device_id)
                except Exception:
                    self.db.rollback()
                    raise
                if record is None:
                    duplicates += 1
                else:
                    synced += 1

        if duplicates:
            logger.warning(f"Skipped {duplicates} re-delivered samples for employee {employee_id}")
        logger.info(f"Ingested {synced} location samples for employee {employee_id}")
        return LocationBatchResult(synced=synced, duplicates=duplicates)


def parse_samples(raw_samples: Iterable[dict]) -> List[LocationSampleIn]:
    """Validate raw dicts (e.g. from a task queue) into samples."""
    return [LocationSampleIn.model_validate(raw) for raw in raw_samples]
