"""Durable on-device queue for attendance actions and location samples.

Everything observed on the device is written here before any network call.
Records leave the store only when the server acknowledged them (or the
server said they can never succeed). Each operation runs in its own short
transaction so that new fixes can be appended while a replay run scans and
deletes; an interrupted run leaves finished deletes in place and the rest
intact.
"""
import enum
import logging
import math
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float, create_engine, event, func,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from fieldtrack.core.config import settings

logger = logging.getLogger(__name__)

OfflineBase = declarative_base()


class ActionType(str, enum.Enum):
    TIME_IN = "TIME_IN"
    TIME_OUT = "TIME_OUT"


class PendingAttendanceAction(OfflineBase):
    __tablename__ = "pending_attendance_actions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action_type = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    action_timestamp = Column(DateTime, nullable=False, index=True)  # naive UTC
    retry_count = Column(Integer, default=0, nullable=False)
    last_error = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PendingLocation(OfflineBase):
    __tablename__ = "pending_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float, nullable=True)
    altitude = Column(Float, nullable=True)
    speed = Column(Float, nullable=True)
    bearing = Column(Float, nullable=True)
    provider = Column(String, nullable=True)
    is_mock = Column(Boolean, default=False, nullable=False)
    battery_level = Column(Integer, nullable=True)
    device_id = Column(String, nullable=True)
    satellite_count = Column(Integer, nullable=True)
    snr_average = Column(Float, nullable=True)
    accelerometer_x = Column(Float, nullable=True)
    accelerometer_y = Column(Float, nullable=True)
    accelerometer_z = Column(Float, nullable=True)
    recorded_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_payload(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
            "altitude": self.altitude,
            "speed": self.speed,
            "bearing": self.bearing,
            "provider": self.provider,
            "is_mock": self.is_mock,
            "battery_level": self.battery_level,
            "device_id": self.device_id,
            "satellite_count": self.satellite_count,
            "snr_average": self.snr_average,
            "accelerometer_x": self.accelerometer_x,
            "accelerometer_y": self.accelerometer_y,
            "accelerometer_z": self.accelerometer_z,
            "recorded_at": self.recorded_at.isoformat() + "Z",
        }


LOCATION_FIELDS = [
    "latitude", "longitude", "accuracy", "altitude", "speed", "bearing", "provider",
    "is_mock", "battery_level", "device_id", "satellite_count", "snr_average",
    "accelerometer_x", "accelerometer_y", "accelerometer_z", "recorded_at",
]


def validate_coordinates(latitude, longitude):
    """Same bounds the ingest API enforces."""
    for name, value, bound in (("latitude", latitude, 90), ("longitude", longitude, 180)):
        if value is None:
            raise ValueError(f"{name} is required")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number")
        if not math.isfinite(value) or not -bound <= value <= bound:
            raise ValueError(f"{name} {value} is out of range")


def _sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    # WAL lets appends proceed while a replay scan reads
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=FULL")
    cursor.close()


class OfflineActionStore:

    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url or settings.OFFLINE_DB_URL
        self.engine = create_engine(
            self.db_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=False,
        )
        event.listen(self.engine, "connect", _sqlite_pragmas)
        OfflineBase.metadata.create_all(bind=self.engine)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @contextmanager
    def session(self):
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ── Attendance actions ───────────────────────────────────────────

    def enqueue_action(
        self,
        action_type: ActionType,
        latitude: float,
        longitude: float,
        action_timestamp: Optional[datetime] = None,
        last_error: Optional[str] = None,
    ) -> int:
        validate_coordinates(latitude, longitude)
        action = PendingAttendanceAction(
            action_type=ActionType(action_type).value,
            latitude=latitude,
            longitude=longitude,
            action_timestamp=action_timestamp or datetime.utcnow(),
            last_error=last_error,
        )
        with self.session() as db:
            db.add(action)
            db.flush()
            action_id = action.id
        logger.info(f"Queued {action.action_type} action {action_id}")
        return action_id

    def pending_actions(self, limit: int = 100) -> List[PendingAttendanceAction]:
        """Oldest first: (action_timestamp, id)."""
        with self.session() as db:
            return (
                db.query(PendingAttendanceAction)
                .order_by(PendingAttendanceAction.action_timestamp.asc(), PendingAttendanceAction.id.asc())
                .limit(limit)
                .all()
            )

    def get_action(self, action_id: int) -> Optional[PendingAttendanceAction]:
        with self.session() as db:
            return db.get(PendingAttendanceAction, action_id)

    def pending_action_count(self) -> int:
        with self.session() as db:
            return db.query(func.count(PendingAttendanceAction.id)).scalar() or 0

    def delete_action(self, action_id: int) -> bool:
        with self.session() as db:
            deleted = db.query(PendingAttendanceAction).filter(PendingAttendanceAction.id == action_id).delete()
        return deleted > 0

    def mark_retry(self, action_id: int, error: Optional[str]):
        with self.session() as db:
            db.query(PendingAttendanceAction).filter(PendingAttendanceAction.id == action_id).update(
                {
                    PendingAttendanceAction.retry_count: PendingAttendanceAction.retry_count + 1,
                    PendingAttendanceAction.last_error: error,
                },
                synchronize_session=False,
            )

    # ── Location samples ─────────────────────────────────────────────

    def save_location(self, **fields) -> int:
        unknown = set(fields) - set(LOCATION_FIELDS)
        if unknown:
            raise ValueError(f"Unknown location fields: {', '.join(sorted(unknown))}")
        validate_coordinates(fields.get("latitude"), fields.get("longitude"))
        battery = fields.get("battery_level")
        if battery is not None and not 0 <= battery <= 100:
            raise ValueError(f"battery_level {battery} is out of range")
        location = PendingLocation(**fields)
        with self.session() as db:
            db.add(location)
            db.flush()
            return location.id

    def pending_locations(self, limit: int = 500) -> List[PendingLocation]:
        with self.session() as db:
            return (
                db.query(PendingLocation)
                .order_by(PendingLocation.recorded_at.asc(), PendingLocation.id.asc())
                .limit(limit)
                .all()
            )

    def pending_location_count(self) -> int:
        with self.session() as db:
            return db.query(func.count(PendingLocation.id)).scalar() or 0

    def delete_locations(self, ids: Iterable[int]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        with self.session() as db:
            return db.query(PendingLocation).filter(PendingLocation.id.in_(ids)).delete(synchronize_session=False)
