"""Tracking health shown on the device: is tracking alive and syncing?"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, DateTime

from fieldtrack.offline.store import OfflineActionStore, OfflineBase

ACCURACY_UNKNOWN = "Unknown"


def accuracy_bucket(accuracy_meters: Optional[float]) -> str:
    if accuracy_meters is None or accuracy_meters <= 0:
        return ACCURACY_UNKNOWN
    if accuracy_meters <= 10:
        return "Excellent (<=10m)"
    if accuracy_meters <= 25:
        return "Good (11-25m)"
    if accuracy_meters <= 50:
        return "Fair (26-50m)"
    return "Poor (>50m)"


class TrackingHealth(OfflineBase):
    __tablename__ = "tracking_health"

    id = Column(Integer, primary_key=True)
    last_location_at = Column(DateTime, nullable=True)
    last_successful_sync_at = Column(DateTime, nullable=True)
    pending_location_count = Column(Integer, default=0, nullable=False)
    gps_accuracy_bucket = Column(String, default=ACCURACY_UNKNOWN, nullable=False)
    mock_location_warning = Column(Boolean, default=False, nullable=False)


class TrackingHealthStore:
    ROW_ID = 1

    def __init__(self, store: OfflineActionStore):
        self.store = store
        OfflineBase.metadata.create_all(bind=store.engine, tables=[TrackingHealth.__table__])

    def _update(self, **values):
        with self.store.session() as db:
            row = db.get(TrackingHealth, self.ROW_ID)
            if row is None:
                row = TrackingHealth(id=self.ROW_ID)
                db.add(row)
            for key, value in values.items():
                setattr(row, key, value)

    def record_location_event(self, located_at: datetime, accuracy_meters: Optional[float], is_mock: bool, pending_count: int):
        self._update(
            last_location_at=located_at,
            pending_location_count=pending_count,
            gps_accuracy_bucket=accuracy_bucket(accuracy_meters),
            mock_location_warning=bool(is_mock),
        )

    def record_sync_success(self, synced_at: datetime, pending_count: int):
        self._update(last_successful_sync_at=synced_at, pending_location_count=pending_count)

    def update_pending_count(self, pending_count: int):
        self._update(pending_location_count=pending_count)

    def get_stats(self) -> dict:
        with self.store.session() as db:
            row = db.get(TrackingHealth, self.ROW_ID)
        if row is None:
            return {
                "last_location_at": None,
                "last_successful_sync_at": None,
                "pending_location_count": 0,
                "gps_accuracy_bucket": ACCURACY_UNKNOWN,
                "mock_location_warning": False,
            }
        return {
            "last_location_at": row.last_location_at,
            "last_successful_sync_at": row.last_successful_sync_at,
            "pending_location_count": row.pending_location_count,
            "gps_accuracy_bucket": row.gps_accuracy_bucket,
            "mock_location_warning": row.mock_location_warning,
        }
