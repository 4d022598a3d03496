"""Device-side location capture: every fix is stored before any upload."""
from datetime import datetime
from typing import Optional

from fieldtrack.offline.store import OfflineActionStore


class LocationRepository:
    """Uploads happen in the replay coordinator."""

    def __init__(self, store: OfflineActionStore, health=None, device_id: Optional[str] = None):
        self.store = store
        self.health = health
        self.device_id = device_id

    def record_fix(self, latitude: float, longitude: float, recorded_at: Optional[datetime] = None, **sensors) -> int:
        recorded_at = recorded_at or datetime.utcnow()
        sensors.setdefault("device_id", self.device_id)
        location_id = self.store.save_location(
            latitude=latitude,
            longitude=longitude,
            recorded_at=recorded_at,
            **sensors,
        )
        if self.health is not None:
            self.health.record_location_event(
                recorded_at,
                sensors.get("accuracy"),
                sensors.get("is_mock", False),
                self.store.pending_location_count(),
            )
        return location_id

    def pending_count(self) -> int:
        return self.store.pending_location_count()
