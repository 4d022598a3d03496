"""Geofence membership and attendance gating.

The gate only applies once an employee has at least one assigned zone:

- no assigned geofences        → allowed
- inside at least one          → allowed
- outside all, policy WARN     → allowed, with a warning naming zones + distances
- outside all, policy BLOCK    → denied
"""
import enum
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from fieldtrack.models.geofence import (
    Geofence, EmployeeGeofence, GEOFENCE_MIN_RADIUS_METERS, GEOFENCE_MAX_RADIUS_METERS,
)
from fieldtrack.schemas.geofence import GeofenceCheckResult, GeofenceDistance
from fieldtrack.services.geo import distance_meters

logger = logging.getLogger(__name__)


class EnforcementPolicy(str, enum.Enum):
    WARN = "WARN"
    BLOCK = "BLOCK"

    @classmethod
    def parse(cls, value: Optional[str]) -> "EnforcementPolicy":
        """Anything other than BLOCK (including unset) means WARN."""
        if value and value.strip().upper() == cls.BLOCK.value:
            return cls.BLOCK
        return cls.WARN


class GateDecision:
    """Outcome of gating an attendance action against assigned geofences."""

    def __init__(self, allowed: bool, check: GeofenceCheckResult, warning: Optional[dict] = None):
        self.allowed = allowed
        self.check = check
        self.warning = warning

    @property
    def policy(self) -> str:
        return self.check.policy

    def denial_detail(self) -> dict:
        return {
            "message": "Outside all assigned geofences",
            "policy": self.check.policy,
            "geofences": [g.name for g in self.check.geofences],
        }


class GeofenceEvaluator:

    def __init__(self, policy: EnforcementPolicy):
        self.policy = policy

    def check(self, geofences: Iterable[Geofence], latitude: float, longitude: float) -> GeofenceCheckResult:
        results: List[GeofenceDistance] = []
        for geofence in geofences:
            radius = geofence.radius_meters
            if radius is None or radius <= 0:
                logger.warning(f"Skipping geofence {geofence.id} with invalid radius {radius}")
                continue
            if not GEOFENCE_MIN_RADIUS_METERS <= radius <= GEOFENCE_MAX_RADIUS_METERS:
                logger.warning(f"Geofence {geofence.id} radius {radius}m is outside the configured bounds")

            meters = distance_meters((latitude, longitude), (geofence.latitude, geofence.longitude))
            results.append(GeofenceDistance(
                id=geofence.id,
                name=geofence.name,
                type=geofence.type,
                latitude=geofence.latitude,
                longitude=geofence.longitude,
                radius_meters=radius,
                distance_meters=round(meters),
                inside=meters <= radius,
            ))

        return GeofenceCheckResult(
            policy=self.policy.value,
            has_assigned_geofences=len(results) > 0,
            inside_any_geofence=any(r.inside for r in results),
            geofences=results,
        )

    def gate(self, geofences: Iterable[Geofence], latitude: float, longitude: float) -> GateDecision:
        check = self.check(geofences, latitude, longitude)

        if not check.has_assigned_geofences or check.inside_any_geofence:
            return GateDecision(allowed=True, check=check)

        if self.policy == EnforcementPolicy.BLOCK:
            return GateDecision(allowed=False, check=check)

        warning = {
            "message": "Outside all assigned geofences",
            "geofences": [
                {"name": g.name, "distance_meters": g.distance_meters}
                for g in check.geofences
            ],
        }
        return GateDecision(allowed=True, check=check, warning=warning)


def get_assigned_geofences(db: Session, employee_id: int) -> List[Geofence]:
    """Active, non-deleted geofences assigned to an employee."""
    return (
        db.query(Geofence)
        .join(EmployeeGeofence, EmployeeGeofence.geofence_id == Geofence.id)
        .filter(
            EmployeeGeofence.employee_id == employee_id,
            Geofence.is_active == True,
            Geofence.deleted_at.is_(None),
        )
        .order_by(Geofence.id)
        .all()
    )
