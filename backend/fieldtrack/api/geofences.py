"""Geofence check for the authenticated employee."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fieldtrack.core.config import settings
from fieldtrack.core.database import get_db
from fieldtrack.core.security import get_current_employee
from fieldtrack.models.employee import Employee
from fieldtrack.schemas.geofence import GeofenceCheckResult
from fieldtrack.services.geofence import EnforcementPolicy, GeofenceEvaluator, get_assigned_geofences

router = APIRouter(prefix="/api/geofences", tags=["geofences"])


@router.get("/check-my", response_model=GeofenceCheckResult)
def check_my_geofences(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    current_employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Distance to and membership in each active geofence assigned to me."""
    evaluator = GeofenceEvaluator(EnforcementPolicy.parse(settings.GEOFENCE_ENFORCEMENT_POLICY))
    return evaluator.check(get_assigned_geofences(db, current_employee.id), latitude, longitude)
