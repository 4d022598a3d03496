"""Location API: batch ingest from devices, route summary, recent positions."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from fieldtrack.core.database import get_db
from fieldtrack.core.security import get_current_employee
from fieldtrack.models.employee import Employee
from fieldtrack.models.location import LocationRecord
from fieldtrack.schemas.location import LocationBatchIn, LocationBatchResult, RouteSummary, to_utc_naive
from fieldtrack.services.location_ingest import LocationIngestService
from fieldtrack.services.route import get_employee_route, summarize_route

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/locations", tags=["locations"])

RECENT_WINDOW_MINUTES = 10


def require_manager(employee: Employee):
    if (employee.role or "").lower() not in ("admin", "manager"):
        raise HTTPException(status_code=403, detail="Manager access required")


# ── Batch Upload ─────────────────────────────────────────────────────

@router.post("/batch", response_model=LocationBatchResult, status_code=status.HTTP_201_CREATED)
def batch_upload(
    body: LocationBatchIn,
    current_employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Store a device's samples in order, scoring each for spoofing risk."""
    service = LocationIngestService(db)
    try:
        return service.ingest_batch(current_employee.id, body.locations, body.device_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ── Route Summary ────────────────────────────────────────────────────

@router.get("/route", response_model=RouteSummary)
def route_summary(
    start: str,
    end: str,
    employee_id: Optional[int] = None,
    current_employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Distance travelled, active time and stops between two timestamps."""
    target_id = employee_id or current_employee.id
    if target_id != current_employee.id:
        require_manager(current_employee)

    try:
        start_at, end_at = to_utc_naive(start), to_utc_naive(end)
    except (ValueError, OverflowError):
        raise HTTPException(status_code=400, detail="start and end must be ISO timestamps")
    if end_at < start_at:
        raise HTTPException(status_code=400, detail="end must not be before start")

    return summarize_route(get_employee_route(db, target_id, start_at, end_at))


# ── Recent Positions ─────────────────────────────────────────────────

@router.get("/recent")
def recent_locations(
    minutes: int = Query(RECENT_WINDOW_MINUTES, ge=1, le=24 * 60),
    current_employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Latest sample per employee seen in the last few minutes (managers only)."""
    require_manager(current_employee)
    since = datetime.utcnow() - timedelta(minutes=minutes)

    latest = (
        db.query(
            LocationRecord.employee_id,
            func.max(LocationRecord.recorded_at).label("recorded_at"),
        )
        .filter(LocationRecord.recorded_at >= since)
        .group_by(LocationRecord.employee_id)
        .subquery()
    )
    rows = (
        db.query(LocationRecord, Employee)
        .join(latest, (LocationRecord.employee_id == latest.c.employee_id)
              & (LocationRecord.recorded_at == latest.c.recorded_at))
        .join(Employee, Employee.id == LocationRecord.employee_id)
        .order_by(LocationRecord.employee_id)
        .all()
    )

    seen = set()
    result = []
    for loc, emp in rows:
        if loc.employee_id in seen:
            continue
        seen.add(loc.employee_id)
        result.append({
            "employee_id": emp.id,
            "employee_name": emp.name,
            "employee_code": emp.employee_code,
            "latitude": loc.latitude,
            "longitude": loc.longitude,
            "accuracy": loc.accuracy,
            "speed": loc.speed,
            "battery_level": loc.battery_level,
            "risk_score": loc.risk_score,
            "recorded_at": loc.recorded_at.isoformat(),
        })
    return result
