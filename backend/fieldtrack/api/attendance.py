"""Attendance API: time in / time out, gated by assigned geofences.

Rules:
- One attendance row per employee per day.
- Time-in after office start + late threshold → LATE.
- Time-out less than HALF_DAY_HOURS after time-in → HALF_DAY.
- Repeating an action that already took effect returns 409 with a stable
  message ("Already clocked in today" / "Already clocked out today") so that
  offline clients can recognize the replay as reconciled.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fieldtrack.core.config import settings
from fieldtrack.core.database import get_db
from fieldtrack.core.security import get_current_employee
from fieldtrack.models.employee import Employee
from fieldtrack.models.attendance import Attendance, AttendanceStatus
from fieldtrack.schemas.attendance import TimeInRequest, TimeOutRequest
from fieldtrack.services.geofence import EnforcementPolicy, GeofenceEvaluator, get_assigned_geofences

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/attendance", tags=["attendance"])

ALREADY_CLOCKED_IN = "Already clocked in today"
ALREADY_CLOCKED_OUT = "Already clocked out today"
NO_CLOCK_IN = "No clock-in record found for today"


def _now() -> datetime:
    return datetime.utcnow()


def _gate(db: Session, employee: Employee, latitude: float, longitude: float):
    evaluator = GeofenceEvaluator(EnforcementPolicy.parse(settings.GEOFENCE_ENFORCEMENT_POLICY))
    decision = evaluator.gate(get_assigned_geofences(db, employee.id), latitude, longitude)
    if not decision.allowed:
        logger.info(f"Attendance blocked for employee {employee.id}: outside all assigned geofences")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=decision.denial_detail())
    return decision


# ── Time In ──────────────────────────────────────────────────────────

@router.post("/time-in", status_code=status.HTTP_201_CREATED)
def time_in(
    body: TimeInRequest,
    current_employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    now = _now()
    today = now.date()

    existing = db.query(Attendance).filter(
        Attendance.employee_id == current_employee.id,
        Attendance.date == today,
    ).first()

    if existing and existing.time_in:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_CLOCKED_IN)

    decision = _gate(db, current_employee, body.latitude, body.longitude)

    late_threshold = settings.OFFICE_START_HOUR * 60 + settings.LATE_THRESHOLD_MINUTES
    is_late = now.hour * 60 + now.minute > late_threshold

    entry = existing or Attendance(employee_id=current_employee.id, date=today)
    entry.time_in = now
    entry.time_in_latitude = body.latitude
    entry.time_in_longitude = body.longitude
    entry.time_in_device_id = body.device_id
    entry.status = AttendanceStatus.LATE.value if is_late else AttendanceStatus.PRESENT.value
    entry.outside_geofence = decision.warning is not None
    if existing is None:
        db.add(entry)
    db.commit()
    db.refresh(entry)

    logger.info(f"Employee {current_employee.id} clocked in ({entry.status})")
    return {**_entry_to_dict(entry), "geofence_warning": decision.warning}


# ── Time Out ─────────────────────────────────────────────────────────

@router.post("/time-out")
def time_out(
    body: TimeOutRequest,
    current_employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    now = _now()
    today = now.date()

    entry = db.query(Attendance).filter(
        Attendance.employee_id == current_employee.id,
        Attendance.date == today,
    ).first()

    if not entry or not entry.time_in:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_CLOCK_IN)

    if entry.time_out:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ALREADY_CLOCKED_OUT)

    decision = _gate(db, current_employee, body.latitude, body.longitude)

    hours_worked = (now - entry.time_in).total_seconds() / 3600.0
    if hours_worked < settings.HALF_DAY_HOURS:
        entry.status = AttendanceStatus.HALF_DAY.value

    entry.time_out = now
    entry.time_out_latitude = body.latitude
    entry.time_out_longitude = body.longitude
    if decision.warning is not None:
        entry.outside_geofence = True
    db.commit()
    db.refresh(entry)

    logger.info(f"Employee {current_employee.id} clocked out after {hours_worked:.1f}h")
    return {**_entry_to_dict(entry), "geofence_warning": decision.warning}


# ── Today ────────────────────────────────────────────────────────────

@router.get("/today")
def get_today(
    current_employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    entry = db.query(Attendance).filter(
        Attendance.employee_id == current_employee.id,
        Attendance.date == _now().date(),
    ).first()
    return _entry_to_dict(entry) if entry else None


def _entry_to_dict(e: Attendance) -> dict:
    return {
        "id": e.id,
        "employee_id": e.employee_id,
        "date": e.date.isoformat(),
        "time_in": e.time_in.isoformat() if e.time_in else None,
        "time_in_latitude": e.time_in_latitude,
        "time_in_longitude": e.time_in_longitude,
        "time_out": e.time_out.isoformat() if e.time_out else None,
        "time_out_latitude": e.time_out_latitude,
        "time_out_longitude": e.time_out_longitude,
        "status": e.status,
        "outside_geofence": bool(e.outside_geofence),
    }
