"""Daily attendance record: one row per employee per calendar day.

Status rules:
- time-in after office start + late threshold → LATE
- time-out less than HALF_DAY_HOURS after time-in → HALF_DAY
"""
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fieldtrack.core.database import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    HALF_DAY = "HALF_DAY"


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    time_in = Column(DateTime, nullable=True)  # naive UTC
    time_in_latitude = Column(Float, nullable=True)
    time_in_longitude = Column(Float, nullable=True)
    time_in_device_id = Column(String, nullable=True)

    time_out = Column(DateTime, nullable=True)
    time_out_latitude = Column(Float, nullable=True)
    time_out_longitude = Column(Float, nullable=True)

    # Set when the action was taken outside every assigned geofence under WARN
    outside_geofence = Column(Boolean, default=False)

    status = Column(String, default=AttendanceStatus.PRESENT.value, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("Employee")
