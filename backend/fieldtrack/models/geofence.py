"""Geofences and their assignment to employees.

Zones are created and assigned from the admin portal. The radius bound
(50m to 10km) is enforced there and re-checked by the evaluator.
"""
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fieldtrack.core.database import Base

GEOFENCE_MIN_RADIUS_METERS = 50
GEOFENCE_MAX_RADIUS_METERS = 10000


class GeofenceType(str, enum.Enum):
    OFFICE = "OFFICE"
    CLIENT = "CLIENT"
    WAREHOUSE = "WAREHOUSE"
    CUSTOM = "CUSTOM"


class Geofence(Base):
    __tablename__ = "geofences"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    radius_meters = Column(Integer, nullable=False, default=100)
    type = Column(String, default=GeofenceType.OFFICE.value, nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    employee_links = relationship("EmployeeGeofence", back_populates="geofence", cascade="all, delete-orphan")


class EmployeeGeofence(Base):
    """Many-to-many link between an employee and a geofence."""
    __tablename__ = "employee_geofences"
    __table_args__ = (
        UniqueConstraint("employee_id", "geofence_id", name="uq_employee_geofence"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    geofence_id = Column(Integer, ForeignKey("geofences.id"), nullable=False, index=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee", back_populates="geofence_links")
    geofence = relationship("Geofence", back_populates="employee_links")
