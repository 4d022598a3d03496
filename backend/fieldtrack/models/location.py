"""Location samples and the spoofing alerts raised against them.

A LocationRecord is immutable once stored. Its risk_score is computed once at
ingest from the record itself and the employee's preceding record, and is never
recomputed.
"""
import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Float, ForeignKey, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fieldtrack.core.database import Base


class AlertType(str, enum.Enum):
    MOCK_LOCATION = "MOCK_LOCATION"
    IMPOSSIBLE_TRAVEL = "IMPOSSIBLE_TRAVEL"
    GNSS_ANOMALY = "GNSS_ANOMALY"
    SENSOR_MISMATCH = "SENSOR_MISMATCH"


class AlertSeverity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class LocationRecord(Base):
    __tablename__ = "location_records"
    __table_args__ = (
        # Sample identity: re-delivered samples are recognized and skipped
        UniqueConstraint(
            "employee_id", "recorded_at", "latitude", "longitude",
            name="uq_location_sample_identity",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float, nullable=True)  # meters
    altitude = Column(Float, nullable=True)
    speed = Column(Float, nullable=True)  # m/s
    bearing = Column(Float, nullable=True)
    provider = Column(String, nullable=True)
    is_mock = Column(Boolean, default=False, nullable=False)
    battery_level = Column(Integer, nullable=True)
    device_id = Column(String, nullable=True)

    # Raw anti-spoofing metadata
    satellite_count = Column(Integer, nullable=True)
    snr_average = Column(Float, nullable=True)
    accelerometer_x = Column(Float, nullable=True)
    accelerometer_y = Column(Float, nullable=True)
    accelerometer_z = Column(Float, nullable=True)

    risk_score = Column(Integer, default=0, nullable=False)

    recorded_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    synced_at = Column(DateTime, nullable=False)  # naive UTC
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    employee = relationship("Employee")
    alerts = relationship("SpoofingAlert", back_populates="location_record")


class SpoofingAlert(Base):
    """Audit record for one triggered risk signal."""
    __tablename__ = "spoofing_alerts"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    location_record_id = Column(Integer, ForeignKey("location_records.id"), nullable=False, index=True)

    alert_type = Column(String, nullable=False)
    details = Column(JSON, nullable=True)
    severity = Column(String, nullable=False)
    risk_score = Column(Integer, nullable=False)  # total score of the sample

    is_resolved = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    location_record = relationship("LocationRecord", back_populates="alerts")
