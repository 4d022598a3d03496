from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone
from dateutil import parser as date_parser
from fieldtrack.core.config import settings
from fieldtrack.models.location import AlertType, AlertSeverity


def to_utc_naive(value: Union[str, int, float, datetime]) -> datetime:
    """Normalize an ISO string, epoch millis, or datetime to naive UTC."""
    if isinstance(value, bool):
        raise ValueError("recorded_at must be a timestamp")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError) as e:
            raise ValueError(f"recorded_at {value} is out of range") from e
    if isinstance(value, str):
        value = date_parser.isoparse(value)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class LocationSampleIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None
    bearing: Optional[float] = None
    provider: Optional[str] = None
    is_mock: bool = False
    battery_level: Optional[int] = Field(None, ge=0, le=100)
    device_id: Optional[str] = None
    # Raw anti-spoofing metadata (server computes risk)
    satellite_count: Optional[int] = None
    snr_average: Optional[float] = None
    accelerometer_x: Optional[float] = None
    accelerometer_y: Optional[float] = None
    accelerometer_z: Optional[float] = None
    recorded_at: datetime

    @field_validator("recorded_at", mode="before")
    @classmethod
    def _parse_recorded_at(cls, value):
        return to_utc_naive(value)


class LocationBatchIn(BaseModel):
    locations: List[LocationSampleIn] = Field(..., min_length=1, max_length=settings.LOCATION_BATCH_MAX)
    device_id: Optional[str] = None
    integrity_token: Optional[str] = None


class LocationBatchResult(BaseModel):
    synced: int
    duplicates: int = 0


class RiskAlert(BaseModel):
    type: AlertType
    details: Dict[str, Any] = {}
    score: int


class RiskAssessment(BaseModel):
    score: int = Field(..., ge=0, le=100)
    severity: AlertSeverity
    alerts: List[RiskAlert] = []


class Stop(BaseModel):
    latitude: float
    longitude: float
    start_time: datetime
    end_time: datetime
    duration_minutes: int


class RoutePoint(BaseModel):
    latitude: float
    longitude: float
    recorded_at: datetime


class RouteSummary(BaseModel):
    total_distance_km: float
    total_distance_meters: float
    active_minutes: int
    stops: List[Stop] = []
    location_count: int
    first_location: Optional[RoutePoint] = None
    last_location: Optional[RoutePoint] = None
