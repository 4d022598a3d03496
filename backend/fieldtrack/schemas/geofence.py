from pydantic import BaseModel, Field
from typing import List


class GeofenceDistance(BaseModel):
    id: int
    name: str
    type: str
    latitude: float
    longitude: float
    radius_meters: int
    distance_meters: int
    inside: bool


class GeofenceCheckResult(BaseModel):
    policy: str
    has_assigned_geofences: bool
    inside_any_geofence: bool
    geofences: List[GeofenceDistance] = []


class GeofenceCheckQuery(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
