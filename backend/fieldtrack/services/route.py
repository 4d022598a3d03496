"""Route reconstruction for one employee-day: distance, active time, dwell stops."""
from datetime import datetime
from typing import List, Sequence

from sqlalchemy.orm import Session

from fieldtrack.models.location import LocationRecord
from fieldtrack.schemas.location import RouteSummary, RoutePoint, Stop
from fieldtrack.services.geo import distance_meters, route_distance_meters

STOP_RADIUS_METERS = 50
MIN_STOP_MINUTES = 5


def _minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60.0


def _make_stop(anchor, last) -> Stop:
    return Stop(
        latitude=anchor.latitude,
        longitude=anchor.longitude,
        start_time=anchor.recorded_at,
        end_time=last.recorded_at,
        duration_minutes=round(_minutes_between(anchor.recorded_at, last.recorded_at)),
    )


def detect_stops(
    samples: Sequence,
    min_stop_minutes: float = MIN_STOP_MINUTES,
    stop_radius_meters: float = STOP_RADIUS_METERS,
) -> List[Stop]:
    """Find dwell periods in a time-ordered sequence of samples.

    A run grows while each sample stays within `stop_radius_meters` of the
    run's anchor (its first sample). The sample that breaks the radius closes
    the run and becomes the next anchor. Runs lasting at least
    `min_stop_minutes` are stops, including the trailing run.
    """
    stops: List[Stop] = []
    if len(samples) < 2:
        return stops

    anchor_index = 0
    for i in range(1, len(samples)):
        anchor = samples[anchor_index]
        current = samples[i]
        far = distance_meters(
            (anchor.latitude, anchor.longitude),
            (current.latitude, current.longitude),
        ) > stop_radius_meters
        if not far:
            continue

        last = samples[i - 1]
        if _minutes_between(anchor.recorded_at, last.recorded_at) >= min_stop_minutes:
            stops.append(_make_stop(anchor, last))
        anchor_index = i

    anchor = samples[anchor_index]
    last = samples[-1]
    if _minutes_between(anchor.recorded_at, last.recorded_at) >= min_stop_minutes:
        stops.append(_make_stop(anchor, last))

    return stops


def summarize_route(samples: Sequence) -> RouteSummary:
    if not samples:
        return RouteSummary(
            total_distance_km=0,
            total_distance_meters=0,
            active_minutes=0,
            stops=[],
            location_count=0,
        )

    total_meters = route_distance_meters((s.latitude, s.longitude) for s in samples)
    first, last = samples[0], samples[-1]

    return RouteSummary(
        total_distance_km=round(total_meters / 1000, 2),
        total_distance_meters=total_meters,
        active_minutes=round(_minutes_between(first.recorded_at, last.recorded_at)),
        stops=detect_stops(samples),
        location_count=len(samples),
        first_location=RoutePoint(latitude=first.latitude, longitude=first.longitude, recorded_at=first.recorded_at),
        last_location=RoutePoint(latitude=last.latitude, longitude=last.longitude, recorded_at=last.recorded_at),
    )


def get_employee_route(db: Session, employee_id: int, start: datetime, end: datetime, limit: int = 5000) -> List[LocationRecord]:
    return (
        db.query(LocationRecord)
        .filter(
            LocationRecord.employee_id == employee_id,
            LocationRecord.recorded_at >= start,
            LocationRecord.recorded_at <= end,
        )
        .order_by(LocationRecord.recorded_at.asc(), LocationRecord.id.asc())
        .limit(limit)
        .all()
    )
