"""Location spoofing risk scoring.

Each signal is evaluated independently and adds a fixed weight:

    mock provider flag                          40
    impossible travel from the previous sample  30
    GPS fix with fewer than 4 satellites        15
    abnormally high, uniform SNR (> 45)         20
    GPS says moving, accelerometer says still   20

The total is capped at 100. Missing sensor fields skip their signal, they are
never risk-bearing on their own. The score depends only on the current sample
and the employee's immediately preceding sample.
"""
import logging
import math
from typing import List, Optional

from sqlalchemy.orm import Session

from fieldtrack.models.location import AlertType, AlertSeverity, SpoofingAlert
from fieldtrack.schemas.location import RiskAlert, RiskAssessment
from fieldtrack.services.geo import detect_impossible_travel, IMPOSSIBLE_TRAVEL_SPEED_KMH

logger = logging.getLogger(__name__)

RISK_WEIGHTS = {
    "MOCK_PROVIDER": 40,
    "IMPOSSIBLE_TRAVEL": 30,
    "LOW_SATELLITE_COUNT": 15,
    "GNSS_ANOMALY": 20,
    "SENSOR_MISMATCH": 20,
}

# Highest tier first
RISK_THRESHOLDS = [
    (70, AlertSeverity.CRITICAL),
    (50, AlertSeverity.HIGH),
    (30, AlertSeverity.MEDIUM),
]

MAX_RISK_SCORE = 100
MIN_SATELLITES = 4
SNR_UNIFORM_THRESHOLD = 45
MOVING_SPEED_MPS = 5  # ~18 km/h
GRAVITY = 9.8
STATIONARY_TOLERANCE = 0.5


def severity_for_score(score: int) -> AlertSeverity:
    for threshold, severity in RISK_THRESHOLDS:
        if score >= threshold:
            return severity
    return AlertSeverity.LOW


def _accelerometer_magnitude(sample) -> Optional[float]:
    x = getattr(sample, "accelerometer_x", None)
    y = getattr(sample, "accelerometer_y", None)
    z = getattr(sample, "accelerometer_z", None)
    if x is None or y is None or z is None:
        return None
    return math.sqrt(x ** 2 + y ** 2 + z ** 2)


def compute_risk_score(
    current,
    previous=None,
    max_speed_kmh: float = IMPOSSIBLE_TRAVEL_SPEED_KMH,
) -> RiskAssessment:
    """Score one sample against its predecessor.

    `current` and `previous` are anything exposing the location sample
    attributes (a LocationSampleIn or a stored LocationRecord).
    """
    total = 0
    alerts: List[RiskAlert] = []

    # 1. Mock provider
    if current.is_mock:
        total += RISK_WEIGHTS["MOCK_PROVIDER"]
        alerts.append(RiskAlert(
            type=AlertType.MOCK_LOCATION,
            details={"provider": current.provider},
            score=RISK_WEIGHTS["MOCK_PROVIDER"],
        ))

    # 2. Impossible travel
    if previous is not None:
        travel = detect_impossible_travel(
            (previous.latitude, previous.longitude),
            previous.recorded_at,
            (current.latitude, current.longitude),
            current.recorded_at,
            max_speed_kmh=max_speed_kmh,
        )
        if travel["impossible"]:
            total += RISK_WEIGHTS["IMPOSSIBLE_TRAVEL"]
            speed = travel["speed_kmh"]
            alerts.append(RiskAlert(
                type=AlertType.IMPOSSIBLE_TRAVEL,
                details={
                    "speed_kmh": round(speed) if math.isfinite(speed) else None,
                    "distance_meters": round(travel["distance_meters"]),
                    "from_latitude": previous.latitude,
                    "from_longitude": previous.longitude,
                },
                score=RISK_WEIGHTS["IMPOSSIBLE_TRAVEL"],
            ))

    # 3. GPS provider with too few satellites
    if current.provider == "gps" and current.satellite_count is not None:
        if current.satellite_count < MIN_SATELLITES:
            total += RISK_WEIGHTS["LOW_SATELLITE_COUNT"]
            alerts.append(RiskAlert(
                type=AlertType.GNSS_ANOMALY,
                details={"satellite_count": current.satellite_count, "expected": f">={MIN_SATELLITES}"},
                score=RISK_WEIGHTS["LOW_SATELLITE_COUNT"],
            ))

    # 4. Real GNSS has SNR variance; uniformly high SNR points at a simulator
    if current.snr_average is not None and current.snr_average > SNR_UNIFORM_THRESHOLD:
        total += RISK_WEIGHTS["GNSS_ANOMALY"]
        alerts.append(RiskAlert(
            type=AlertType.GNSS_ANOMALY,
            details={"snr_average": current.snr_average, "reason": "abnormally_high_uniform_snr"},
            score=RISK_WEIGHTS["GNSS_ANOMALY"],
        ))

    # 5. Sensor fusion mismatch
    if current.speed is not None and current.speed > MOVING_SPEED_MPS:
        magnitude = _accelerometer_magnitude(current)
        if magnitude is not None and abs(magnitude - GRAVITY) < STATIONARY_TOLERANCE:
            total += RISK_WEIGHTS["SENSOR_MISMATCH"]
            alerts.append(RiskAlert(
                type=AlertType.SENSOR_MISMATCH,
                details={
                    "gps_speed": current.speed,
                    "accel_magnitude": round(magnitude, 3),
                    "reason": "gps_moving_but_accelerometer_stationary",
                },
                score=RISK_WEIGHTS["SENSOR_MISMATCH"],
            ))

    score = min(total, MAX_RISK_SCORE)
    return RiskAssessment(score=score, severity=severity_for_score(score), alerts=alerts)


def save_alerts(db: Session, employee_id: int, location_record_id: int, assessment: RiskAssessment) -> List[SpoofingAlert]:
    """Persist one audit row per triggered signal. Caller commits."""
    if not assessment.alerts:
        return []

    rows = [
        SpoofingAlert(
            employee_id=employee_id,
            location_record_id=location_record_id,
            alert_type=alert.type.value,
            details=alert.details,
            severity=assessment.severity.value,
            risk_score=assessment.score,
        )
        for alert in assessment.alerts
    ]
    db.add_all(rows)

    if assessment.severity in (AlertSeverity.HIGH, AlertSeverity.CRITICAL):
        logger.warning(
            f"{assessment.severity.value} spoofing risk for employee {employee_id} "
            f"(record {location_record_id}, score {assessment.score}): "
            f"{', '.join(a.type.value for a in assessment.alerts)}"
        )
    return rows
