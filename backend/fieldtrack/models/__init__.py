from fieldtrack.models.employee import Employee
from fieldtrack.models.geofence import Geofence, GeofenceType, EmployeeGeofence
from fieldtrack.models.location import LocationRecord, SpoofingAlert, AlertType, AlertSeverity
from fieldtrack.models.attendance import Attendance, AttendanceStatus

__all__ = [
    "Employee",
    "Geofence",
    "GeofenceType",
    "EmployeeGeofence",
    "LocationRecord",
    "SpoofingAlert",
    "AlertType",
    "AlertSeverity",
    "Attendance",
    "AttendanceStatus",
]
