"""Device-side attendance actions.

A clock action is written to the offline store first, then replayed through
the coordinator right away, so a direct attempt obeys the same ordering as a
background replay: if older actions are still queued, or another run is in
progress, the new action simply waits its turn and the caller gets Pending.
"""
import logging
from datetime import datetime

from fieldtrack.offline.exceptions import OfflineError
from fieldtrack.offline.replay import ActionOutcome, ReplayCoordinator
from fieldtrack.offline.result import Error, Pending, Result, Success
from fieldtrack.offline.store import ActionType, OfflineActionStore

logger = logging.getLogger(__name__)

PENDING_ATTENDANCE_ACTION_MESSAGE = "pending attendance action"
REAUTH_MESSAGE = "Session expired. Sign in again to sync pending attendance."


class AttendanceRepository:

    def __init__(self, client, store: OfflineActionStore, coordinator: ReplayCoordinator):
        self.client = client
        self.store = store
        self.coordinator = coordinator

    def time_in(self, latitude: float, longitude: float) -> Result:
        return self._submit(ActionType.TIME_IN, latitude, longitude)

    def time_out(self, latitude: float, longitude: float) -> Result:
        return self._submit(ActionType.TIME_OUT, latitude, longitude)

    def _submit(self, action_type: ActionType, latitude: float, longitude: float) -> Result:
        try:
            action_id = self.store.enqueue_action(action_type, latitude, longitude, datetime.utcnow())
        except ValueError as e:
            return Error(str(e))
        report = self.coordinator.replay_attendance()
        outcome = report.outcomes.get(action_id)

        if outcome == ActionOutcome.SUCCEEDED:
            return Success(report.responses.get(action_id))
        if outcome == ActionOutcome.RECONCILED:
            return Success(None)
        if outcome == ActionOutcome.DROPPED:
            return Error(report.messages.get(action_id) or f"{action_type.value} failed")
        if outcome == ActionOutcome.AUTH_REQUIRED or report.auth_required:
            return Error(REAUTH_MESSAGE, requires_reauth=True)

        logger.info(f"{action_type.value} action {action_id} queued for replay")
        return Pending(PENDING_ATTENDANCE_ACTION_MESSAGE, action_id=action_id)

    def pending_count(self) -> int:
        return self.store.pending_action_count()

    def today(self) -> Result:
        try:
            return Success(self.client.today())
        except OfflineError as e:
            return Error(e.message or "Failed to fetch attendance")

    def check_geofences(self, latitude: float, longitude: float) -> Result:
        try:
            return Success(self.client.check_geofences(latitude, longitude))
        except OfflineError as e:
            return Error(e.message or "Failed to check geofence status")
