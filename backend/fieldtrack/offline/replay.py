"""Replays queued attendance actions and location samples against the server.

Attendance actions are replayed strictly oldest first. A stuck action halts
the run: later actions are never sent ahead of it, otherwise a TIME_OUT could
reach the server before its TIME_IN. Outcome per action:

    2xx                               delete, continue
    already clocked in / out (409)    reconciled, delete, continue
    5xx or network failure            keep, retry_count + 1, stop the run
    401                               keep, stop, hand over to auth refresh
    other 4xx                         drop, continue

Runs are single-flight: a run requested while another is in progress is
skipped, not queued.
"""
import enum
import logging
import threading
from datetime import datetime
from typing import Callable, Dict, Optional

from fieldtrack.core.config import settings
from fieldtrack.offline.exceptions import (
    AuthError, AuthRefreshFailed, ClientError, HTTPStatusError, ServerError, TransientNetworkError,
)
from fieldtrack.offline.result import StateChannel, SyncState
from fieldtrack.offline.store import ActionType, OfflineActionStore

logger = logging.getLogger(__name__)

RECONCILED_PATTERNS = {
    ActionType.TIME_IN.value: "already clocked in",
    ActionType.TIME_OUT.value: "already clocked out",
}
CONFLICT_STATUS_CODES = (400, 409)


class ActionOutcome(str, enum.Enum):
    SUCCEEDED = "SUCCEEDED"
    RECONCILED = "RECONCILED"
    DROPPED = "DROPPED"
    RETRY = "RETRY"
    AUTH_REQUIRED = "AUTH_REQUIRED"


def is_reconciled_conflict(action_type: str, error: HTTPStatusError) -> bool:
    if error.status_code not in CONFLICT_STATUS_CODES or not error.message:
        return False
    pattern = RECONCILED_PATTERNS.get(action_type)
    return pattern is not None and pattern in error.message.lower()


class ReplayReport:
    """What one attendance replay run did."""

    def __init__(self):
        self.processed = 0
        self.dropped = 0
        self.halted = False
        self.skipped = False
        self.auth_required = False
        self.error: Optional[str] = None
        self.outcomes: Dict[int, ActionOutcome] = {}
        self.responses: Dict[int, object] = {}
        self.messages: Dict[int, str] = {}

    @property
    def needs_retry(self) -> bool:
        return self.halted and not self.auth_required

    def __repr__(self):
        return (
            f"ReplayReport(processed={self.processed}, dropped={self.dropped}, "
            f"halted={self.halted}, skipped={self.skipped}, error={self.error!r})"
        )


class LocationSyncReport:

    def __init__(self, synced: int = 0, error: Optional[str] = None, auth_required: bool = False):
        self.synced = synced
        self.error = error
        self.auth_required = auth_required

    @property
    def failed(self) -> bool:
        return self.error is not None

    def __repr__(self):
        return f"LocationSyncReport(synced={self.synced}, error={self.error!r})"


class RunReport:

    def __init__(self, attendance: ReplayReport, locations: Optional[LocationSyncReport]):
        self.attendance = attendance
        self.locations = locations

    @property
    def skipped(self) -> bool:
        return self.attendance.skipped

    @property
    def needs_retry(self) -> bool:
        if self.attendance.auth_required:
            return False
        return self.attendance.needs_retry or bool(self.locations and self.locations.failed)


class ReplayCoordinator:

    def __init__(
        self,
        client,
        store: OfflineActionStore,
        device_id: Optional[str] = None,
        auth_refresher: Optional[Callable[[], bool]] = None,
        on_logout: Optional[Callable[[], None]] = None,
        channel: Optional[StateChannel] = None,
        health=None,
        batch_limit: Optional[int] = None,
        location_limit: Optional[int] = None,
        upload_timeout: Optional[float] = None,
    ):
        self.client = client
        self.store = store
        self.device_id = device_id
        self.auth_refresher = auth_refresher
        self.on_logout = on_logout
        self.channel = channel or StateChannel()
        self.health = health
        self.batch_limit = batch_limit or settings.REPLAY_BATCH_LIMIT
        self.location_limit = location_limit or settings.LOCATION_SYNC_LIMIT
        self.upload_timeout = upload_timeout
        self._lock = threading.Lock()
        self.logged_out = False

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    # ── Entry points ─────────────────────────────────────────────────

    def run(self) -> RunReport:
        """One full pass: attendance actions, then location samples."""
        if not self._lock.acquire(blocking=False):
            logger.info("Replay already in progress, skipping")
            report = ReplayReport()
            report.skipped = True
            return RunReport(report, None)

        try:
            attendance = self._replay_attendance()
            locations = None
            if not attendance.auth_required:
                locations = self._sync_locations()
                if locations.auth_required:
                    self._handle_auth_failure()
            error = attendance.error or (locations.error if locations else None)
            self._publish(error)
            return RunReport(attendance, locations)
        finally:
            self._lock.release()

    def replay_attendance(self) -> ReplayReport:
        if not self._lock.acquire(blocking=False):
            report = ReplayReport()
            report.skipped = True
            return report
        try:
            report = self._replay_attendance()
            self._publish(report.error)
            return report
        finally:
            self._lock.release()

    def sync_locations(self) -> LocationSyncReport:
        if not self._lock.acquire(blocking=False):
            return LocationSyncReport(error="Replay already in progress")
        try:
            report = self._sync_locations()
            if report.auth_required:
                self._handle_auth_failure()
            self._publish(report.error)
            return report
        finally:
            self._lock.release()

    # ── Attendance ───────────────────────────────────────────────────

    def _send(self, action) -> object:
        if action.action_type == ActionType.TIME_IN.value:
            return self.client.time_in(action.latitude, action.longitude, self.device_id)
        return self.client.time_out(action.latitude, action.longitude)

    def _replay_attendance(self) -> ReplayReport:
        report = ReplayReport()
        pending = self.store.pending_actions(self.batch_limit)
        if not pending:
            return report

        for action in pending:
            if action.action_type not in RECONCILED_PATTERNS:
                self.store.delete_action(action.id)
                report.dropped += 1
                report.outcomes[action.id] = ActionOutcome.DROPPED
                logger.warning(f"Dropped pending action {action.id} with unknown type {action.action_type}")
                continue

            try:
                response = self._send(action)
            except AuthError as e:
                report.halted = True
                report.auth_required = True
                report.error = e.message
                report.outcomes[action.id] = ActionOutcome.AUTH_REQUIRED
                logger.warning(f"Replay halted at action {action.id}: authentication required")
                self._handle_auth_failure()
                break
            except (ServerError, TransientNetworkError) as e:
                self.store.mark_retry(action.id, e.message)
                report.halted = True
                report.error = e.message or "Server unavailable"
                report.outcomes[action.id] = ActionOutcome.RETRY
                logger.warning(f"Replay halted at action {action.id} ({action.action_type}): {report.error}")
                break
            except ClientError as e:
                self.store.delete_action(action.id)
                if is_reconciled_conflict(action.action_type, e):
                    report.processed += 1
                    report.outcomes[action.id] = ActionOutcome.RECONCILED
                    logger.info(f"Pending action {action.id} already applied on server")
                else:
                    report.dropped += 1
                    report.outcomes[action.id] = ActionOutcome.DROPPED
                    report.messages[action.id] = e.message
                    logger.warning(f"Dropped pending action {action.id} ({e.status_code}): {e.message}")
                continue

            self.store.delete_action(action.id)
            report.processed += 1
            report.outcomes[action.id] = ActionOutcome.SUCCEEDED
            report.responses[action.id] = response

        logger.info(f"Replayed {report.processed} pending attendance actions")
        return report

    # ── Locations ────────────────────────────────────────────────────

    def _sync_locations(self) -> LocationSyncReport:
        pending = self.store.pending_locations(self.location_limit)
        if not pending:
            return LocationSyncReport(synced=0)

        try:
            self.client.sync_locations(
                [loc.to_payload() for loc in pending],
                device_id=self.device_id,
                timeout=self.upload_timeout,
            )
        except AuthError as e:
            return LocationSyncReport(error=e.message, auth_required=True)
        except (ServerError, TransientNetworkError, ClientError) as e:
            logger.warning(f"Location sync failed, {len(pending)} samples stay queued: {e.message}")
            if self.health is not None:
                self.health.update_pending_count(self.store.pending_location_count())
            return LocationSyncReport(error=e.message or "Sync failed")

        self.store.delete_locations(loc.id for loc in pending)
        logger.info(f"Synced {len(pending)} locations")
        if self.health is not None:
            self.health.record_sync_success(datetime.utcnow(), self.store.pending_location_count())
        return LocationSyncReport(synced=len(pending))

    # ── Auth / state ─────────────────────────────────────────────────

    def _handle_auth_failure(self):
        """Queued records are kept whatever happens here."""
        refreshed = False
        if self.auth_refresher is not None:
            try:
                refreshed = bool(self.auth_refresher())
            except AuthRefreshFailed as e:
                logger.warning(f"Auth refresh failed: {e.message}")

        if refreshed:
            self.logged_out = False
            logger.info("Session refreshed, pending records will replay on the next run")
            return

        self.logged_out = True
        logger.warning("Session could not be refreshed, logging out; pending records are kept")
        if self.on_logout is not None:
            self.on_logout()

    def _publish(self, error: Optional[str]):
        self.channel.publish(SyncState(
            pending_actions=self.store.pending_action_count(),
            pending_locations=self.store.pending_location_count(),
            last_error=error,
            logged_out=self.logged_out,
        ))
