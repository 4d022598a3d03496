"""Result type for synchronous client calls and a channel for async state.

Client operations return one of Success / Error / Pending instead of raising:
a clock action that could not be confirmed yet is Pending, not an error.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class Result:
    is_success = False
    is_error = False
    is_pending = False


class Success(Result):
    is_success = True

    def __init__(self, data: Any = None):
        self.data = data

    def __repr__(self):
        return f"Success({self.data!r})"


class Error(Result):
    is_error = True

    def __init__(self, message: str, requires_reauth: bool = False):
        self.message = message
        self.requires_reauth = requires_reauth

    def __repr__(self):
        return f"Error({self.message!r})"


class Pending(Result):
    is_pending = True

    def __init__(self, message: str = "pending attendance action", action_id: Optional[int] = None):
        self.message = message
        self.action_id = action_id

    def __repr__(self):
        return f"Pending({self.message!r}, action_id={self.action_id})"


class SyncState:
    """Snapshot published after every replay run."""

    def __init__(
        self,
        pending_actions: int,
        pending_locations: int,
        last_error: Optional[str] = None,
        logged_out: bool = False,
        at: Optional[datetime] = None,
    ):
        self.pending_actions = pending_actions
        self.pending_locations = pending_locations
        self.last_error = last_error
        self.logged_out = logged_out
        self.at = at or datetime.utcnow()

    def __repr__(self):
        return (
            f"SyncState(pending_actions={self.pending_actions}, "
            f"pending_locations={self.pending_locations}, logged_out={self.logged_out})"
        )


class StateChannel:
    """Thread-safe publish/subscribe for SyncState updates."""

    def __init__(self):
        self._subscribers: List[Callable[[SyncState], None]] = []
        self._lock = threading.Lock()
        self.last: Optional[SyncState] = None

    def subscribe(self, callback: Callable[[SyncState], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    def publish(self, state: SyncState):
        with self._lock:
            self.last = state
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"State subscriber failed: {e}", exc_info=True)
