"""Background scheduling for replay runs.

A ScheduledTask runs one callable on its own daemon thread:

- periodically, every `interval_seconds`
- immediately, when `trigger()` is called (connectivity regained, app brought
  to the foreground, explicit user action)
- only while `is_connected()` holds
- after a failed run, again after an exponential backoff capped at
  `backoff_max_seconds`

A task name maps to exactly one task and one thread, so runs of the same
task never overlap and repeated triggers collapse into a single run.
"""
import logging
import threading
from typing import Callable, Dict, Optional

from fieldtrack.core.config import settings

logger = logging.getLogger(__name__)

REPLAY_TASK_NAME = "attendance_replay"


def backoff_delay(failures: int, base_seconds: float, max_seconds: float) -> float:
    if failures <= 0:
        return 0.0
    return min(base_seconds * (2 ** (failures - 1)), max_seconds)


class ScheduledTask:

    def __init__(
        self,
        name: str,
        func: Callable[[], bool],
        interval_seconds: float,
        is_connected: Optional[Callable[[], bool]] = None,
        backoff_base_seconds: float = 30.0,
        backoff_max_seconds: float = 900.0,
    ):
        self.name = name
        self.func = func
        self.interval_seconds = interval_seconds
        self.is_connected = is_connected or (lambda: True)
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.failures = 0
        self._wake = threading.Event()
        self._stopped = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def next_delay(self) -> float:
        if self.failures:
            return backoff_delay(self.failures, self.backoff_base_seconds, self.backoff_max_seconds)
        return self.interval_seconds

    def run_once(self) -> Optional[bool]:
        """Run now if connected. Returns None when the run did not happen."""
        if not self.is_connected():
            logger.debug(f"{self.name}: no connectivity, skipping run")
            return None
        if not self._run_lock.acquire(blocking=False):
            return None
        try:
            ok = bool(self.func())
        except Exception as e:
            logger.error(f"{self.name} failed: {e}", exc_info=True)
            ok = False
        finally:
            self._run_lock.release()

        if ok:
            self.failures = 0
        else:
            self.failures += 1
            logger.warning(f"{self.name}: run failed, retrying in {self.next_delay:.0f}s")
        return ok

    def trigger(self):
        self._wake.set()

    def _loop(self):
        logger.info(f"Background task {self.name} started (every {self.interval_seconds:.0f}s)")
        while not self._stopped.is_set():
            self.run_once()
            self._wake.wait(timeout=self.next_delay)
            self._wake.clear()
        logger.info(f"Background task {self.name} stopped")

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self._loop, name=f"task-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        self._stopped.set()
        self._wake.set()
        if self._thread:
            self._thread.join(timeout)

    @property
    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())


class TaskScheduler:
    """Registry of named tasks; registering a name twice keeps the first task."""

    def __init__(self):
        self._tasks: Dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()

    def register(self, task: ScheduledTask) -> ScheduledTask:
        with self._lock:
            existing = self._tasks.get(task.name)
            if existing is not None:
                return existing
            self._tasks[task.name] = task
            return task

    def get(self, name: str) -> Optional[ScheduledTask]:
        return self._tasks.get(name)

    def trigger(self, name: str):
        task = self._tasks.get(name)
        if task is not None:
            task.trigger()

    def start_all(self):
        for task in list(self._tasks.values()):
            task.start()

    def stop_all(self, timeout: Optional[float] = None):
        for task in list(self._tasks.values()):
            task.stop(timeout)


class ReplayScheduler:
    """Wires the replay coordinator into a scheduler with the usual triggers."""

    def __init__(
        self,
        coordinator,
        is_connected: Callable[[], bool],
        scheduler: Optional[TaskScheduler] = None,
        interval_minutes: Optional[float] = None,
        backoff_base_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
    ):
        self.coordinator = coordinator
        self.scheduler = scheduler or TaskScheduler()
        self.task = self.scheduler.register(ScheduledTask(
            REPLAY_TASK_NAME,
            self._run,
            interval_seconds=(interval_minutes or settings.REPLAY_INTERVAL_MINUTES) * 60,
            is_connected=is_connected,
            backoff_base_seconds=backoff_base_seconds or settings.REPLAY_BACKOFF_BASE_SECONDS,
            backoff_max_seconds=backoff_max_seconds or settings.REPLAY_BACKOFF_MAX_SECONDS,
        ))

    def _run(self) -> bool:
        report = self.coordinator.run()
        if report.skipped:
            return True
        return not report.needs_retry

    def start(self):
        self.scheduler.start_all()

    def stop(self, timeout: Optional[float] = None):
        self.scheduler.stop_all(timeout)

    def on_connectivity_regained(self):
        logger.info("Connectivity regained, requesting replay")
        self.task.trigger()

    def on_app_foreground(self):
        self.task.trigger()

    def request_sync(self):
        self.task.trigger()
