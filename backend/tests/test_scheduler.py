import threading
from unittest import mock

import pytest

from fieldtrack.offline.scheduler import (
    REPLAY_TASK_NAME, ReplayScheduler, ScheduledTask, TaskScheduler, backoff_delay,
)


@pytest.mark.parametrize(
    "failures,expected",
    [(0, 0), (1, 30), (2, 60), (3, 120), (5, 480), (6, 900), (20, 900)],
)
def test_backoff_delay_is_capped(failures, expected):
    assert backoff_delay(failures, 30, 900) == expected


class TestScheduledTask:

    def test_requires_connectivity(self):
        func = mock.Mock(return_value=True)
        task = ScheduledTask("sync", func, interval_seconds=900, is_connected=lambda: False)
        assert task.run_once() is None
        func.assert_not_called()

    def test_failures_back_off_then_reset(self):
        outcomes = iter([False, False, True])
        task = ScheduledTask("sync", lambda: next(outcomes), interval_seconds=900,
                             backoff_base_seconds=30, backoff_max_seconds=900)

        task.run_once()
        assert task.next_delay == 30
        task.run_once()
        assert task.next_delay == 60
        task.run_once()
        assert task.failures == 0
        assert task.next_delay == 900

    def test_exception_counts_as_failure(self):
        task = ScheduledTask("sync", mock.Mock(side_effect=RuntimeError("boom")), interval_seconds=900)
        assert task.run_once() is False
        assert task.failures == 1

    def test_trigger_runs_immediately(self):
        ran = []
        second_run = threading.Event()

        def work():
            ran.append(True)
            if len(ran) == 2:
                second_run.set()
            return True

        task = ScheduledTask("sync", work, interval_seconds=3600)
        task.start()
        try:
            task.trigger()
            assert second_run.wait(timeout=5)
        finally:
            task.stop(timeout=5)
        assert not task.is_alive


class TestTaskScheduler:

    def test_same_name_registers_once(self):
        scheduler = TaskScheduler()
        first = scheduler.register(ScheduledTask("sync", lambda: True, 900))
        second = scheduler.register(ScheduledTask("sync", lambda: False, 60))
        assert second is first
        assert scheduler.get("sync").interval_seconds == 900

    def test_trigger_unknown_name_is_ignored(self):
        TaskScheduler().trigger("missing")


class FakeReport:
    def __init__(self, skipped=False, needs_retry=False):
        self.skipped = skipped
        self.needs_retry = needs_retry


class TestReplayScheduler:

    def _scheduler(self, report, connected=True):
        coordinator = mock.Mock()
        coordinator.run.return_value = report
        return ReplayScheduler(coordinator, is_connected=lambda: connected, interval_minutes=15,
                               backoff_base_seconds=30, backoff_max_seconds=900)

    def test_interval_from_minutes(self):
        replay = self._scheduler(FakeReport())
        assert replay.task.name == REPLAY_TASK_NAME
        assert replay.task.interval_seconds == 900

    def test_retry_needed_backs_off(self):
        replay = self._scheduler(FakeReport(needs_retry=True))
        assert replay.task.run_once() is False
        assert replay.task.next_delay == 30

    def test_skipped_run_is_not_a_failure(self):
        replay = self._scheduler(FakeReport(skipped=True))
        assert replay.task.run_once() is True
        assert replay.task.failures == 0

    def test_offline_does_not_touch_coordinator(self):
        replay = self._scheduler(FakeReport(), connected=False)
        replay.task.run_once()
        replay.coordinator.run.assert_not_called()

    def test_triggers_wake_the_task(self):
        replay = self._scheduler(FakeReport())
        with mock.patch.object(replay.task, "trigger") as trigger:
            replay.on_connectivity_regained()
            replay.on_app_foreground()
            replay.request_sync()
        assert trigger.call_count == 3
