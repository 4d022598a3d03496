import threading
from datetime import datetime, timedelta

import pytest

from fieldtrack.offline.health import TrackingHealthStore, accuracy_bucket
from fieldtrack.offline.store import ActionType, OfflineActionStore

T0 = datetime(2026, 3, 2, 9, 0)


@pytest.fixture
def store(tmp_path):
    return OfflineActionStore(f"sqlite:///{tmp_path / 'offline.db'}")


class TestPendingActions:

    def test_ordered_by_timestamp_then_insertion(self, store):
        late = store.enqueue_action(ActionType.TIME_OUT, 1, 1, T0 + timedelta(hours=8))
        first = store.enqueue_action(ActionType.TIME_IN, 1, 1, T0)
        tie = store.enqueue_action(ActionType.TIME_OUT, 2, 2, T0)

        assert [a.id for a in store.pending_actions()] == [first, tie, late]

    def test_limit(self, store):
        for i in range(5):
            store.enqueue_action(ActionType.TIME_IN, 0, 0, T0 + timedelta(minutes=i))
        assert len(store.pending_actions(limit=2)) == 2

    def test_mark_retry(self, store):
        action_id = store.enqueue_action(ActionType.TIME_IN, 0, 0, T0)
        store.mark_retry(action_id, "Server unavailable")
        store.mark_retry(action_id, "Gateway timeout")

        action = store.get_action(action_id)
        assert action.retry_count == 2
        assert action.last_error == "Gateway timeout"

    def test_delete(self, store):
        action_id = store.enqueue_action("TIME_IN", 0, 0, T0)
        assert store.delete_action(action_id) is True
        assert store.delete_action(action_id) is False
        assert store.pending_action_count() == 0

    @pytest.mark.parametrize("latitude,longitude", [(91, 0), (0, -181), (float("nan"), 0)])
    def test_invalid_coordinates_rejected(self, store, latitude, longitude):
        with pytest.raises(ValueError):
            store.enqueue_action(ActionType.TIME_IN, latitude, longitude, T0)
        assert store.pending_action_count() == 0

    def test_unknown_action_type_rejected(self, store):
        with pytest.raises(ValueError):
            store.enqueue_action("BREAK_START", 0, 0, T0)

    def test_survives_reopen(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'offline.db'}"
        OfflineActionStore(url).enqueue_action(ActionType.TIME_IN, 12.9, 77.6, T0)

        reopened = OfflineActionStore(url)
        actions = reopened.pending_actions()
        assert len(actions) == 1
        assert actions[0].action_type == "TIME_IN"
        assert actions[0].action_timestamp == T0


class TestPendingLocations:

    @pytest.mark.parametrize(
        "latitude,longitude",
        [(95.0, 10.0), (-90.5, 0.0), (10.0, 181.0), (float("nan"), 0.0), (0.0, float("inf")), (None, 0.0)],
    )
    def test_invalid_coordinates_never_queued(self, store, latitude, longitude):
        with pytest.raises(ValueError):
            store.save_location(latitude=latitude, longitude=longitude, recorded_at=T0)
        assert store.pending_location_count() == 0

    def test_invalid_battery_level_never_queued(self, store):
        with pytest.raises(ValueError):
            store.save_location(latitude=0, longitude=0, recorded_at=T0, battery_level=140)
        assert store.pending_location_count() == 0

    def test_bounds_are_inclusive(self, store):
        store.save_location(latitude=90, longitude=-180, recorded_at=T0)
        assert store.pending_location_count() == 1

    def test_save_and_payload(self, store):
        store.save_location(latitude=12.9, longitude=77.6, recorded_at=T0, is_mock=True, satellite_count=7)
        [location] = store.pending_locations()
        payload = location.to_payload()
        assert payload["recorded_at"] == "2026-03-02T09:00:00Z"
        assert payload["is_mock"] is True
        assert payload["satellite_count"] == 7

    def test_unknown_field_rejected(self, store):
        with pytest.raises(ValueError):
            store.save_location(latitude=0, longitude=0, recorded_at=T0, risk_score=90)

    def test_delete_only_uploaded_ids(self, store):
        ids = [store.save_location(latitude=0, longitude=i, recorded_at=T0 + timedelta(seconds=i)) for i in range(3)]
        assert store.delete_locations(ids[:2]) == 2
        assert store.pending_location_count() == 1
        assert store.delete_locations([]) == 0

    def test_appends_during_scan(self, store):
        for i in range(20):
            store.save_location(latitude=0, longitude=0, recorded_at=T0 + timedelta(seconds=i))

        def append_more():
            for i in range(20, 40):
                store.save_location(latitude=0, longitude=0, recorded_at=T0 + timedelta(seconds=i))

        writer = threading.Thread(target=append_more)
        writer.start()
        scanned = store.pending_locations(limit=20)
        store.delete_locations(loc.id for loc in scanned)
        writer.join(timeout=10)

        assert len(scanned) == 20
        assert store.pending_location_count() == 20


@pytest.mark.parametrize(
    "accuracy,bucket",
    [
        (None, "Unknown"),
        (0, "Unknown"),
        (8, "Excellent (<=10m)"),
        (10, "Excellent (<=10m)"),
        (25, "Good (11-25m)"),
        (40, "Fair (26-50m)"),
        (120, "Poor (>50m)"),
    ],
)
def test_accuracy_bucket(accuracy, bucket):
    assert accuracy_bucket(accuracy) == bucket


class TestTrackingHealth:

    def test_defaults(self, store):
        stats = TrackingHealthStore(store).get_stats()
        assert stats["last_location_at"] is None
        assert stats["pending_location_count"] == 0
        assert stats["gps_accuracy_bucket"] == "Unknown"

    def test_location_then_sync(self, store):
        health = TrackingHealthStore(store)
        health.record_location_event(T0, 18.0, True, pending_count=3)
        health.record_sync_success(T0 + timedelta(minutes=15), pending_count=0)

        stats = health.get_stats()
        assert stats["last_location_at"] == T0
        assert stats["last_successful_sync_at"] == T0 + timedelta(minutes=15)
        assert stats["pending_location_count"] == 0
        assert stats["gps_accuracy_bucket"] == "Good (11-25m)"
        assert stats["mock_location_warning"] is True
