from datetime import datetime, timedelta

from fieldtrack.core.config import settings
from fieldtrack.models import LocationRecord, SpoofingAlert


def sample(lat, lon, at, **fields):
    return {"latitude": lat, "longitude": lon, "recorded_at": at.isoformat() + "Z", **fields}


class TestBatchUpload:

    def test_scores_server_side(self, client, db, employee):
        t0 = datetime(2026, 3, 2, 9, 0)
        resp = client.post("/api/locations/batch", json={
            "device_id": "pixel-7",
            "locations": [
                sample(28.6139, 77.209, t0, provider="gps", satellite_count=9),
                sample(28.6140, 77.209, t0 + timedelta(minutes=1), is_mock=True),
            ],
        })
        assert resp.status_code == 201
        assert resp.json() == {"synced": 2, "duplicates": 0}

        records = db.query(LocationRecord).order_by(LocationRecord.recorded_at).all()
        assert [r.risk_score for r in records] == [0, 40]
        assert db.query(SpoofingAlert).one().alert_type == "MOCK_LOCATION"

    def test_resubmission_is_idempotent(self, client, db):
        t0 = datetime(2026, 3, 2, 9, 0)
        payload = {"locations": [sample(0, 0, t0), sample(0.001, 0, t0 + timedelta(minutes=1))]}
        client.post("/api/locations/batch", json=payload)
        resp = client.post("/api/locations/batch", json=payload)
        assert resp.json() == {"synced": 0, "duplicates": 2}
        assert db.query(LocationRecord).count() == 2

    def test_empty_batch(self, client):
        assert client.post("/api/locations/batch", json={"locations": []}).status_code == 422

    def test_oversize_batch(self, client, db):
        t0 = datetime(2026, 3, 2, 9, 0)
        locations = [sample(0, 0, t0 + timedelta(seconds=i)) for i in range(settings.LOCATION_BATCH_MAX + 1)]
        assert client.post("/api/locations/batch", json={"locations": locations}).status_code == 422
        assert db.query(LocationRecord).count() == 0

    def test_timestamp_out_of_range(self, client, db):
        resp = client.post("/api/locations/batch", json={"locations": [
            {"latitude": 10, "longitude": 10, "recorded_at": 10 ** 20},
        ]})
        assert resp.status_code == 422
        assert db.query(LocationRecord).count() == 0

    def test_out_of_range_latitude(self, client, db):
        resp = client.post("/api/locations/batch", json={"locations": [sample(95, 0, datetime(2026, 3, 2))]})
        assert resp.status_code == 422
        assert db.query(LocationRecord).count() == 0


class TestRoute:

    def _upload_day(self, client):
        t0 = datetime(2026, 3, 2, 9, 0)
        client.post("/api/locations/batch", json={"locations": [
            sample(28.6139, 77.2090, t0),
            sample(28.6140, 77.2091, t0 + timedelta(minutes=3)),
            sample(28.6141, 77.2090, t0 + timedelta(minutes=6)),
            sample(28.6500, 77.2090, t0 + timedelta(minutes=30)),
        ]})

    def test_own_route(self, client):
        self._upload_day(client)
        resp = client.get("/api/locations/route", params={
            "start": "2026-03-02T00:00:00Z", "end": "2026-03-02T23:59:59Z",
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["location_count"] == 4
        assert body["active_minutes"] == 30
        assert len(body["stops"]) == 1
        assert body["stops"][0]["duration_minutes"] == 6
        assert body["total_distance_km"] > 3.9

    def test_bad_range(self, client):
        resp = client.get("/api/locations/route", params={
            "start": "2026-03-03T00:00:00Z", "end": "2026-03-02T00:00:00Z",
        })
        assert resp.status_code == 400

    def test_unparseable_timestamp(self, client):
        resp = client.get("/api/locations/route", params={"start": "yesterday", "end": "today"})
        assert resp.status_code == 400

    def test_other_employee_requires_manager(self, client, manager):
        resp = client.get("/api/locations/route", params={
            "start": "2026-03-02T00:00:00Z", "end": "2026-03-02T23:59:59Z", "employee_id": manager.id,
        })
        assert resp.status_code == 403

    def test_manager_can_view_employee(self, client, employee, manager, login_as):
        self._upload_day(client)
        login_as(manager)
        resp = client.get("/api/locations/route", params={
            "start": "2026-03-02T00:00:00Z", "end": "2026-03-02T23:59:59Z", "employee_id": employee.id,
        })
        assert resp.status_code == 200
        assert resp.json()["location_count"] == 4


class TestRecent:

    def test_employee_forbidden(self, client):
        assert client.get("/api/locations/recent").status_code == 403

    def test_latest_per_employee(self, client, employee, manager, login_as):
        now = datetime.utcnow()
        client.post("/api/locations/batch", json={"locations": [
            sample(28.61, 77.20, now - timedelta(minutes=30)),
            sample(28.62, 77.20, now - timedelta(minutes=4)),
            sample(28.63, 77.20, now - timedelta(minutes=2)),
        ]})
        login_as(manager)
        body = client.get("/api/locations/recent").json()
        assert len(body) == 1
        assert body[0]["employee_code"] == "EMP001"
        assert body[0]["latitude"] == 28.63


def test_geofence_check(client, office):
    resp = client.get("/api/geofences/check-my", params={"latitude": 28.6139, "longitude": 77.209})
    assert resp.status_code == 200
    body = resp.json()
    assert body["has_assigned_geofences"] is True
    assert body["inside_any_geofence"] is True
    assert body["policy"] in ("WARN", "BLOCK")
    assert body["geofences"][0]["name"] == "Head Office"


def test_geofence_check_without_assignments(client):
    body = client.get("/api/geofences/check-my", params={"latitude": 0, "longitude": 0}).json()
    assert body["has_assigned_geofences"] is False
    assert body["geofences"] == []


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
