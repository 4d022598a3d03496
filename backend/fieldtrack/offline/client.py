"""HTTP client the device uses to talk to the FieldTrack API.

Bearer tokens come from an external auth collaborator (`token_provider`).
Failures are raised as the typed errors in `fieldtrack.offline.exceptions`.
"""
import logging
from typing import Callable, List, Optional

import requests

from fieldtrack.core.config import settings
from fieldtrack.offline.exceptions import (
    AuthError, ClientError, ServerError, TransientNetworkError, error_message,
)

logger = logging.getLogger(__name__)


class FieldTrackClient:

    def __init__(
        self,
        token_provider: Callable[[], Optional[str]],
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout or settings.REQUEST_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, timeout: Optional[float] = None, **kwargs):
        headers = {"Content-Type": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = self.session.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                timeout=timeout or self.timeout,
                **kwargs,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientNetworkError(str(e) or "Network unavailable")

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code < 400:
            return body

        detail = body.get("detail") if isinstance(body, dict) else None
        message = error_message(detail, default=resp.text[:200] or f"HTTP {resp.status_code}")

        if resp.status_code == 401:
            raise AuthError(resp.status_code, message, detail)
        if resp.status_code >= 500:
            logger.warning(f"{method} {path} returned {resp.status_code}: {message}")
            raise ServerError(resp.status_code, message, detail)
        raise ClientError(resp.status_code, message, detail)

    # ── Attendance ───────────────────────────────────────────────────

    def time_in(self, latitude: float, longitude: float, device_id: Optional[str] = None) -> dict:
        return self._request(
            "POST", "/api/attendance/time-in",
            json={"latitude": latitude, "longitude": longitude, "device_id": device_id},
        )

    def time_out(self, latitude: float, longitude: float) -> dict:
        return self._request(
            "POST", "/api/attendance/time-out",
            json={"latitude": latitude, "longitude": longitude},
        )

    def today(self) -> Optional[dict]:
        return self._request("GET", "/api/attendance/today")

    # ── Geofences ────────────────────────────────────────────────────

    def check_geofences(self, latitude: float, longitude: float) -> dict:
        return self._request(
            "GET", "/api/geofences/check-my",
            params={"latitude": latitude, "longitude": longitude},
        )

    # ── Locations ────────────────────────────────────────────────────

    def sync_locations(
        self,
        locations: List[dict],
        device_id: Optional[str] = None,
        integrity_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        return self._request(
            "POST", "/api/locations/batch",
            timeout=timeout,
            json={"locations": locations, "device_id": device_id, "integrity_token": integrity_token},
        )
