"""Errors raised by the device-side API client.

The replay coordinator decides what happens to a queued record from the
exception type alone:

    TransientNetworkError  keep, retry later, halt the run
    ServerError            keep, retry later, halt the run
    AuthError              keep, halt, hand over to the auth refresher
    ClientError            drop (unless it is a reconciled conflict)
"""
from typing import Any, Optional


class OfflineError(Exception):
    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class TransientNetworkError(OfflineError):
    """No connectivity or the request timed out."""


class HTTPStatusError(OfflineError):
    def __init__(self, status_code: int, message: str = "", detail: Any = None):
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.detail = detail


class ServerError(HTTPStatusError):
    """5xx from the server."""


class AuthError(HTTPStatusError):
    """Expired or invalid credential."""


class ClientError(HTTPStatusError):
    """4xx other than 401."""


class AuthRefreshFailed(OfflineError):
    """The auth collaborator could not renew the session."""


def error_message(detail: Any, default: Optional[str] = None) -> str:
    """Human-readable message from a FastAPI `detail` payload."""
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        message = detail.get("message") or default or ""
        names = detail.get("geofences")
        policy = detail.get("policy")
        if names:
            message = f"{message} (policy {policy}): {', '.join(str(n) for n in names)}"
        return message
    if isinstance(detail, list) and detail:
        first = detail[0]
        if isinstance(first, dict) and "msg" in first:
            return str(first["msg"])
    return default or ""
