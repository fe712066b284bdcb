from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """A request the API answered with a non-success status."""

    def __init__(self, status: int | None, message: str, payload: Any = None):
        self.status = status
        self.message = message
        self.payload = payload
        super().__init__(f"{status}: {message}" if status else message)

    @classmethod
    def from_response(cls, response) -> "ApiError":
        try:
            payload = response.json()
        except ValueError:
            payload = None
        message = response.reason_phrase or "Request failed"
        if isinstance(payload, dict) and payload.get("message"):
            message = payload["message"]
        error_cls = AuthenticationError if response.status_code == 401 else cls
        return error_cls(response.status_code, message, payload)


class AuthenticationError(ApiError):
    """401 from the API. The only failure the session recovers from by refreshing."""


class RequestFailed(ApiError):
    """Transport failure or timeout; never retried."""

    def __init__(self, message: str):
        super().__init__(None, message)
