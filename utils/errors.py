"""
Application error taxonomy.

Every error that crosses the HTTP boundary is an AppError subclass carrying a
status code, a stable machine code and a human message. Layers catch the
concrete class they care about instead of inspecting attributes.
"""
from __future__ import annotations

from typing import Any


class AppError(Exception):
    status = 500
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"error": self.code, "message": self.message, "status": self.status}
        if self.details:
            payload["details"] = self.details
        return payload


class BadRequest(AppError):
    status = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class Unauthorized(AppError):
    status = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class Forbidden(AppError):
    status = 403
    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFound(AppError):
    status = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class Conflict(AppError):
    # Clients treat a taken email as a bad request; the code stays distinct
    status = 400
    code = "CONFLICT"
    default_message = "Conflict"


class TooManyRequests(AppError):
    status = 429
    code = "TOO_MANY_REQUESTS"
    default_message = "Too many requests from this IP, please try again later."


class InternalError(AppError):
    pass
