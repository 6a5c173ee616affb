from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_PHONE = "INVALID_PHONE"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONNECTION_LOST = "CONNECTION_LOST"
    LOGGED_OUT = "LOGGED_OUT"
    INTERNAL = "INTERNAL"


class PairbotError(Exception):
    http_status: int = 500

    def __init__(self, message: str, error_code: ErrorCode, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.error_code.value,
            "message": str(self),
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PairbotError):
    http_status = 400

    def __init__(self, message: str | None = None, error_code: ErrorCode = ErrorCode.INVALID_REQUEST):
        super().__init__(message or "Invalid request", error_code)


class PhoneValidationError(ValidationError):
    def __init__(self, message: str | None = None):
        msg = message or "Invalid phone number format. Please use format: 723278526 or +254723278526"
        super().__init__(msg, ErrorCode.INVALID_PHONE)


class NotFoundError(PairbotError):
    # Unknown codes are a normal answer, not an HTTP failure
    http_status = 200

    def __init__(self, message: str | None = None):
        super().__init__(message or "Invalid pairing code", ErrorCode.NOT_FOUND)


class RateLimitError(PairbotError):
    http_status = 429

    def __init__(self, retry_after: int, message: str | None = None):
        msg = message or "Too many requests, please try again later"
        super().__init__(msg, ErrorCode.RATE_LIMITED, {"retryAfter": retry_after})
        self.retry_after = retry_after


class AdminAccessError(PairbotError):
    http_status = 401

    def __init__(self, message: str | None = None, forbidden: bool = False):
        code = ErrorCode.FORBIDDEN if forbidden else ErrorCode.UNAUTHORIZED
        super().__init__(message or "Admin API key required", code)
        if forbidden:
            self.http_status = 403


class TransientConnectionError(PairbotError):
    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(
            message or "Connection lost",
            ErrorCode.CONNECTION_LOST,
            {"statusCode": status_code} if status_code is not None else None,
        )
        self.status_code = status_code


class FatalLogoutError(TransientConnectionError):
    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(message or "Logged out from WhatsApp", status_code)
        self.error_code = ErrorCode.LOGGED_OUT


class InternalError(PairbotError):
    def __init__(self, message: str | None = None):
        super().__init__(message or "Internal Server Error", ErrorCode.INTERNAL)


__all__ = [
    "ErrorCode",
    "PairbotError",
    "ValidationError",
    "PhoneValidationError",
    "NotFoundError",
    "RateLimitError",
    "AdminAccessError",
    "TransientConnectionError",
    "FatalLogoutError",
    "InternalError",
]
