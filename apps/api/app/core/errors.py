"""Domain errors and the JSON error envelope.

Every error that reaches a client is rendered as
``{"ok": false, "code": <machine code>, "message": <human text>}`` with the
HTTP status attached to the error class.
"""

from typing import Any

from fastapi import status
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.headers = headers
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        return error_response(self.code, self.message, self.status_code, headers=self.headers)


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    message = "Invalid request"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Forbidden"


class NotAdmin(Forbidden):
    code = "not_admin"
    message = "Forbidden: Not an admin"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Not found"


class Conflict(AppError):
    """A request that is well-formed but illegal in the order's current state."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "conflict"
    message = "Order is not in a valid state for this action"


class AlreadyCancelled(Conflict):
    code = "already_cancelled"
    message = "Order already cancelled"


class CannotUpdateCancelled(Conflict):
    code = "cannot_update_cancelled"
    message = "Cannot modify a cancelled order"


class CannotUpdateDelivered(Conflict):
    code = "cannot_update_delivered"
    message = "Cannot modify a delivered order"


class InvalidOtp(Conflict):
    code = "invalid_otp"
    message = "Invalid OTP."


class WindowExpired(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "window_expired"
    message = "Cancel window expired (5 minutes)"


class IncompleteProfile(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "incomplete_profile"
    message = "Please complete your profile with a delivery city before ordering"


class CityUnserviceable(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "city_unserviceable"
    message = "City is not serviceable."


class InsufficientPoints(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "insufficient_points"
    message = "Not enough loyalty points"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    message = "Too many requests"


class OrderFailed(AppError):
    code = "order_failed"
    message = "Could not place order"


class InternalError(AppError):
    pass


class ServiceUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "service_unavailable"
    message = "Service temporarily unavailable"


_STATUS_CODES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "validation_error",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_429_TOO_MANY_REQUESTS: "rate_limited",
}


def code_for_status(status_code: int) -> str:
    """Best machine code for a bare HTTP status (used for framework errors)."""
    if status_code >= 500:
        return "internal_error"
    return _STATUS_CODES.get(status_code, "error")


def error_response(
    code: str,
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    *,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render the error envelope."""
    body: dict[str, Any] = {"ok": False, "code": code, "message": message}
    return JSONResponse(status_code=status_code, content=body, headers=headers)
