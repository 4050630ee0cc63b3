"""Pydantic schemas for request/response validation."""

from app.schemas.common import ActionResponse, ApiSuccess, ErrorResponse, HealthResponse

__all__ = [
    "ActionResponse",
    "ApiSuccess",
    "HealthResponse",
    "ErrorResponse",
]
