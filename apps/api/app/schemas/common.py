"""Common Pydantic schemas used across the API."""

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class HealthResponse(BaseSchema):
    """Health check response schema."""

    status: str
    version: str
    environment: str
    checks: dict[str, str]


class ErrorResponse(BaseSchema):
    """Error envelope returned by every endpoint on failure."""

    ok: Literal[False] = False
    code: str
    message: str


T = TypeVar("T")


class ApiSuccess(BaseSchema, Generic[T]):
    """Success envelope used by the newer endpoints."""

    ok: Literal[True] = True
    data: T


class ActionResponse(BaseSchema):
    """Bare acknowledgement returned by the legacy endpoints."""

    success: bool
    message: str
