"""API v1 router combining all route modules."""

from typing import Any

from fastapi import APIRouter

from app.api.v1 import admin_orders, health, orders, profile
from app.schemas.common import ErrorResponse

# Documented error envelope for the authenticated route groups
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status_code: {"model": ErrorResponse} for status_code in (400, 401, 403, 404, 429, 500)
}

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Checkout, order history, cancellation (customer auth)
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["orders"],
    responses=ERROR_RESPONSES,
)

# Admin console (auth + admins table membership)
api_router.include_router(
    admin_orders.router,
    prefix="/admin/orders",
    tags=["admin"],
    responses=ERROR_RESPONSES,
)

# Profile, cities, loyalty, referral (no prefix; paths are spelled out)
api_router.include_router(
    profile.router,
    tags=["profile"],
    responses=ERROR_RESPONSES,
)
