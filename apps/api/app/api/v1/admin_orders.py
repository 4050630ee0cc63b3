"""Admin console order endpoints."""

import logging

from fastapi import APIRouter, Request

from app.core.deps import AdminUserId, DBSession
from app.core.errors import ValidationFailed
from app.core.rate_limit import limiter
from app.schemas.common import ActionResponse
from app.schemas.order import AdminOrderResponse, AdminOrderUpdateRequest
from app.services.order_service import OrderService
from app.services.order_status_service import OrderStatusService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[AdminOrderResponse])
@limiter.limit("120/minute")
async def list_all_orders(
    request: Request,  # noqa: ARG001 (slowapi reads it)
    admin_id: AdminUserId,  # noqa: ARG001
    db: DBSession,
) -> list[AdminOrderResponse]:
    """All orders with customer details, newest first."""
    service = OrderService(db)
    orders = await service.list_all_orders()
    return [AdminOrderResponse.model_validate(order) for order in orders]


@router.put("", response_model=ActionResponse)
async def update_order(
    data: AdminOrderUpdateRequest,
    admin_id: AdminUserId,
    db: DBSession,
) -> ActionResponse:
    """Change an order's status, or confirm delivery with the customer's OTP.

    When both ``otp`` and ``status`` are sent, only the OTP is processed.
    """
    service = OrderStatusService(db)

    if data.otp is not None:
        await service.verify_delivery_otp(data.order_id, data.otp)
        logger.info("Admin %s confirmed delivery of order %s", admin_id, data.order_id)
        return ActionResponse(success=True, message="Order marked as delivered.")

    if data.status is None:
        raise ValidationFailed("No valid action specified (status or OTP).")
    await service.update_status(data.order_id, data.status)
    logger.info("Admin %s set order %s to %s", admin_id, data.order_id, data.status.value)
    return ActionResponse(success=True, message="Order status updated.")
