"""Customer order endpoints: checkout, history and cancellation."""

from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.deps import CurrentUserId, DBSession
from app.core.rate_limit import limiter, rate_limit
from app.schemas.order import (
    CancelOrderRequest,
    CancelOrderResponse,
    CustomerOrderResponse,
    OrderCreated,
    OrderCreateRequest,
)
from app.services.cancellation_service import CancellationService
from app.services.order_service import OrderService

router = APIRouter()

create_order_limit = rate_limit(
    "orders:create",
    max_tokens=settings.order_rate_limit_max,
    window_ms=settings.order_rate_limit_window_ms,
)
cancel_order_limit = rate_limit(
    "orders:cancel",
    max_tokens=settings.cancel_rate_limit_max,
    window_ms=settings.cancel_rate_limit_window_ms,
)


@router.post(
    "",
    response_model=OrderCreated,
    dependencies=[Depends(create_order_limit)],
)
async def create_order(
    data: OrderCreateRequest,
    user_id: CurrentUserId,
    db: DBSession,
) -> OrderCreated:
    """Place a cash-on-delivery order and return its id.

    Rate limited to 20 requests per minute per IP.
    """
    service = OrderService(db)
    order_id = await service.create_order(user_id, data)
    return OrderCreated(order_id=order_id)


@router.get("", response_model=list[CustomerOrderResponse])
@limiter.limit("60/minute")
async def list_my_orders(
    request: Request,  # noqa: ARG001 (slowapi reads it)
    user_id: CurrentUserId,
    db: DBSession,
) -> list[CustomerOrderResponse]:
    """The caller's order history, newest first. Polled by the orders page."""
    service = OrderService(db)
    orders = await service.list_orders_for_user(user_id)
    return [CustomerOrderResponse.model_validate(order) for order in orders]


@router.post(
    "/cancel",
    response_model=CancelOrderResponse,
    dependencies=[Depends(cancel_order_limit)],
)
async def cancel_order(
    data: CancelOrderRequest,
    user_id: CurrentUserId,
    db: DBSession,
) -> CancelOrderResponse:
    """Cancel a confirmed COD order within 5 minutes of placing it."""
    service = CancellationService(db)
    result = await service.cancel_by_customer(data.order_id, user_id)
    return CancelOrderResponse(
        success=True,
        message="Order cancelled successfully",
        refund=result.refund,
    )
