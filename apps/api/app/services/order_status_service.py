"""Admin-driven status changes and OTP-confirmed delivery."""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    CannotUpdateCancelled,
    CannotUpdateDelivered,
    Conflict,
    InternalError,
    InvalidOtp,
    NotFound,
)
from app.core.security import otp_matches
from app.models.base import utcnow
from app.models.order import Order, OrderStatus
from app.services.cancellation_service import ADMIN_CANCEL_REASON, CancellationService

logger = logging.getLogger(__name__)


class OrderStatusService:
    """Status writes issued from the admin console.

    Cancelled and delivered orders are frozen. Apart from that, the requested
    status is applied as-is; the console only offers the next legal step.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def update_status(self, order_id: int, target: OrderStatus) -> Order:
        order = await self._get_mutable_order(order_id)

        if target == OrderStatus.CANCELLED:
            await CancellationService(self.db).apply(
                order,
                reason=ADMIN_CANCEL_REASON,
                expected_status=order.status,
            )
            await self.db.refresh(order)
            return order

        previous = order.status
        await self._compare_and_set(order, previous, target)
        logger.info("Order %s status %s -> %s", order_id, previous.value, target.value)
        return order

    async def verify_delivery_otp(self, order_id: int, otp: str) -> Order:
        """Mark the order delivered if ``otp`` matches the stored code.

        Cancellation wins over delivery: a cancelled order is rejected before
        the code is even compared.
        """
        order = await self._get_mutable_order(order_id)

        if not otp_matches(order.otp, otp):
            logger.warning("Invalid delivery OTP submitted for order %s", order_id)
            raise InvalidOtp()

        await self._compare_and_set(order, order.status, OrderStatus.DELIVERED)
        logger.info("Order %s delivered (OTP verified)", order_id)
        return order

    async def _get_mutable_order(self, order_id: int) -> Order:
        try:
            order = (
                await self.db.execute(select(Order).where(Order.id == order_id))
            ).scalar_one_or_none()
        except SQLAlchemyError:
            logger.exception("Failed to load order %s", order_id)
            raise InternalError("Could not update order.")

        if order is None:
            raise NotFound("Order not found.")
        if order.is_cancelled:
            raise CannotUpdateCancelled()
        if order.status == OrderStatus.DELIVERED:
            raise CannotUpdateDelivered()
        return order

    async def _compare_and_set(
        self,
        order: Order,
        expected: OrderStatus,
        target: OrderStatus,
    ) -> None:
        """Write ``target`` only if nobody changed the status since we read it."""
        order_id = order.id
        try:
            result = await self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == expected)
                .values(status=target, updated_at=utcnow())
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                await self.db.rollback()
                raise Conflict("Order status changed, please refresh and try again")
            await self.db.commit()
            await self.db.refresh(order)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to update order %s", order_id)
            raise InternalError("Could not update order.")
