"""Order cancellation and the loyalty refund that follows it.

A cancellation has two outcomes that are reported separately:

1. the status flip to ``cancelled``, which decides whether the call succeeds;
2. the refund of ``points_used``, which is attempted only after the flip is
   committed. If the refund fails the order stays cancelled, the failure is
   logged and returned as ``refund.status == "failed"`` so the balance drift is
   visible.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    AlreadyCancelled,
    Conflict,
    Forbidden,
    InternalError,
    NotFound,
    WindowExpired,
)
from app.models.base import as_utc, utcnow
from app.models.loyalty import TransactionType
from app.models.order import Order, OrderStatus, PaymentMethod
from app.schemas.order import RefundOutcome
from app.services.loyalty_service import LoyaltyService

logger = logging.getLogger(__name__)

CUSTOMER_CANCEL_REASON = "Cancelled by customer"
ADMIN_CANCEL_REASON = "Cancelled by admin"

# Statuses an order may be cancelled from
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


@dataclass(frozen=True)
class CancellationResult:
    order_id: int
    refund: RefundOutcome


class CancellationService:
    def __init__(self, db: AsyncSession, *, cancel_window_ms: int | None = None) -> None:
        self.db = db
        self.loyalty = LoyaltyService(db)
        self.cancel_window_ms = (
            cancel_window_ms if cancel_window_ms is not None else settings.cancel_window_ms
        )

    async def cancel_by_customer(
        self,
        order_id: int,
        user_id: str,
        now: datetime | None = None,
    ) -> CancellationResult:
        """Self-service cancellation of a confirmed COD order inside the window.

        Raises:
            NotFound: No such order.
            Forbidden: The order belongs to someone else.
            AlreadyCancelled: The order is already cancelled.
            Conflict: Not ``confirmed``, or not cash on delivery.
            WindowExpired: ``cancel_window_ms`` or more has passed since creation.
        """
        now = now or utcnow()
        order = await self._get_order(order_id)

        if order.user_id != user_id:
            logger.warning("User %s tried to cancel order %s owned by another user", user_id, order_id)
            raise Forbidden("You can only cancel your own orders")
        if order.is_cancelled:
            raise AlreadyCancelled()
        if order.status != OrderStatus.CONFIRMED:
            raise Conflict("Only confirmed orders can be cancelled")
        if order.payment_method != PaymentMethod.COD:
            raise Conflict("Only Cash on Delivery orders can be cancelled")

        elapsed_ms = (now - as_utc(order.created_at)).total_seconds() * 1000
        if elapsed_ms >= self.cancel_window_ms:
            raise WindowExpired()

        return await self.apply(
            order,
            reason=CUSTOMER_CANCEL_REASON,
            expected_status=OrderStatus.CONFIRMED,
            now=now,
        )

    async def apply(
        self,
        order: Order,
        *,
        reason: str,
        expected_status: OrderStatus,
        now: datetime | None = None,
    ) -> CancellationResult:
        """Cancel ``order`` if it is still in ``expected_status``, then refund points."""
        if expected_status not in CANCELLABLE_STATUSES:
            raise Conflict(f"Orders that are {expected_status.value} cannot be cancelled")

        order_id, user_id, points = order.id, order.user_id, order.points_used
        await self._flip(order, expected_status, reason, now or utcnow())
        logger.info("Order %s cancelled (%s)", order_id, reason)

        refund = await self._refund_points(order_id, user_id, points)
        return CancellationResult(order_id=order_id, refund=refund)

    async def _get_order(self, order_id: int) -> Order:
        try:
            order = (
                await self.db.execute(select(Order).where(Order.id == order_id))
            ).scalar_one_or_none()
        except SQLAlchemyError:
            logger.exception("Failed to load order %s", order_id)
            raise InternalError()
        if order is None:
            raise NotFound("Order not found")
        return order

    async def _flip(
        self,
        order: Order,
        expected_status: OrderStatus,
        reason: str,
        now: datetime,
    ) -> None:
        """Compare-and-set the status so only one writer can cancel an order."""
        order_id = order.id
        try:
            result = await self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == expected_status)
                .values(**Order.cancellation_values(now, reason))
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                await self.db.rollback()
                await self.db.refresh(order)
                if order.is_cancelled:
                    raise AlreadyCancelled()
                raise Conflict("Order status changed, please refresh and try again")
            await self.db.commit()
            await self.db.refresh(order)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to cancel order %s", order_id)
            raise InternalError("Failed to cancel order")

    async def _refund_points(self, order_id: int, user_id: str, points: int) -> RefundOutcome:
        if points <= 0:
            return RefundOutcome(status="not_applicable", points=0)

        try:
            await self.loyalty.credit(
                user_id,
                points,
                TransactionType.REFUND,
                f"Refund for cancelled order #{order_id}",
                order_id=order_id,
            )
            await self.db.commit()
        except (SQLAlchemyError, NotFound):
            await self.db.rollback()
            logger.exception(
                "Loyalty refund failed for cancelled order %s: user=%s points=%s",
                order_id,
                user_id,
                points,
            )
            return RefundOutcome(status="failed", points=points)

        return RefundOutcome(status="succeeded", points=points)
