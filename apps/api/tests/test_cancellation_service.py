"""Unit tests for CancellationService.

Covers the customer cancellation rules (ownership, state, payment method,
5-minute window), the compare-and-set status flip and the loyalty refund
that follows it.
"""

from collections.abc import Callable
from datetime import timedelta
from typing import Any
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import AlreadyCancelled, Conflict, Forbidden, NotFound, WindowExpired
from app.models.base import utcnow
from app.models.loyalty import LoyaltyTransaction, TransactionType
from app.models.order import Order, OrderStatus, PaymentMethod
from app.models.profile import Profile
from app.services.cancellation_service import (
    ADMIN_CANCEL_REASON,
    CUSTOMER_CANCEL_REASON,
    CancellationService,
)
from app.services.loyalty_service import LoyaltyService

from tests.conftest import OTHER_USER_ID, TEST_USER_ID


class TestCancelByCustomer:
    """Tests for CancellationService.cancel_by_customer()."""

    async def test_cancels_inside_window(
        self,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        now = utcnow()
        order = await order_factory(created_at=now - timedelta(minutes=1))

        result = await CancellationService(db_session).cancel_by_customer(
            order.id, TEST_USER_ID, now=now
        )

        assert result.order_id == order.id
        assert result.refund.status == "not_applicable"
        await db_session.refresh(order)
        assert order.status is OrderStatus.CANCELLED
        assert order.is_cancelled is True
        assert order.cancel_reason == CUSTOMER_CANCEL_REASON
        assert order.cancelled_at is not None

    async def test_just_inside_window(
        self,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        now = utcnow()
        order = await order_factory(created_at=now - timedelta(milliseconds=299_999))

        result = await CancellationService(db_session).cancel_by_customer(
            order.id, TEST_USER_ID, now=now
        )

        assert result.order_id == order.id

    @pytest.mark.parametrize("elapsed_ms", [300_000, 301_000, 3_600_000])
    async def test_window_expired(
        self,
        elapsed_ms: int,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        now = utcnow()
        order = await order_factory(created_at=now - timedelta(milliseconds=elapsed_ms))

        with pytest.raises(WindowExpired):
            await CancellationService(db_session).cancel_by_customer(
                order.id, TEST_USER_ID, now=now
            )

        await db_session.refresh(order)
        assert order.status is OrderStatus.CONFIRMED

    async def test_window_is_configurable(
        self,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        now = utcnow()
        order = await order_factory(created_at=now - timedelta(seconds=30))

        with pytest.raises(WindowExpired):
            await CancellationService(db_session, cancel_window_ms=10_000).cancel_by_customer(
                order.id, TEST_USER_ID, now=now
            )

    async def test_unknown_order(self, db_session: AsyncSession) -> None:
        with pytest.raises(NotFound):
            await CancellationService(db_session).cancel_by_customer(999, TEST_USER_ID)

    async def test_other_users_order(
        self,
        db_session: AsyncSession,
        profile_factory: Callable[..., Any],
        order_factory: Callable[..., Any],
    ) -> None:
        await profile_factory(user_id=OTHER_USER_ID)
        order = await order_factory(user_id=OTHER_USER_ID)

        with pytest.raises(Forbidden):
            await CancellationService(db_session).cancel_by_customer(order.id, TEST_USER_ID)

        await db_session.refresh(order)
        assert order.status is OrderStatus.CONFIRMED

    async def test_already_cancelled(
        self,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        order = await order_factory(status=OrderStatus.CANCELLED)

        with pytest.raises(AlreadyCancelled):
            await CancellationService(db_session).cancel_by_customer(order.id, TEST_USER_ID)

    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PENDING, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED],
    )
    async def test_only_confirmed_orders(
        self,
        status: OrderStatus,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        order = await order_factory(status=status)

        with pytest.raises(Conflict, match="Only confirmed orders"):
            await CancellationService(db_session).cancel_by_customer(order.id, TEST_USER_ID)

    async def test_only_cash_on_delivery(
        self,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        order = await order_factory(payment_method=PaymentMethod.ONLINE)

        with pytest.raises(Conflict, match="Cash on Delivery"):
            await CancellationService(db_session).cancel_by_customer(order.id, TEST_USER_ID)


class TestRefund:
    """Tests for the points refund after a successful cancellation."""

    async def test_refunds_points_used(
        self,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        order = await order_factory(points_used=40)

        result = await CancellationService(db_session).cancel_by_customer(order.id, TEST_USER_ID)

        assert result.refund.status == "succeeded"
        assert result.refund.points == 40
        assert await LoyaltyService(db_session).get_balance(TEST_USER_ID) == 140
        [entry] = (await db_session.execute(select(LoyaltyTransaction))).scalars().all()
        assert entry.points == 40
        assert entry.transaction_type is TransactionType.REFUND
        assert entry.order_id == order.id
        assert entry.description == f"Refund for cancelled order #{order.id}"

    async def test_refund_failure_keeps_order_cancelled(
        self,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        """The cancellation stands; the failed refund is reported, not raised."""
        order = await order_factory(points_used=40)

        with patch.object(LoyaltyService, "credit", side_effect=SQLAlchemyError("boom")):
            result = await CancellationService(db_session).cancel_by_customer(
                order.id, TEST_USER_ID
            )

        assert result.refund.status == "failed"
        assert result.refund.points == 40
        await db_session.refresh(order)
        assert order.status is OrderStatus.CANCELLED
        assert await LoyaltyService(db_session).get_balance(TEST_USER_ID) == 100

    async def test_missing_profile_reports_failed_refund(
        self,
        db_session: AsyncSession,
        order_factory: Callable[..., Any],
    ) -> None:
        order = await order_factory(points_used=10)

        result = await CancellationService(db_session).cancel_by_customer(order.id, TEST_USER_ID)

        assert result.refund.status == "failed"
        await db_session.refresh(order)
        assert order.is_cancelled is True


class TestApply:
    """Tests for the shared cancel-and-refund step."""

    async def test_admin_reason_is_recorded(
        self,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        order = await order_factory(status=OrderStatus.PENDING)

        await CancellationService(db_session).apply(
            order, reason=ADMIN_CANCEL_REASON, expected_status=OrderStatus.PENDING
        )

        await db_session.refresh(order)
        assert order.status is OrderStatus.CANCELLED
        assert order.cancel_reason == ADMIN_CANCEL_REASON

    @pytest.mark.parametrize("status", [OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED])
    async def test_rejects_non_cancellable_status(
        self,
        status: OrderStatus,
        db_session: AsyncSession,
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        order = await order_factory(status=status)

        with pytest.raises(Conflict):
            await CancellationService(db_session).apply(
                order, reason=ADMIN_CANCEL_REASON, expected_status=status
            )

    async def test_lost_race_refunds_once(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        """A second cancel against a stale read loses the compare-and-set."""
        order = await order_factory(points_used=40)

        async with session_factory() as other:
            stale = await other.get(Order, order.id)
            assert stale is not None

            first = await CancellationService(db_session).cancel_by_customer(
                order.id, TEST_USER_ID
            )
            assert first.refund.status == "succeeded"

            with pytest.raises(AlreadyCancelled):
                await CancellationService(other).apply(
                    stale, reason=CUSTOMER_CANCEL_REASON, expected_status=OrderStatus.CONFIRMED
                )

        assert await LoyaltyService(db_session).get_balance(TEST_USER_ID) == 140

    async def test_lost_race_to_status_change(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
        profile: Profile,
        order_factory: Callable[..., Any],
    ) -> None:
        order = await order_factory()

        async with session_factory() as other:
            stale = await other.get(Order, order.id)
            assert stale is not None

            order.status = OrderStatus.OUT_FOR_DELIVERY
            await db_session.commit()

            with pytest.raises(Conflict, match="status changed"):
                await CancellationService(other).apply(
                    stale, reason=CUSTOMER_CANCEL_REASON, expected_status=OrderStatus.CONFIRMED
                )
