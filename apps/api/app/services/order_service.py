"""Order placement and order listings."""

import logging
from collections import Counter

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.errors import (
    AppError,
    CityUnserviceable,
    IncompleteProfile,
    InternalError,
    OrderFailed,
    ValidationFailed,
)
from app.core.security import generate_otp
from app.models.base import utcnow
from app.models.catalog import Location, MenuItem
from app.models.loyalty import TransactionType
from app.models.order import Order, OrderItem, OrderStatus, PaymentMethod
from app.models.profile import Profile
from app.schemas.order import MAX_QUANTITY, OrderCreateRequest
from app.services.loyalty_service import LoyaltyService
from app.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


class OrderService:
    """Business logic for placing orders and reading them back."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.loyalty = LoyaltyService(db)
        self.profiles = ProfileService(db)

    async def create_order(self, user_id: str, data: OrderCreateRequest) -> int:
        """Place a cash-on-delivery order and return its id.

        The order row, its items and the points redemption are written in one
        transaction: either all of them are committed or none is.

        Raises:
            IncompleteProfile: The caller has no profile or no delivery city.
            CityUnserviceable: The profile city is not in the allow-list.
            ValidationFailed: Unknown location, unknown/unavailable items, or
                more points than the subtotal.
            InsufficientPoints: The balance does not cover ``points_used``.
            OrderFailed: The transaction failed in the database.
        """
        try:
            profile = await self.db.get(Profile, user_id)
            if profile is None or not (profile.city or "").strip():
                raise IncompleteProfile()
            if not await self.profiles.is_serviceable_city(profile.city or ""):
                raise CityUnserviceable(f"We do not deliver to {profile.city} yet")

            order = await self._insert_order(user_id, data)
            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Order creation failed for user %s", user_id)
            raise OrderFailed()

        logger.info(
            "Order placed: id=%s number=%s user=%s total=%s points=%s",
            order.id,
            order.order_number,
            user_id,
            order.total_amount,
            order.points_used,
        )
        return order.id

    async def _insert_order(self, user_id: str, data: OrderCreateRequest) -> Order:
        """Stage the order, its items and the points debit in the open transaction."""
        location = await self.db.get(Location, data.location_id)
        if location is None:
            raise ValidationFailed(f"Unknown location: {data.location_id}")

        quantities: Counter[int] = Counter()
        for line in data.cart:
            quantities[line.id] += line.quantity

        over_cap = [item_id for item_id, qty in quantities.items() if qty > MAX_QUANTITY]
        if over_cap:
            raise ValidationFailed(f"Quantity per item cannot exceed {MAX_QUANTITY}")

        stmt = select(MenuItem).where(MenuItem.id.in_(list(quantities)))
        menu = {item.id: item for item in (await self.db.execute(stmt)).scalars()}

        missing = sorted(set(quantities) - set(menu))
        if missing:
            raise ValidationFailed(f"Unknown menu items: {', '.join(map(str, missing))}")

        unavailable = [menu[item_id].name for item_id in quantities if not menu[item_id].is_available]
        if unavailable:
            raise ValidationFailed(f"Currently unavailable: {', '.join(unavailable)}")

        subtotal = sum(menu[item_id].price * qty for item_id, qty in quantities.items())
        points = data.points_used
        if points > subtotal:
            raise ValidationFailed("Cannot redeem more points than the order subtotal")
        discount = points // settings.points_per_currency_unit
        delivery_charge = data.summary.delivery_charge
        total = max(0, subtotal + delivery_charge - discount)

        now = utcnow()
        order = Order(
            user_id=user_id,
            location_id=location.id,
            subtotal=subtotal,
            delivery_charge=delivery_charge,
            discount=discount,
            total_amount=total,
            status=OrderStatus.CONFIRMED,
            payment_method=PaymentMethod(data.payment_method),
            otp=generate_otp(),
            points_used=points,
            created_at=now,
            updated_at=now,
            items=[
                OrderItem(menu_item_id=item_id, quantity=qty, price=menu[item_id].price)
                for item_id, qty in quantities.items()
            ],
        )
        self.db.add(order)
        await self.db.flush()

        order.order_number = settings.order_number_base + order.id

        if points:
            await self.loyalty.debit(
                user_id,
                points,
                TransactionType.REDEEM,
                f"Redeemed on order #{order.id}",
                order_id=order.id,
            )

        await self.db.flush()
        return order

    async def list_orders_for_user(self, user_id: str) -> list[Order]:
        """The caller's orders, newest first, with items and menu metadata."""
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .options(selectinload(Order.items).selectinload(OrderItem.menu_item))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        try:
            return list((await self.db.execute(stmt)).scalars().all())
        except SQLAlchemyError:
            logger.exception("Failed to load orders for user %s", user_id)
            raise InternalError("Could not fetch orders.")

    async def list_all_orders(self) -> list[Order]:
        """Every order with customer profile and items, for the admin console."""
        stmt = (
            select(Order)
            .options(
                selectinload(Order.profile),
                selectinload(Order.items).selectinload(OrderItem.menu_item),
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        try:
            return list((await self.db.execute(stmt)).scalars().all())
        except SQLAlchemyError:
            logger.exception("Failed to load orders for admin console")
            raise InternalError("Could not fetch orders.")
