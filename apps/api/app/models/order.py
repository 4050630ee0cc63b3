"""Order and OrderItem models."""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.catalog import Location, MenuItem
    from app.models.profile import Profile


class OrderStatus(str, enum.Enum):
    """Lifecycle of an order.

    The happy path is pending -> confirmed -> out_for_delivery -> delivered.
    Cancelled is reachable only from pending/confirmed. Delivered and cancelled
    are terminal.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    """How the customer pays. Online payments are handled by the gateway."""

    COD = "cod"
    ONLINE = "online"


class Order(Base):
    """A customer's order.

    ``is_cancelled`` is derived from ``status`` so the two can never disagree.
    """

    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Human-facing sequential number, assigned in the creation transaction
    order_number: Mapped[int | None] = mapped_column(Integer, unique=True, nullable=True)

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("locations.id"),
        nullable=False,
    )

    # Money, in whole currency units
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivery_charge: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(
            OrderStatus,
            name="order_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(
            PaymentMethod,
            name="payment_method",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=PaymentMethod.COD,
        nullable=False,
    )

    # Delivery handoff code, set once at creation
    otp: Mapped[str] = mapped_column(String(6), nullable=False)

    points_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancel_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    profile: Mapped["Profile"] = relationship("Profile")
    location: Mapped["Location"] = relationship("Location")

    @hybrid_property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    @staticmethod
    def cancellation_values(now: datetime, reason: str) -> dict[str, Any]:
        """Column values written when an order is cancelled."""
        return {
            "status": OrderStatus.CANCELLED,
            "cancelled_at": now,
            "cancel_reason": reason,
            "updated_at": now,
        }

    def __repr__(self) -> str:
        return f"<Order {self.id} #{self.order_number} ({self.status.value})>"


class OrderItem(Base):
    """A line of an order with the unit price captured at order time."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    menu_item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("menu_items.id"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Snapshot; later menu price changes must not reach existing orders
    price: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    menu_item: Mapped["MenuItem"] = relationship("MenuItem")

    def __repr__(self) -> str:
        return f"<OrderItem order={self.order_id} item={self.menu_item_id} x{self.quantity}>"
