"""Append-only loyalty points ledger."""

import enum

from sqlalchemy import Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class TransactionType(str, enum.Enum):
    """Why a balance changed."""

    EARN = "earn"
    REDEEM = "redeem"
    REFUND = "refund"
    REFERRAL_BONUS = "referral_bonus"
    REFERRAL_REWARD = "referral_reward"


class LoyaltyTransaction(Base):
    """One balance change. Rows are never updated or deleted.

    ``points`` is signed: credits are positive, redemptions negative.
    """

    __tablename__ = "loyalty_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        Enum(
            TransactionType,
            name="loyalty_transaction_type",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    order_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<LoyaltyTransaction {self.user_id} {self.points:+d} ({self.transaction_type.value})>"
