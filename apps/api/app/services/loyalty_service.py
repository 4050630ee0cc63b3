"""Loyalty balance changes and the ledger that backs them."""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InsufficientPoints, NotFound
from app.models.loyalty import LoyaltyTransaction, TransactionType
from app.models.profile import Profile

logger = logging.getLogger(__name__)


class LoyaltyService:
    """Keeps ``Profile.loyalty_points`` and the ledger in step.

    Balance updates are single conditional UPDATE statements, so concurrent
    credits/debits on one profile never lose an update. Neither method commits:
    the caller decides the transaction boundary.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def credit(
        self,
        user_id: str,
        points: int,
        transaction_type: TransactionType,
        description: str,
        order_id: int | None = None,
    ) -> LoyaltyTransaction:
        """Add ``points`` to the balance and append a ledger row."""
        if points <= 0:
            raise ValueError("credit requires a positive amount")

        result = await self.db.execute(
            update(Profile)
            .where(Profile.id == user_id)
            .values(loyalty_points=Profile.loyalty_points + points)
        )
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise NotFound("Profile not found")

        return self._append(user_id, points, transaction_type, description, order_id)

    async def debit(
        self,
        user_id: str,
        points: int,
        transaction_type: TransactionType,
        description: str,
        order_id: int | None = None,
    ) -> LoyaltyTransaction:
        """Remove ``points`` if the balance covers them, and append a ledger row."""
        if points <= 0:
            raise ValueError("debit requires a positive amount")

        result = await self.db.execute(
            update(Profile)
            .where(Profile.id == user_id, Profile.loyalty_points >= points)
            .values(loyalty_points=Profile.loyalty_points - points)
        )
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise InsufficientPoints(f"Not enough loyalty points to redeem {points}")

        return self._append(user_id, -points, transaction_type, description, order_id)

    async def get_balance(self, user_id: str) -> int:
        stmt = select(Profile.loyalty_points).where(Profile.id == user_id)
        balance = (await self.db.execute(stmt)).scalar_one_or_none()
        if balance is None:
            raise NotFound("Profile not found")
        return balance

    async def list_transactions(self, user_id: str, limit: int = 100) -> list[LoyaltyTransaction]:
        """Ledger entries for a user, newest first."""
        stmt = (
            select(LoyaltyTransaction)
            .where(LoyaltyTransaction.user_id == user_id)
            .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id.desc())
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    def _append(
        self,
        user_id: str,
        points: int,
        transaction_type: TransactionType,
        description: str,
        order_id: int | None,
    ) -> LoyaltyTransaction:
        entry = LoyaltyTransaction(
            user_id=user_id,
            points=points,
            transaction_type=transaction_type,
            description=description,
            order_id=order_id,
        )
        self.db.add(entry)
        logger.info(
            "Loyalty %s: user=%s points=%+d order=%s",
            transaction_type.value,
            user_id,
            points,
            order_id,
        )
        return entry
