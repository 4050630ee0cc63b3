"""Referral codes: one-time welcome bonus for the new user and a reward for the referrer."""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import AppError, Conflict, InternalError, NotFound, ValidationFailed
from app.models.loyalty import TransactionType
from app.models.profile import Profile
from app.services.loyalty_service import LoyaltyService

logger = logging.getLogger(__name__)


class ReferralService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.loyalty = LoyaltyService(db)

    async def apply_referral(self, user_id: str, referral_code: str) -> int:
        """Link ``user_id`` to the owner of ``referral_code`` and award both.

        Returns the points awarded to each side. Everything happens in one
        transaction, and a user can be referred only once.
        """
        points = settings.referral_bonus_points
        try:
            profile = await self.db.get(Profile, user_id)
            if profile is None:
                raise NotFound("Profile not found")

            referrer = (
                await self.db.execute(select(Profile).where(Profile.referral_code == referral_code))
            ).scalar_one_or_none()
            if referrer is None:
                raise NotFound("Invalid referral code")
            if referrer.id == user_id:
                raise ValidationFailed("Cannot use your own referral code")
            referrer_id = referrer.id

            # Guarded on referred_by so concurrent applications cannot both pass
            result = await self.db.execute(
                update(Profile)
                .where(Profile.id == user_id, Profile.referred_by.is_(None))
                .values(referred_by=referrer_id)
            )
            if result.rowcount == 0:  # type: ignore[attr-defined]
                raise Conflict("A referral code has already been applied to this account")

            await self.loyalty.credit(
                user_id,
                points,
                TransactionType.REFERRAL_BONUS,
                "Welcome bonus for using referral code",
            )
            await self.loyalty.credit(
                referrer_id,
                points,
                TransactionType.REFERRAL_REWARD,
                f"Referred a new user: {referral_code}",
            )
            await self.db.commit()
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to apply referral for user %s", user_id)
            raise InternalError("Failed to apply referral")

        logger.info("Referral applied: user=%s referrer=%s points=%s", user_id, referrer_id, points)
        return points
