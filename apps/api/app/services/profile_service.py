"""Customer profiles and the serviceable-city allow-list."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppError, CityUnserviceable, InternalError, NotFound
from app.core.security import generate_referral_code
from app.models.catalog import ServiceableCity
from app.models.profile import Profile
from app.schemas.profile import ProfileUpdate

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_cities(self) -> list[str]:
        """Serviceable city names, alphabetically."""
        stmt = select(ServiceableCity.name).order_by(ServiceableCity.name.asc())
        try:
            return list((await self.db.execute(stmt)).scalars().all())
        except SQLAlchemyError:
            logger.exception("Failed to load serviceable cities")
            raise InternalError("Could not fetch serviceable cities.")

    async def is_serviceable_city(self, city: str) -> bool:
        stmt = select(ServiceableCity.id).where(ServiceableCity.name == city)
        return (await self.db.execute(stmt)).scalar_one_or_none() is not None

    async def get_profile(self, user_id: str) -> Profile:
        try:
            profile = await self.db.get(Profile, user_id)
        except SQLAlchemyError:
            logger.exception("Failed to load profile %s", user_id)
            raise InternalError("Could not fetch profile.")
        if profile is None:
            raise NotFound("Profile not found")
        return profile

    async def upsert_profile(self, user_id: str, data: ProfileUpdate) -> Profile:
        """Create or update the caller's delivery details.

        A referral code is generated the first time the profile is written.
        """
        try:
            if not await self.is_serviceable_city(data.city):
                raise CityUnserviceable()

            profile = await self.db.get(Profile, user_id)
            if profile is None:
                profile = Profile(id=user_id, loyalty_points=0, referral_code=generate_referral_code())
                self.db.add(profile)
                logger.info("Creating profile for user %s", user_id)

            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(profile, field, value)

            await self.db.commit()
            await self.db.refresh(profile)
        except AppError:
            await self.db.rollback()
            raise
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception("Failed to update profile %s", user_id)
            raise InternalError("Could not update profile.")
        return profile
