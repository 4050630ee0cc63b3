"""Unit tests for ReferralService."""

from collections.abc import Callable
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.models.loyalty import LoyaltyTransaction, TransactionType
from app.models.profile import Profile
from app.services.loyalty_service import LoyaltyService
from app.services.referral_service import ReferralService

from tests.conftest import OTHER_USER_ID, TEST_USER_ID

REFERRER_CODE = "RAVI2024"


@pytest_asyncio.fixture
async def referrer(profile_factory: Callable[..., Any]) -> Profile:
    return await profile_factory(
        user_id=OTHER_USER_ID, name="Ravi Kulkarni", referral_code=REFERRER_CODE
    )


class TestApplyReferral:
    async def test_awards_both_sides(
        self, db_session: AsyncSession, profile: Profile, referrer: Profile
    ) -> None:
        points = await ReferralService(db_session).apply_referral(TEST_USER_ID, REFERRER_CODE)

        assert points == 25
        loyalty = LoyaltyService(db_session)
        assert await loyalty.get_balance(TEST_USER_ID) == 125
        assert await loyalty.get_balance(OTHER_USER_ID) == 25

        await db_session.refresh(profile)
        assert profile.referred_by == OTHER_USER_ID

        entries = (
            await db_session.execute(select(LoyaltyTransaction).order_by(LoyaltyTransaction.id))
        ).scalars().all()
        assert [(e.user_id, e.points, e.transaction_type) for e in entries] == [
            (TEST_USER_ID, 25, TransactionType.REFERRAL_BONUS),
            (OTHER_USER_ID, 25, TransactionType.REFERRAL_REWARD),
        ]
        assert entries[1].description == f"Referred a new user: {REFERRER_CODE}"

    async def test_only_once_per_user(
        self, db_session: AsyncSession, profile: Profile, referrer: Profile
    ) -> None:
        service = ReferralService(db_session)
        await service.apply_referral(TEST_USER_ID, REFERRER_CODE)

        with pytest.raises(Conflict):
            await service.apply_referral(TEST_USER_ID, REFERRER_CODE)

        assert await LoyaltyService(db_session).get_balance(OTHER_USER_ID) == 25

    async def test_invalid_code(self, db_session: AsyncSession, profile: Profile) -> None:
        with pytest.raises(NotFound, match="Invalid referral code"):
            await ReferralService(db_session).apply_referral(TEST_USER_ID, "NOPE1234")

    async def test_own_code(self, db_session: AsyncSession, profile: Profile) -> None:
        with pytest.raises(ValidationFailed):
            await ReferralService(db_session).apply_referral(TEST_USER_ID, profile.referral_code)

        assert await LoyaltyService(db_session).get_balance(TEST_USER_ID) == 100

    async def test_missing_profile(self, db_session: AsyncSession, referrer: Profile) -> None:
        with pytest.raises(NotFound, match="Profile not found"):
            await ReferralService(db_session).apply_referral(TEST_USER_ID, REFERRER_CODE)
