"""Profile, serviceable cities, loyalty and referral endpoints."""

from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.deps import CurrentUserId, DBSession
from app.core.errors import Forbidden
from app.core.rate_limit import limiter, rate_limit
from app.schemas.common import ApiSuccess
from app.schemas.profile import (
    LoyaltySummary,
    LoyaltyTransactionResponse,
    ProfileResponse,
    ProfileUpdate,
    ReferralApplied,
    ReferralApplyRequest,
)
from app.services.loyalty_service import LoyaltyService
from app.services.profile_service import ProfileService
from app.services.referral_service import ReferralService

router = APIRouter()

referral_limit = rate_limit(
    "referral:apply",
    max_tokens=settings.referral_rate_limit_max,
    window_ms=settings.referral_rate_limit_window_ms,
)


@router.get("/cities", response_model=list[str])
@limiter.limit("60/minute")
async def list_cities(
    request: Request,  # noqa: ARG001 (slowapi reads it)
    db: DBSession,
) -> list[str]:
    """Cities we deliver to, alphabetically. Public."""
    return await ProfileService(db).list_cities()


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user_id: CurrentUserId, db: DBSession) -> ProfileResponse:
    profile = await ProfileService(db).get_profile(user_id)
    return ProfileResponse.model_validate(profile)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdate,
    user_id: CurrentUserId,
    db: DBSession,
) -> ProfileResponse:
    """Create or update delivery details. The city must be serviceable."""
    profile = await ProfileService(db).upsert_profile(user_id, data)
    return ProfileResponse.model_validate(profile)


@router.get("/profile/loyalty", response_model=LoyaltySummary)
async def get_loyalty(user_id: CurrentUserId, db: DBSession) -> LoyaltySummary:
    """Current points balance and ledger history."""
    service = LoyaltyService(db)
    balance = await service.get_balance(user_id)
    transactions = await service.list_transactions(user_id)
    return LoyaltySummary(
        balance=balance,
        transactions=[LoyaltyTransactionResponse.model_validate(t) for t in transactions],
    )


@router.post(
    "/referral/apply",
    response_model=ApiSuccess[ReferralApplied],
    dependencies=[Depends(referral_limit)],
)
async def apply_referral(
    data: ReferralApplyRequest,
    user_id: CurrentUserId,
    db: DBSession,
) -> ApiSuccess[ReferralApplied]:
    """Apply someone's referral code. Rate limited to 10 requests per 5 minutes per IP."""
    if str(data.user_id) != user_id:
        raise Forbidden("You can only apply a referral code to your own account")

    points = await ReferralService(db).apply_referral(user_id, data.referral_code)
    return ApiSuccess(
        data=ReferralApplied(
            message=f"Referral applied! You both got {points} points!",
            points_awarded=points,
        )
    )
