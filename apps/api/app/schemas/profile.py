"""Profile, loyalty and referral schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from app.models.loyalty import TransactionType
from app.schemas.common import BaseSchema


class ProfileUpdate(BaseSchema):
    """Delivery details a customer must fill in before ordering."""

    name: str = Field(min_length=1, max_length=255)
    phone: str = Field(pattern=r"^[0-9]{10}$")
    address: str = Field(min_length=1, max_length=500)
    city: str = Field(min_length=1, max_length=100)
    pincode: str = Field(pattern=r"^[0-9]{6}$")
    landmark: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class ProfileResponse(BaseSchema):
    id: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    pincode: str | None = None
    landmark: str | None = None
    loyalty_points: int
    referral_code: str | None = None
    referred_by: str | None = None


class LoyaltyTransactionResponse(BaseSchema):
    id: int
    points: int
    transaction_type: TransactionType
    description: str
    order_id: int | None = None
    created_at: datetime


class LoyaltySummary(BaseSchema):
    balance: int
    transactions: list[LoyaltyTransactionResponse]


class ReferralApplyRequest(BaseSchema):
    user_id: UUID = Field(alias="userId")
    referral_code: str = Field(alias="referralCode", min_length=4, max_length=50)


class ReferralApplied(BaseSchema):
    message: str
    points_awarded: int = Field(alias="pointsAwarded")
