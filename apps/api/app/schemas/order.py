"""Order request/response schemas.

Request bodies use the storefront's camelCase keys; responses keep the
snake_case column names the clients already read.
"""

from datetime import datetime
from typing import Literal

from pydantic import Field, model_validator

from app.models.order import OrderStatus, PaymentMethod
from app.schemas.common import BaseSchema

MAX_QUANTITY = 50
MAX_DELIVERY_CHARGE = 500
OTP_PATTERN = r"^[0-9]{6}$"


# --- Checkout ---


class CartLine(BaseSchema):
    """One cart entry as sent by the storefront."""

    id: int
    quantity: int = Field(gt=0, le=MAX_QUANTITY)


class CartSummary(BaseSchema):
    delivery_charge: int = Field(alias="deliveryCharge", ge=0, le=MAX_DELIVERY_CHARGE)


class OrderCreateRequest(BaseSchema):
    """Checkout payload. Only cash on delivery can be placed here."""

    cart: list[CartLine] = Field(min_length=1)
    summary: CartSummary
    location_id: str = Field(alias="locationId", min_length=1)
    points_used: int = Field(default=0, alias="pointsUsed", ge=0)
    # Informational; the server derives the discount from points_used
    discount_from_points: float = Field(default=0, alias="discountFromPoints", ge=0)
    payment_method: Literal["cod"] = Field(default="cod", alias="paymentMethod")


class OrderCreated(BaseSchema):
    order_id: int = Field(alias="orderId")


# --- Order views ---


class MenuItemSummary(BaseSchema):
    id: int
    name: str
    description: str | None = None
    image_url: str | None = None
    is_veg: bool


class OrderItemResponse(BaseSchema):
    id: int
    menu_item_id: int
    quantity: int
    price: int
    menu_item: MenuItemSummary | None = None


class CustomerSummary(BaseSchema):
    """Delivery details shown to admins."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    pincode: str | None = None
    landmark: str | None = None


class OrderView(BaseSchema):
    """Fields shared by every order representation."""

    id: int
    order_number: int | None
    user_id: str
    location_id: str
    subtotal: int
    delivery_charge: int
    discount: int
    total_amount: int
    status: OrderStatus
    payment_method: PaymentMethod
    points_used: int
    is_cancelled: bool
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse] = []


class CustomerOrderResponse(OrderView):
    """An order as its owner sees it, including the delivery code."""

    otp: str


class AdminOrderResponse(OrderView):
    """An order in the admin console. The delivery code is withheld."""

    profile: CustomerSummary | None = None


# --- Cancellation ---


class CancelOrderRequest(BaseSchema):
    order_id: int = Field(alias="orderId")


class RefundOutcome(BaseSchema):
    """Result of the loyalty refund that follows a cancellation."""

    status: Literal["not_applicable", "succeeded", "failed"]
    points: int = 0


class CancelOrderResponse(BaseSchema):
    success: bool
    message: str
    refund: RefundOutcome


# --- Admin updates ---


class AdminOrderUpdateRequest(BaseSchema):
    """Either a status change or an OTP delivery confirmation.

    When both are present the OTP path wins.
    """

    order_id: int = Field(alias="orderId")
    status: OrderStatus | None = None
    otp: str | None = Field(default=None, pattern=OTP_PATTERN)

    @model_validator(mode="after")
    def _require_action(self) -> "AdminOrderUpdateRequest":
        if self.status is None and self.otp is None:
            raise ValueError("No valid action specified (status or OTP).")
        return self
