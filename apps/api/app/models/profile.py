"""Customer profile and admin models."""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class Profile(Base):
    """One row per customer, keyed by the auth platform's user id.

    ``loyalty_points`` is a cache of the loyalty ledger and is only changed
    together with a ledger append (see LoyaltyService).
    """

    __tablename__ = "profiles"
    __table_args__ = (CheckConstraint("loyalty_points >= 0", name="loyalty_points_non_negative"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(10), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(6), nullable=True)
    landmark: Mapped[str | None] = mapped_column(String(255), nullable=True)

    loyalty_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    referral_code: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    referred_by: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Profile {self.id} ({self.city})>"


class Admin(Base):
    """Users allowed into the admin console. Membership is the only check."""

    __tablename__ = "admins"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="admin")

    def __repr__(self) -> str:
        return f"<Admin {self.id} ({self.role})>"
