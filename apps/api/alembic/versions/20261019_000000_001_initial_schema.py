"""Initial schema: catalog, profiles, orders, loyalty ledger.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    # Create enum types
    op.execute(
        "CREATE TYPE order_status AS ENUM "
        "('pending', 'confirmed', 'out_for_delivery', 'delivered', 'cancelled')"
    )
    op.execute("CREATE TYPE payment_method AS ENUM ('cod', 'online')")
    op.execute(
        "CREATE TYPE loyalty_transaction_type AS ENUM "
        "('earn', 'redeem', 'refund', 'referral_bonus', 'referral_reward')"
    )

    # Catalog
    op.create_table(
        "serviceable_cities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_serviceable_cities")),
        sa.UniqueConstraint("name", name=op.f("uq_serviceable_cities_name")),
    )

    op.create_table(
        "locations",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("highlights", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_locations")),
    )

    op.create_table(
        "menu_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("location_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("is_veg", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("image_url", sa.String(1024), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["location_id"],
            ["locations.id"],
            name=op.f("fk_menu_items_location_id_locations"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_menu_items")),
    )
    op.create_index(op.f("ix_menu_items_location_id"), "menu_items", ["location_id"], unique=False)

    # Customers
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(10), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("pincode", sa.String(6), nullable=True),
        sa.Column("landmark", sa.String(255), nullable=True),
        sa.Column("loyalty_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("referral_code", sa.String(50), nullable=True),
        sa.Column("referred_by", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "loyalty_points >= 0", name=op.f("ck_profiles_loyalty_points_non_negative")
        ),
        sa.ForeignKeyConstraint(
            ["referred_by"],
            ["profiles.id"],
            name=op.f("fk_profiles_referred_by_profiles"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_profiles")),
        sa.UniqueConstraint("referral_code", name=op.f("uq_profiles_referral_code")),
    )

    op.create_table(
        "admins",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="admin"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_admins")),
    )

    # Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_number", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("location_id", sa.String(64), nullable=False),
        sa.Column("subtotal", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("delivery_charge", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM(
                "pending",
                "confirmed",
                "out_for_delivery",
                "delivered",
                "cancelled",
                name="order_status",
                create_type=False,
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "payment_method",
            postgresql.ENUM("cod", "online", name="payment_method", create_type=False),
            nullable=False,
            server_default="cod",
        ),
        sa.Column("otp", sa.String(6), nullable=False),
        sa.Column("points_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["profiles.id"],
            name=op.f("fk_orders_user_id_profiles"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["location_id"],
            ["locations.id"],
            name=op.f("fk_orders_location_id_locations"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_orders")),
        sa.UniqueConstraint("order_number", name=op.f("uq_orders_order_number")),
    )
    op.create_index(op.f("ix_orders_user_id"), "orders", ["user_id"], unique=False)
    op.create_index(op.f("ix_orders_status"), "orders", ["status"], unique=False)
    op.create_index("ix_orders_user_created", "orders", ["user_id", "created_at"], unique=False)

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("menu_item_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["order_id"],
            ["orders.id"],
            name=op.f("fk_order_items_order_id_orders"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["menu_item_id"],
            ["menu_items.id"],
            name=op.f("fk_order_items_menu_item_id_menu_items"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_order_items")),
    )
    op.create_index(op.f("ix_order_items_order_id"), "order_items", ["order_id"], unique=False)

    # Loyalty ledger
    op.create_table(
        "loyalty_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column(
            "transaction_type",
            postgresql.ENUM(
                "earn",
                "redeem",
                "refund",
                "referral_bonus",
                "referral_reward",
                name="loyalty_transaction_type",
                create_type=False,
            ),
            nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=False, server_default=""),
        sa.Column("order_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["profiles.id"],
            name=op.f("fk_loyalty_transactions_user_id_profiles"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["order_id"],
            ["orders.id"],
            name=op.f("fk_loyalty_transactions_order_id_orders"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_loyalty_transactions")),
    )
    op.create_index(
        op.f("ix_loyalty_transactions_user_id"), "loyalty_transactions", ["user_id"], unique=False
    )
    op.create_index(
        op.f("ix_loyalty_transactions_order_id"),
        "loyalty_transactions",
        ["order_id"],
        unique=False,
    )


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table("loyalty_transactions")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("admins")
    op.drop_table("profiles")
    op.drop_table("menu_items")
    op.drop_table("locations")
    op.drop_table("serviceable_cities")

    # Drop enum types
    op.execute("DROP TYPE IF EXISTS loyalty_transaction_type")
    op.execute("DROP TYPE IF EXISTS payment_method")
    op.execute("DROP TYPE IF EXISTS order_status")
