"""food share core tables

Revision ID: 0001_food_share_core
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_food_share_core"
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _ts(name: str, nullable: bool = False, default_now: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if default_now else None,
    )


def upgrade():
    # ─────────── accounts ───────────
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        _ts("email_confirmed_at", nullable=True, default_now=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("full_name", sa.String(length=256), nullable=False, server_default=""),
        sa.Column("organization_name", sa.String(length=256), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "role IN ('donor','ngo','recipient','admin')", name="ck_accounts_role"
        ),
    )
    op.create_index("ix_accounts_role", "accounts", ["role"])

    # ─────────── auth_sessions ───────────
    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "account_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _ts("created_at"),
        _ts("expires_at", default_now=False),
        _ts("revoked_at", nullable=True, default_now=False),
    )
    op.create_index("ix_auth_sessions_account", "auth_sessions", ["account_id"])

    # ─────────── food_listings ───────────
    op.create_table(
        "food_listings",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "donor_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("quantity", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        _ts("expiry_date", default_now=False),
        _ts("pickup_time_start", default_now=False),
        _ts("pickup_time_end", default_now=False),
        sa.Column("pickup_location", sa.String(length=500), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'available'")),
        sa.Column(
            "claimed_by",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _ts("claimed_at", nullable=True, default_now=False),
        _ts("completed_at", nullable=True, default_now=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "status IN ('available','claimed','completed','expired')", name="ck_listings_status"
        ),
        sa.CheckConstraint(
            "category IN ('vegetables','fruits','grains','dairy','meat','bakery','prepared_food','other')",
            name="ck_listings_category",
        ),
        sa.CheckConstraint(
            "(status IN ('available', 'expired') AND claimed_by IS NULL)"
            " OR (status IN ('claimed', 'completed') AND claimed_by IS NOT NULL)",
            name="ck_listings_claimed_by_matches_status",
        ),
        sa.CheckConstraint("pickup_time_end > pickup_time_start", name="ck_listings_pickup_window"),
    )
    op.create_index("ix_listings_status_created", "food_listings", ["status", "created_at"])
    op.create_index("ix_listings_donor", "food_listings", ["donor_id"])

    # ─────────── claims ───────────
    op.create_table(
        "claims",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column(
            "listing_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("food_listings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "claimed_by",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("quantity_requested", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.Text(), nullable=True),
        _ts("claimed_at"),
        _ts("pickup_scheduled_at", nullable=True, default_now=False),
        _ts("received_at", nullable=True, default_now=False),
        _ts("cancelled_at", nullable=True, default_now=False),
        _ts("completed_at", nullable=True, default_now=False),
        sa.CheckConstraint("status IN ('pending','received','cancelled')", name="ck_claims_status"),
        sa.CheckConstraint(
            "quantity_requested IS NULL OR quantity_requested > 0",
            name="ck_claims_quantity_positive",
        ),
    )
    # one non-cancelled claim per listing
    op.create_index(
        "uq_claims_active_per_listing",
        "claims",
        ["listing_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
        sqlite_where=sa.text("status <> 'cancelled'"),
    )
    op.create_index("ix_claims_claimed_by", "claims", ["claimed_by", "claimed_at"])

    # ─────────── signup_attempts ───────────
    op.create_table(
        "signup_attempts",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        _ts("attempt_time"),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_signup_attempts_ip_time", "signup_attempts", ["ip_address", "attempt_time"])
    op.create_index("ix_signup_attempts_email_time", "signup_attempts", ["email", "attempt_time"])

    # ─────────── audit_logs ───────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("table_name", sa.String(length=64), nullable=False),
        sa.Column("record_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("request_id", sa.String(length=128), nullable=True),
        sa.Column("old_values", JSONType, nullable=True),
        sa.Column("new_values", JSONType, nullable=True),
        _ts("timestamp"),
    )
    op.create_index("ix_audit_logs_record", "audit_logs", ["table_name", "record_id"])
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])


def downgrade():
    op.drop_index("ix_audit_logs_timestamp", table_name="audit_logs")
    op.drop_index("ix_audit_logs_record", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_signup_attempts_email_time", table_name="signup_attempts")
    op.drop_index("ix_signup_attempts_ip_time", table_name="signup_attempts")
    op.drop_table("signup_attempts")

    op.drop_index("ix_claims_claimed_by", table_name="claims")
    op.drop_index("uq_claims_active_per_listing", table_name="claims")
    op.drop_table("claims")

    op.drop_index("ix_listings_donor", table_name="food_listings")
    op.drop_index("ix_listings_status_created", table_name="food_listings")
    op.drop_table("food_listings")

    op.drop_index("ix_auth_sessions_account", table_name="auth_sessions")
    op.drop_table("auth_sessions")

    op.drop_index("ix_accounts_role", table_name="accounts")
    op.drop_table("accounts")
