#app/models/claim.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Integer,
    Text,
    String,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, utcnow
from app.models.enums import ClaimStatus, sql_in


class Claim(Base):
    __tablename__ = "claims"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    listing_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("food_listings.id", ondelete="CASCADE"),
        nullable=False,
    )
    claimed_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    quantity_requested: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ClaimStatus.pending.value,
        server_default=text(f"'{ClaimStatus.pending.value}'"),
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    claimed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    pickup_scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    listing = relationship("Listing", back_populates="claims")

    __table_args__ = (
        CheckConstraint(f"status IN {sql_in(ClaimStatus)}", name="ck_claims_status"),
        CheckConstraint(
            "quantity_requested IS NULL OR quantity_requested > 0",
            name="ck_claims_quantity_positive",
        ),
        # at most one non-cancelled claim per listing
        Index(
            "uq_claims_active_per_listing",
            "listing_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("ix_claims_claimed_by", "claimed_by", "claimed_at"),
    )
