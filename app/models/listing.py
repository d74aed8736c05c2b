#app/models/listing.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    Text,
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
from app.models.enums import FoodCategory, ListingStatus, sql_in


class Listing(Base):
    __tablename__ = "food_listings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    donor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    quantity: Mapped[str] = mapped_column(String(100), nullable=False)  # free text, e.g. "20 meals"
    category: Mapped[str] = mapped_column(String(32), nullable=False)

    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pickup_time_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pickup_time_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    pickup_location: Mapped[str] = mapped_column(String(500), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ListingStatus.available.value,
        server_default=text(f"'{ListingStatus.available.value}'"),
    )

    claimed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    claims = relationship("Claim", back_populates="listing", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(f"status IN {sql_in(ListingStatus)}", name="ck_listings_status"),
        CheckConstraint(f"category IN {sql_in(FoodCategory)}", name="ck_listings_category"),
        # available <=> nobody holds it
        CheckConstraint(
            "(status IN ('available', 'expired') AND claimed_by IS NULL)"
            " OR (status IN ('claimed', 'completed') AND claimed_by IS NOT NULL)",
            name="ck_listings_claimed_by_matches_status",
        ),
        CheckConstraint("pickup_time_end > pickup_time_start", name="ck_listings_pickup_window"),
        Index("ix_listings_status_created", "status", "created_at"),
        Index("ix_listings_donor", "donor_id"),
    )
