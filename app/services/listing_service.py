# app/services/listing_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import desc, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, PersistenceError
from app.core.realtime import ChangeBus, ChangeEvent, change_bus
from app.db.base import row_to_dict
from app.models.enums import FoodCategory, ListingStatus
from app.models.listing import Listing
from app.schemas.listings import ListingCreateRequest
from app.services.audit_service import AuditAction, AuditService

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def _to_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class ListingService:
    def __init__(self, bus: Optional[ChangeBus] = None, now: Callable[[], datetime] = _now):
        self.bus = bus or change_bus
        self.now = now
        self.audit = AuditService()

    # ---------------------------
    # READS
    # ---------------------------

    def get_listing(self, db: Session, listing_id: uuid.UUID) -> Listing:
        listing = db.get(Listing, listing_id)
        if not listing:
            raise NotFound("Listing not found.")
        return listing

    def browse(
        self,
        db: Session,
        *,
        category: Optional[FoodCategory] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Listing]:
        """
        Available listings, newest first.
        """
        q = select(Listing).where(Listing.status == ListingStatus.available.value)
        if category is not None:
            q = q.where(Listing.category == category.value)
        if search:
            pattern = f"%{search.strip()}%"
            q = q.where(or_(Listing.title.ilike(pattern), Listing.description.ilike(pattern)))
        q = q.order_by(desc(Listing.created_at)).limit(limit).offset(offset)
        return list(db.execute(q).scalars())

    def list_for_donor(
        self,
        db: Session,
        donor_id: uuid.UUID,
        status: Optional[ListingStatus] = None,
    ) -> List[Listing]:
        q = select(Listing).where(Listing.donor_id == donor_id)
        if status is not None:
            q = q.where(Listing.status == status.value)
        return list(db.execute(q.order_by(desc(Listing.created_at))).scalars())

    # ---------------------------
    # MUTATIONS
    # ---------------------------

    def create_listing(
        self,
        db: Session,
        *,
        donor_id: uuid.UUID,
        payload: ListingCreateRequest,
        request_id: Optional[str] = None,
    ) -> Listing:
        now = self.now()
        listing = Listing(
            donor_id=donor_id,
            title=payload.title,
            description=payload.description,
            quantity=payload.quantity,
            category=payload.category.value,
            expiry_date=_to_utc(payload.expiry_date),
            pickup_time_start=_to_utc(payload.pickup_time_start),
            pickup_time_end=_to_utc(payload.pickup_time_end),
            pickup_location=payload.pickup_location,
            status=ListingStatus.available.value,
            created_at=now,
            updated_at=now,
        )
        try:
            db.add(listing)
            db.flush()
            after = row_to_dict(listing)
            self.audit.record(
                db,
                table_name="food_listings",
                record_id=str(listing.id),
                action=AuditAction.LISTING_CREATED,
                user_id=str(donor_id),
                new_values=after,
                request_id=request_id,
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("create listing failed", extra={"donor_id": str(donor_id), "error": e.__class__.__name__})
            raise PersistenceError("Failed to create listing. Please try again.")

        self.bus.publish(ChangeEvent(table="food_listings", event_type="INSERT", new=after))
        return listing

    def expire_overdue(self, db: Session, *, request_id: Optional[str] = None) -> List[Listing]:
        """
        available -> expired for every listing whose expiry_date has passed.
        Claimed/completed listings are never touched.
        """
        now = self.now()
        due = list(
            db.execute(
                select(Listing)
                .where(
                    Listing.status == ListingStatus.available.value,
                    Listing.expiry_date <= now,
                )
                .with_for_update()
            ).scalars()
        )

        expired: List[Listing] = []
        events: List[ChangeEvent] = []
        try:
            for listing in due:
                before = row_to_dict(listing)
                res = db.execute(
                    update(Listing)
                    .where(Listing.id == listing.id, Listing.status == ListingStatus.available.value)
                    .values(status=ListingStatus.expired.value, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount != 1:
                    continue
                db.refresh(listing)
                after = row_to_dict(listing)
                self.audit.record(
                    db,
                    table_name="food_listings",
                    record_id=str(listing.id),
                    action=AuditAction.LISTING_EXPIRED,
                    user_id=None,
                    old_values=before,
                    new_values=after,
                    request_id=request_id,
                )
                expired.append(listing)
                events.append(ChangeEvent(table="food_listings", event_type="UPDATE", new=after, old=before))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("expire listings failed", extra={"error": e.__class__.__name__})
            raise PersistenceError("Failed to expire overdue listings.")

        for ev in events:
            self.bus.publish(ev)
        if expired:
            logger.info("listings expired", extra={"count": len(expired)})
        return expired
