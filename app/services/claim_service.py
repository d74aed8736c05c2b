# app/services/claim_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from sqlalchemy import select, update, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import (
    Forbidden,
    InvalidState,
    MalformedRequest,
    NotFound,
    PersistenceError,
    SelfClaimDenied,
)
from app.core.realtime import ChangeBus, ChangeEvent, change_bus
from app.db.base import row_to_dict
from app.models.claim import Claim
from app.models.enums import ClaimStatus, ListingStatus
from app.models.listing import Listing
from app.services.audit_service import AuditAction, AuditService

logger = logging.getLogger(__name__)


# Legal moves. Listings only move forward.
LISTING_TRANSITIONS: Dict[str, Set[str]] = {
    ListingStatus.available.value: {ListingStatus.claimed.value, ListingStatus.expired.value},
    ListingStatus.claimed.value: {ListingStatus.completed.value},
    ListingStatus.completed.value: set(),
    ListingStatus.expired.value: set(),
}

CLAIM_TRANSITIONS: Dict[str, Set[str]] = {
    ClaimStatus.pending.value: {ClaimStatus.received.value, ClaimStatus.cancelled.value},
    ClaimStatus.received.value: set(),
    ClaimStatus.cancelled.value: set(),
}


def _now():
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def assert_listing_transition(current: str, target: str) -> None:
    if target not in LISTING_TRANSITIONS.get(current, set()):
        raise InvalidState(f"Listing cannot move from {current} to {target}.")


def assert_claim_transition(current: str, target: str) -> None:
    if target not in CLAIM_TRANSITIONS.get(current, set()):
        raise InvalidState(f"Claim cannot move from {current} to {target}.")


class ClaimService:
    """
    Claim lifecycle: claim a listing, confirm receipt, complete, cancel.

    Every operation is one transaction. Listing/claim status changes are
    conditional UPDATEs (`... WHERE status = <expected>`) and the affected
    row count decides whether we won; a lost race rolls the whole
    transaction back, so a claim row never outlives a failed listing update.
    Change events are published only after commit.
    """

    def __init__(
        self,
        bus: Optional[ChangeBus] = None,
        now: Callable[[], datetime] = _now,
        auto_complete_on_receipt: Optional[bool] = None,
    ):
        self.bus = bus or change_bus
        self.now = now
        if auto_complete_on_receipt is None:
            auto_complete_on_receipt = get_settings().auto_complete_on_receipt
        self.auto_complete_on_receipt = auto_complete_on_receipt
        self.audit = AuditService()

    # ---------------------------
    # READS
    # ---------------------------

    def get_claim(self, db: Session, claim_id: uuid.UUID) -> Claim:
        claim = db.get(Claim, claim_id)
        if not claim:
            raise NotFound("Claim not found.")
        return claim

    def list_for_claimant(
        self,
        db: Session,
        claimant_id: uuid.UUID,
        status: Optional[ClaimStatus] = None,
    ) -> List[Claim]:
        q = select(Claim).where(Claim.claimed_by == claimant_id)
        if status is not None:
            q = q.where(Claim.status == status.value)
        return list(db.execute(q.order_by(desc(Claim.claimed_at))).scalars())

    def active_claim_for_listing(self, db: Session, listing_id: uuid.UUID) -> Optional[Claim]:
        return db.execute(
            select(Claim).where(
                Claim.listing_id == listing_id,
                Claim.status != ClaimStatus.cancelled.value,
            )
        ).scalar_one_or_none()

    # ---------------------------
    # MUTATIONS
    # ---------------------------

    def claim(
        self,
        db: Session,
        *,
        listing_id: uuid.UUID,
        requesting_user_id: uuid.UUID,
        quantity_requested: Optional[int] = None,
        notes: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Claim:
        """
        Rules:
        - listing must exist
        - requester must not be the donor
        - listing must be available (and not past its expiry date)
        """
        if quantity_requested is not None and quantity_requested <= 0:
            raise MalformedRequest("quantity_requested must be positive.")

        listing = db.get(Listing, listing_id)
        if not listing:
            raise NotFound("Listing not found.")
        if listing.donor_id == requesting_user_id:
            raise SelfClaimDenied()
        assert_listing_transition(listing.status, ListingStatus.claimed.value)

        now = self.now()
        if _as_utc(listing.expiry_date) <= now:
            raise InvalidState("Listing has passed its expiry date.")

        listing_before = row_to_dict(listing)
        claim = Claim(
            listing_id=listing_id,
            claimed_by=requesting_user_id,
            status=ClaimStatus.pending.value,
            quantity_requested=quantity_requested,
            notes=notes,
            claimed_at=now,
        )

        try:
            db.add(claim)
            db.flush()

            res = db.execute(
                update(Listing)
                .where(
                    Listing.id == listing_id,
                    Listing.status == ListingStatus.available.value,
                )
                .values(
                    status=ListingStatus.claimed.value,
                    claimed_by=requesting_user_id,
                    claimed_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                db.rollback()
                raise InvalidState("Listing was claimed by someone else.")

            db.refresh(listing)
            claim_after = row_to_dict(claim)
            listing_after = row_to_dict(listing)

            actor = str(requesting_user_id)
            self.audit.record(
                db,
                table_name="claims",
                record_id=str(claim.id),
                action=AuditAction.CLAIM_CREATED,
                user_id=actor,
                new_values=claim_after,
                request_id=request_id,
            )
            self.audit.record(
                db,
                table_name="food_listings",
                record_id=str(listing_id),
                action=AuditAction.LISTING_CLAIMED,
                user_id=actor,
                old_values=listing_before,
                new_values=listing_after,
                request_id=request_id,
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            raise InvalidState("Listing already has an active claim.")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "claim write failed",
                extra={"listing_id": str(listing_id), "error": e.__class__.__name__},
            )
            raise PersistenceError("Failed to claim the food donation.")

        logger.info(
            "listing claimed",
            extra={"listing_id": str(listing_id), "claim_id": str(claim.id), "claimed_by": str(requesting_user_id)},
        )
        self._publish(
            ChangeEvent(table="claims", event_type="INSERT", new=claim_after),
            ChangeEvent(table="food_listings", event_type="UPDATE", new=listing_after, old=listing_before),
        )
        return claim

    def mark_received(
        self,
        db: Session,
        *,
        claim_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        request_id: Optional[str] = None,
    ) -> Claim:
        """
        pending -> received. A second call fails with InvalidState and
        leaves the first call's effect untouched.
        """
        claim = self.get_claim(db, claim_id)
        if actor_id is not None and claim.claimed_by != actor_id:
            raise Forbidden("Only the claimant can confirm receipt.")
        assert_claim_transition(claim.status, ClaimStatus.received.value)

        now = self.now()
        claim_before = row_to_dict(claim)
        events: List[ChangeEvent] = []

        try:
            res = db.execute(
                update(Claim)
                .where(Claim.id == claim_id, Claim.status == ClaimStatus.pending.value)
                .values(status=ClaimStatus.received.value, received_at=now)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                db.rollback()
                raise InvalidState("Claim is no longer pending.")

            if self.auto_complete_on_receipt:
                events.extend(self._complete_listing(db, claim.listing_id, now, actor_id, request_id))
                if events:
                    claim.completed_at = now
                    db.flush()

            db.refresh(claim)
            claim_after = row_to_dict(claim)
            self.audit.record(
                db,
                table_name="claims",
                record_id=str(claim_id),
                action=AuditAction.CLAIM_RECEIVED,
                user_id=str(actor_id) if actor_id else None,
                old_values=claim_before,
                new_values=claim_after,
                request_id=request_id,
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("mark received failed", extra={"claim_id": str(claim_id), "error": e.__class__.__name__})
            raise PersistenceError("Failed to mark the claim as received.")

        logger.info("claim received", extra={"claim_id": str(claim_id)})
        self._publish(
            ChangeEvent(table="claims", event_type="UPDATE", new=claim_after, old=claim_before),
            *events,
        )
        return claim

    def mark_completed(
        self,
        db: Session,
        *,
        listing_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        request_id: Optional[str] = None,
    ) -> Listing:
        """
        claimed -> completed, by the donor (or an admin passing actor_id=None).
        A still pending claim counts as received by the hand-over, so it
        moves to received in the same transaction and can no longer be cancelled.
        """
        listing = db.get(Listing, listing_id)
        if not listing:
            raise NotFound("Listing not found.")
        if actor_id is not None and listing.donor_id != actor_id:
            raise Forbidden("Only the donor can complete this listing.")
        assert_listing_transition(listing.status, ListingStatus.completed.value)

        now = self.now()
        try:
            events = self._complete_listing(db, listing_id, now, actor_id, request_id)
            if not events:
                db.rollback()
                raise InvalidState("Listing is no longer claimed.")

            active = self.active_claim_for_listing(db, listing_id)
            if active is not None and active.completed_at is None:
                claim_before = row_to_dict(active)
                values = {"completed_at": now}
                if active.status == ClaimStatus.pending.value:
                    values.update(status=ClaimStatus.received.value, received_at=now)
                res = db.execute(
                    update(Claim)
                    .where(Claim.id == active.id, Claim.status == active.status)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if res.rowcount != 1:
                    db.rollback()
                    raise InvalidState("Claim changed while completing the listing.")
                db.refresh(active)
                claim_after = row_to_dict(active)
                self.audit.record(
                    db,
                    table_name="claims",
                    record_id=str(active.id),
                    action=AuditAction.CLAIM_RECEIVED
                    if claim_before["status"] == ClaimStatus.pending.value
                    else AuditAction.CLAIM_COMPLETED,
                    user_id=str(actor_id) if actor_id else None,
                    old_values=claim_before,
                    new_values=claim_after,
                    request_id=request_id,
                )
                events.append(
                    ChangeEvent(table="claims", event_type="UPDATE", new=claim_after, old=claim_before)
                )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("mark completed failed", extra={"listing_id": str(listing_id), "error": e.__class__.__name__})
            raise PersistenceError("Failed to complete the listing.")

        db.refresh(listing)
        logger.info("listing completed", extra={"listing_id": str(listing_id)})
        self._publish(*events)
        return listing

    def cancel_claim(
        self,
        db: Session,
        *,
        claim_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        request_id: Optional[str] = None,
    ) -> Claim:
        """
        pending -> cancelled. Only allowed while the listing is still claimed
        by the same claimant; the listing itself keeps its state.
        """
        claim = self.get_claim(db, claim_id)
        if actor_id is not None and claim.claimed_by != actor_id:
            raise Forbidden("Only the claimant can cancel this claim.")
        assert_claim_transition(claim.status, ClaimStatus.cancelled.value)

        listing = db.get(Listing, claim.listing_id)
        if (
            listing is None
            or listing.status != ListingStatus.claimed.value
            or listing.claimed_by != claim.claimed_by
        ):
            raise InvalidState("Listing is no longer held by this claim.")

        now = self.now()
        claim_before = row_to_dict(claim)

        try:
            res = db.execute(
                update(Claim)
                .where(Claim.id == claim_id, Claim.status == ClaimStatus.pending.value)
                .values(status=ClaimStatus.cancelled.value, cancelled_at=now)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                db.rollback()
                raise InvalidState("Claim is no longer pending.")

            db.refresh(claim)
            claim_after = row_to_dict(claim)
            self.audit.record(
                db,
                table_name="claims",
                record_id=str(claim_id),
                action=AuditAction.CLAIM_CANCELLED,
                user_id=str(actor_id) if actor_id else None,
                old_values=claim_before,
                new_values=claim_after,
                request_id=request_id,
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("cancel claim failed", extra={"claim_id": str(claim_id), "error": e.__class__.__name__})
            raise PersistenceError("Failed to cancel the claim.")

        logger.info("claim cancelled", extra={"claim_id": str(claim_id)})
        self._publish(ChangeEvent(table="claims", event_type="UPDATE", new=claim_after, old=claim_before))
        return claim

    def schedule_pickup(
        self,
        db: Session,
        *,
        claim_id: uuid.UUID,
        pickup_at: datetime,
        actor_id: Optional[uuid.UUID] = None,
        request_id: Optional[str] = None,
    ) -> Claim:
        claim = self.get_claim(db, claim_id)
        if actor_id is not None and claim.claimed_by != actor_id:
            raise Forbidden("Only the claimant can schedule the pickup.")
        if claim.status != ClaimStatus.pending.value:
            raise InvalidState(f"Cannot schedule pickup for a {claim.status} claim.")

        claim_before = row_to_dict(claim)
        try:
            claim.pickup_scheduled_at = pickup_at
            db.flush()
            claim_after = row_to_dict(claim)
            self.audit.record(
                db,
                table_name="claims",
                record_id=str(claim_id),
                action=AuditAction.CLAIM_PICKUP_SCHEDULED,
                user_id=str(actor_id) if actor_id else None,
                old_values=claim_before,
                new_values=claim_after,
                request_id=request_id,
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("schedule pickup failed", extra={"claim_id": str(claim_id), "error": e.__class__.__name__})
            raise PersistenceError("Failed to schedule the pickup.")

        self._publish(ChangeEvent(table="claims", event_type="UPDATE", new=claim_after, old=claim_before))
        return claim

    # ---------------------------
    # INTERNALS
    # ---------------------------

    def _complete_listing(
        self,
        db: Session,
        listing_id: uuid.UUID,
        now: datetime,
        actor_id: Optional[uuid.UUID],
        request_id: Optional[str],
    ) -> List[ChangeEvent]:
        """
        claimed -> completed inside the caller's transaction.
        Returns the change events to publish, empty when the listing was not claimed.
        """
        listing = db.get(Listing, listing_id)
        listing_before = row_to_dict(listing)
        res = db.execute(
            update(Listing)
            .where(Listing.id == listing_id, Listing.status == ListingStatus.claimed.value)
            .values(status=ListingStatus.completed.value, completed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            return []

        db.refresh(listing)
        listing_after = row_to_dict(listing)
        self.audit.record(
            db,
            table_name="food_listings",
            record_id=str(listing_id),
            action=AuditAction.LISTING_COMPLETED,
            user_id=str(actor_id) if actor_id else None,
            old_values=listing_before,
            new_values=listing_after,
            request_id=request_id,
        )
        return [ChangeEvent(table="food_listings", event_type="UPDATE", new=listing_after, old=listing_before)]

    def _publish(self, *events: ChangeEvent) -> None:
        for ev in events:
            self.bus.publish(ev)
