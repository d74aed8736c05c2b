# app/api/v1/claims.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import FoodShareError, to_http_exception
from app.db.session import get_db
from app.models.enums import AccountRole, ClaimStatus
from app.models.listing import Listing
from app.policies.rbac import ACTION_CLAIM_LISTING, Principal, require_action
from app.schemas.claims import ClaimCreateRequest, ClaimRecord, SchedulePickupRequest
from app.schemas.stats import RecipientSummary
from app.services.claim_service import ClaimService
from app.services.stats_service import recipient_summary

router = APIRouter(prefix="/claims")


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _actor(principal: Principal) -> Optional[uuid.UUID]:
    # admins act on any claim
    if principal.role == AccountRole.ADMIN:
        return None
    return uuid.UUID(principal.account_id)


# ─────────────────────────────────────────────────────────────
# CLAIM A LISTING
# ─────────────────────────────────────────────────────────────

@router.post("", response_model=ClaimRecord)
async def create_claim(
    req: ClaimCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        require_action(principal, ACTION_CLAIM_LISTING)
        claim = ClaimService().claim(
            db,
            listing_id=req.listing_id,
            requesting_user_id=uuid.UUID(principal.account_id),
            quantity_requested=req.quantity_requested,
            notes=req.notes,
            request_id=_request_id(request),
        )
    except FoodShareError as e:
        raise to_http_exception(e)
    return ClaimRecord.model_validate(claim)


# ─────────────────────────────────────────────────────────────
# RECIPIENT VIEWS
# ─────────────────────────────────────────────────────────────

@router.get("/mine", response_model=List[ClaimRecord])
async def my_claims(
    status: Optional[ClaimStatus] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows = ClaimService().list_for_claimant(db, uuid.UUID(principal.account_id), status=status)
    return [ClaimRecord.model_validate(r) for r in rows]


@router.get("/mine/summary", response_model=RecipientSummary)
async def my_claim_summary(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows = ClaimService().list_for_claimant(db, uuid.UUID(principal.account_id))
    return recipient_summary(rows)


@router.get("/{claim_id}", response_model=ClaimRecord)
async def get_claim(
    claim_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        claim = ClaimService().get_claim(db, claim_id)
    except FoodShareError as e:
        raise to_http_exception(e)

    me = uuid.UUID(principal.account_id)
    if principal.role != AccountRole.ADMIN and claim.claimed_by != me:
        listing = db.get(Listing, claim.listing_id)
        if not listing or listing.donor_id != me:
            raise HTTPException(status_code=403, detail="Not a party to this claim.")
    return ClaimRecord.model_validate(claim)


# ─────────────────────────────────────────────────────────────
# TRANSITIONS
# ─────────────────────────────────────────────────────────────

@router.post("/{claim_id}/receive", response_model=ClaimRecord)
async def mark_received(
    claim_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        claim = ClaimService().mark_received(
            db,
            claim_id=claim_id,
            actor_id=_actor(principal),
            request_id=_request_id(request),
        )
    except FoodShareError as e:
        raise to_http_exception(e)
    return ClaimRecord.model_validate(claim)


@router.post("/{claim_id}/cancel", response_model=ClaimRecord)
async def cancel_claim(
    claim_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        claim = ClaimService().cancel_claim(
            db,
            claim_id=claim_id,
            actor_id=_actor(principal),
            request_id=_request_id(request),
        )
    except FoodShareError as e:
        raise to_http_exception(e)
    return ClaimRecord.model_validate(claim)


@router.post("/{claim_id}/schedule", response_model=ClaimRecord)
async def schedule_pickup(
    claim_id: uuid.UUID,
    req: SchedulePickupRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        claim = ClaimService().schedule_pickup(
            db,
            claim_id=claim_id,
            pickup_at=req.pickup_at,
            actor_id=_actor(principal),
            request_id=_request_id(request),
        )
    except FoodShareError as e:
        raise to_http_exception(e)
    return ClaimRecord.model_validate(claim)
