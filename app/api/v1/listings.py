# app/api/v1/listings.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import FoodShareError, to_http_exception
from app.db.session import get_db
from app.models.enums import AccountRole, FoodCategory, ListingStatus
from app.policies.rbac import ACTION_CREATE_LISTING, Principal, require_action
from app.schemas.listings import ListingCreateRequest, ListingRecord
from app.schemas.stats import DonorSummary
from app.services.claim_service import ClaimService
from app.services.listing_service import ListingService
from app.services.stats_service import donor_summary

router = APIRouter(prefix="/listings")


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


# ─────────────────────────────────────────────────────────────
# BROWSE (public)
# ─────────────────────────────────────────────────────────────

@router.get("", response_model=List[ListingRecord])
async def browse_listings(
    category: Optional[FoodCategory] = None,
    search: Optional[str] = Query(default=None, max_length=200),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    rows = ListingService().browse(db, category=category, search=search, limit=limit, offset=offset)
    return [ListingRecord.model_validate(r) for r in rows]


# ─────────────────────────────────────────────────────────────
# CREATE
# ─────────────────────────────────────────────────────────────

@router.post("", response_model=ListingRecord)
async def create_listing(
    req: ListingCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        require_action(principal, ACTION_CREATE_LISTING)
        listing = ListingService().create_listing(
            db,
            donor_id=uuid.UUID(principal.account_id),
            payload=req,
            request_id=_request_id(request),
        )
    except FoodShareError as e:
        raise to_http_exception(e)
    return ListingRecord.model_validate(listing)


# ─────────────────────────────────────────────────────────────
# DONOR VIEWS
# ─────────────────────────────────────────────────────────────

@router.get("/mine", response_model=List[ListingRecord])
async def my_listings(
    status: Optional[ListingStatus] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows = ListingService().list_for_donor(db, uuid.UUID(principal.account_id), status=status)
    return [ListingRecord.model_validate(r) for r in rows]


@router.get("/mine/summary", response_model=DonorSummary)
async def my_listing_summary(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows = ListingService().list_for_donor(db, uuid.UUID(principal.account_id))
    return donor_summary(rows)


@router.get("/{listing_id}", response_model=ListingRecord)
async def get_listing(listing_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        listing = ListingService().get_listing(db, listing_id)
    except FoodShareError as e:
        raise to_http_exception(e)
    return ListingRecord.model_validate(listing)


# ─────────────────────────────────────────────────────────────
# COMPLETE (donor, or admin on anyone's listing)
# ─────────────────────────────────────────────────────────────

@router.post("/{listing_id}/complete", response_model=ListingRecord)
async def complete_listing(
    listing_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    actor = None if principal.role == AccountRole.ADMIN else uuid.UUID(principal.account_id)
    try:
        listing = ClaimService().mark_completed(
            db,
            listing_id=listing_id,
            actor_id=actor,
            request_id=_request_id(request),
        )
    except FoodShareError as e:
        raise to_http_exception(e)
    return ListingRecord.model_validate(listing)
