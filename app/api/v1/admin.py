from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import FoodShareError, to_http_exception
from app.db.session import get_db
from app.policies.rbac import (
    ACTION_EXPIRE_LISTINGS,
    ACTION_VIEW_PLATFORM_STATS,
    Principal,
    require_action,
)
from app.schemas.listings import ExpireResponse
from app.schemas.stats import PlatformStats
from app.services.listing_service import ListingService
from app.services.stats_service import PlatformStatsService

router = APIRouter(prefix="/admin")


@router.get("/stats", response_model=PlatformStats)
async def platform_stats(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        require_action(principal, ACTION_VIEW_PLATFORM_STATS)
    except FoodShareError as e:
        raise to_http_exception(e)
    return PlatformStatsService().compute(db)


@router.post("/listings/expire", response_model=ExpireResponse)
async def expire_listings(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        require_action(principal, ACTION_EXPIRE_LISTINGS)
        expired = ListingService().expire_overdue(
            db, request_id=getattr(request.state, "request_id", None)
        )
    except FoodShareError as e:
        raise to_http_exception(e)
    return ExpireResponse(expired=len(expired), listing_ids=[str(l.id) for l in expired])
