from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from app.core.auth_deps import get_current_principal
from app.core.realtime import change_bus
from app.core.streaming import open_change_stream
from app.models.enums import AccountRole
from app.policies.rbac import Principal

router = APIRouter(prefix="/realtime")

STREAMABLE_TABLES = {"food_listings", "claims"}


@router.get("/{table}")
async def subscribe_changes(
    table: str,
    request: Request,
    filter: Optional[str] = Query(default=None, description="column=eq.value"),
    event: str = Query(default="*", pattern="^(\\*|INSERT|UPDATE|DELETE)$"),
    principal: Principal = Depends(get_current_principal),
):
    """
    Live change feed as server-sent events. Clients re-subscribe after a disconnect.
    Non-admins only see their own claims.
    """
    if table not in STREAMABLE_TABLES:
        raise HTTPException(status_code=404, detail=f"Unknown table: {table}")

    if table == "claims" and principal.role != AccountRole.ADMIN:
        filter = f"claimed_by=eq.{principal.account_id}"

    try:
        body = open_change_stream(request, change_bus, table, filter=filter, event=event)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return StreamingResponse(
        body,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
