from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.errors import FoodShareError, RateLimited
from app.db.session import get_db
from app.schemas.auth import AccountPublic, SignupRequest, SignupResponse
from app.services.signup_service import SignupService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions")


def client_ip(request: Request) -> Optional[str]:
    """First X-Forwarded-For hop, else the socket peer."""
    fwd = request.headers.get("x-forwarded-for")
    if fwd:
        first = fwd.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


@router.post("/secure-signup", response_model=SignupResponse)
async def secure_signup(
    body: SignupRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Throttled signup. 200 -> {success, message, user}; 4xx/5xx -> {error}.
    """
    ip = body.ip_address or client_ip(request)
    try:
        acct = SignupService(db).attempt_signup(
            email=body.email,
            password=body.password,
            user_data=body.userData.model_dump(),
            ip_address=ip,
        )
    except RateLimited as e:
        return JSONResponse(
            status_code=e.status_code,
            content={"error": e.message, "reason": e.reason},
            headers={"Retry-After": "3600"},
        )
    except FoodShareError as e:
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except Exception:
        logger.exception("secure signup failed", extra={"ip_address": ip})
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return SignupResponse(user=AccountPublic.model_validate(acct))
