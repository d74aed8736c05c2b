#app/api/v1/auth.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import FoodShareError, UpstreamError, to_http_exception
from app.db.session import get_db
from app.policies.rbac import Principal
from app.schemas.auth import AccountPublic, LoginRequest, SessionResponse, TokenResponse
from app.services.identity_service import IdentityProvider

router = APIRouter(prefix="/auth")


@router.post("/login", response_model=TokenResponse)
async def login(req: LoginRequest, db: Session = Depends(get_db)):
    try:
        acct, token, expires_at = IdentityProvider(db).sign_in(req.email, req.password)
    except UpstreamError as e:
        raise HTTPException(status_code=401, detail=e.message)
    return TokenResponse(
        access_token=token,
        expires_at=expires_at,
        user=AccountPublic.model_validate(acct),
    )


@router.post("/logout")
async def logout(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        IdentityProvider(db).sign_out(principal.session_id)
    except FoodShareError as e:
        raise to_http_exception(e)
    return {"status": "signed_out"}


@router.get("/session", response_model=SessionResponse)
def get_session(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    acct = IdentityProvider(db).get_account(uuid.UUID(principal.account_id))
    return SessionResponse(
        account_id=principal.account_id,
        email=principal.email,
        role=principal.role.value,
        session_id=principal.session_id,
        profile={
            "full_name": acct.full_name,
            "organization_name": acct.organization_name,
            "phone": acct.phone,
        },
    )
