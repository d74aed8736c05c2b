#app/core/auth_deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.errors import FoodShareError
from app.db.session import get_db
from app.policies.rbac import Principal
from app.services.identity_service import IdentityProvider

bearer = HTTPBearer(auto_error=True)


def get_current_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> Principal:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid and not expired
    - the session it names exists and was not signed out
    - the account is active and its role is a valid AccountRole
    """
    try:
        principal = IdentityProvider(db).get_session(creds.credentials)
    except FoodShareError as e:
        raise HTTPException(status_code=401, detail=e.message)

    # Make principal available to downstream middleware / handlers
    request.state.principal = principal

    return principal
