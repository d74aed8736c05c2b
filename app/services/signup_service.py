# app/services/signup_service.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import FoodShareError, MalformedRequest, RateLimited
from app.core.rate_limit import SignupAttemptLimiter, SlidingWindow
from app.models.account import Account
from app.services.identity_service import IdentityProvider, normalize_email

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def coerce_role(user_data: Dict[str, Any], allowed: Iterable[str], default: str) -> Dict[str, Any]:
    """
    Unknown or privileged roles are replaced by the default rather than
    rejected.
    """
    out = dict(user_data)
    if out.get("role") not in set(allowed):
        out["role"] = default
    return out


def default_limiter() -> SignupAttemptLimiter:
    settings = get_settings()
    return SignupAttemptLimiter(
        per_ip=SlidingWindow(minutes=settings.signup_window_minutes, limit=settings.signup_max_per_ip),
        per_email=SlidingWindow(minutes=settings.signup_window_minutes, limit=settings.signup_max_per_email),
    )


class SignupService:
    """
    Throttled account creation.

    Steps:
    1. IP window check        -> RateLimited("ip")
    2. Email window check     -> RateLimited("email")
    3. Role coercion          (silent)
    4. IdentityProvider.create_user, immediately usable
    5. Attempt row written on every path, success == no error
    """

    def __init__(
        self,
        db: Session,
        identity: Optional[IdentityProvider] = None,
        limiter: Optional[SignupAttemptLimiter] = None,
        now: Callable[[], datetime] = _now,
    ):
        self.db = db
        self.identity = identity or IdentityProvider(db, now=now)
        self.limiter = limiter or default_limiter()
        self.now = now

    def attempt_signup(
        self,
        *,
        email: Optional[str],
        password: Optional[str],
        user_data: Dict[str, Any],
        ip_address: Optional[str] = None,
    ) -> Account:
        settings = get_settings()
        now = self.now()
        email_norm = normalize_email(email or "") or None

        if not email_norm or not password:
            self.limiter.record(self.db, ip_address=ip_address, email=email_norm, success=False, now=now)
            raise MalformedRequest("email and password are required.")

        if self.limiter.ip_exceeded(self.db, ip_address, now):
            self.limiter.record(self.db, ip_address=ip_address, email=email_norm, success=False, now=now)
            logger.warning("signup rate limited", extra={"reason": "ip", "ip_address": ip_address})
            raise RateLimited("ip")

        if self.limiter.email_exceeded(self.db, email_norm, now):
            self.limiter.record(self.db, ip_address=ip_address, email=email_norm, success=False, now=now)
            logger.warning("signup rate limited", extra={"reason": "email"})
            raise RateLimited("email")

        metadata = coerce_role(user_data, settings.signup_allowed_roles, settings.signup_default_role)

        try:
            acct = self.identity.create_user(
                email=email_norm,
                password=password,
                user_metadata=metadata,
                require_email_confirmation=False,
            )
        except FoodShareError as e:
            self.limiter.record(self.db, ip_address=ip_address, email=email_norm, success=False, now=now)
            logger.warning("signup rejected", extra={"error": e.message})
            raise

        self.limiter.record(self.db, ip_address=ip_address, email=email_norm, success=True, now=now)
        return acct
