#app/core/errors.py
from __future__ import annotations

from typing import Optional

from fastapi import HTTPException


class FoodShareError(Exception):
    """
    Base for every domain failure raised by the services.
    Routers translate these into HTTP responses via `status_code`.
    """
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(FoodShareError, LookupError):
    status_code = 404


class InvalidState(FoodShareError, ValueError):
    """Status precondition violated (listing not available, claim not pending...)."""
    status_code = 409


class Forbidden(FoodShareError, PermissionError):
    status_code = 403


class SelfClaimDenied(Forbidden):
    def __init__(self, message: str = "Donors cannot claim their own listing."):
        super().__init__(message)


class RateLimited(FoodShareError):
    status_code = 429

    def __init__(self, reason: str, message: Optional[str] = None):
        if message is None:
            if reason == "ip":
                message = "Too many signup attempts. Please try again later."
            else:
                message = "Too many attempts with this email. Please try again later."
        super().__init__(message)
        self.reason = reason


class UpstreamError(FoodShareError):
    """Identity provider rejected or failed the call."""
    status_code = 400


class MalformedRequest(FoodShareError, ValueError):
    status_code = 400


class PersistenceError(FoodShareError):
    status_code = 500


def to_http_exception(e: FoodShareError) -> HTTPException:
    """Router-side translation, keeps the human readable message as `detail`."""
    headers = {"Retry-After": "3600"} if isinstance(e, RateLimited) else None
    return HTTPException(status_code=e.status_code, detail=e.message, headers=headers)
