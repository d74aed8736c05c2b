from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field


class DonorSummary(BaseModel):
    total: int = 0
    available: int = 0
    claimed: int = 0
    completed: int = 0
    expired: int = 0


class RecipientSummary(BaseModel):
    total: int = 0
    pending: int = 0
    received: int = 0
    cancelled: int = 0


class PlatformStats(BaseModel):
    """
    Admin dashboard aggregate. Derived on read, never stored.
    """
    total_users: int = 0
    total_donors: int = 0
    total_recipients: int = 0
    total_listings: int = 0
    total_claims: int = 0
    listings_by_status: Dict[str, int] = Field(default_factory=dict)
    active_listings: int = 0
    expired_listings: int = 0
    completed_transactions: int = 0
    success_rate: float = Field(default=0.0, description="percent of claims completed, 0 when no claims")
