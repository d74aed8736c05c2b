from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.account import Account
from app.models.claim import Claim
from app.models.enums import AccountRole, ClaimStatus, ListingStatus
from app.models.listing import Listing
from app.schemas.stats import DonorSummary, PlatformStats, RecipientSummary

RECIPIENT_ROLES = {AccountRole.NGO.value, AccountRole.RECIPIENT.value}


def _status_of(row: Any) -> str:
    s = getattr(row, "status", None)
    # enum members or raw strings
    return getattr(s, "value", s)


def listing_status_counts(listings: Iterable[Any]) -> Dict[str, int]:
    counts = {s.value: 0 for s in ListingStatus}
    for l in listings:
        st = _status_of(l)
        if st in counts:
            counts[st] += 1
    return counts


def claim_status_counts(claims: Iterable[Any]) -> Dict[str, int]:
    counts = {s.value: 0 for s in ClaimStatus}
    for c in claims:
        st = _status_of(c)
        if st in counts:
            counts[st] += 1
    return counts


def success_rate(completed: int, total: int) -> float:
    """
    Percentage of completed over total, one decimal.
    0.0 when there is nothing to divide by (never NaN / inf).
    """
    if total <= 0:
        return 0.0
    return round(100.0 * completed / total, 1)


def donor_summary(listings: Sequence[Any]) -> DonorSummary:
    counts = listing_status_counts(listings)
    return DonorSummary(
        total=len(listings),
        available=counts[ListingStatus.available.value],
        claimed=counts[ListingStatus.claimed.value],
        completed=counts[ListingStatus.completed.value],
        expired=counts[ListingStatus.expired.value],
    )


def recipient_summary(claims: Sequence[Any]) -> RecipientSummary:
    counts = claim_status_counts(claims)
    return RecipientSummary(
        total=len(claims),
        pending=counts[ClaimStatus.pending.value],
        received=counts[ClaimStatus.received.value],
        cancelled=counts[ClaimStatus.cancelled.value],
    )


def platform_stats(
    accounts: Sequence[Any],
    listings: Sequence[Any],
    claims: Sequence[Any],
) -> PlatformStats:
    lcounts = listing_status_counts(listings)
    completed_tx = sum(1 for c in claims if getattr(c, "completed_at", None) is not None)
    roles = [getattr(getattr(a, "role", None), "value", getattr(a, "role", None)) for a in accounts]

    return PlatformStats(
        total_users=len(accounts),
        total_donors=sum(1 for r in roles if r == AccountRole.DONOR.value),
        total_recipients=sum(1 for r in roles if r in RECIPIENT_ROLES),
        total_listings=len(listings),
        total_claims=len(claims),
        listings_by_status=lcounts,
        active_listings=lcounts[ListingStatus.available.value],
        expired_listings=lcounts[ListingStatus.expired.value],
        completed_transactions=completed_tx,
        success_rate=success_rate(completed_tx, len(claims)),
    )


class PlatformStatsService:
    def compute(self, db: Session) -> PlatformStats:
        accounts = list(db.execute(select(Account)).scalars())
        listings = list(db.execute(select(Listing)).scalars())
        claims = list(db.execute(select(Claim)).scalars())
        return platform_stats(accounts, listings, claims)
