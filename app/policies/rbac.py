#app/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Set

from app.core.errors import Forbidden
from app.models.enums import AccountRole


@dataclass(frozen=True)
class Principal:
    account_id: str
    role: AccountRole
    email: str
    session_id: str


# --- Core action constants ---
ACTION_CREATE_LISTING = "CREATE_LISTING"
ACTION_CLAIM_LISTING = "CLAIM_LISTING"
ACTION_VIEW_PLATFORM_STATS = "VIEW_PLATFORM_STATS"
ACTION_EXPIRE_LISTINGS = "EXPIRE_LISTINGS"


def allowed_actions(role: AccountRole) -> Set[str]:
    """
    Pure RBAC: which actions a role may attempt.
    Ownership rules (own listing / own claim) live in the services.
    """

    if role == AccountRole.DONOR:
        return {ACTION_CREATE_LISTING}

    if role in (AccountRole.NGO, AccountRole.RECIPIENT):
        return {ACTION_CLAIM_LISTING}

    if role == AccountRole.ADMIN:
        return {
            ACTION_CREATE_LISTING,
            ACTION_CLAIM_LISTING,
            ACTION_VIEW_PLATFORM_STATS,
            ACTION_EXPIRE_LISTINGS,
        }

    return set()


def require_action(principal: Principal, action: str) -> None:
    if action not in allowed_actions(principal.role):
        raise Forbidden(
            f"Role {principal.role.value} not permitted for action {action}."
        )
