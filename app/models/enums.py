#app/models/enums.py
from __future__ import annotations
from enum import Enum


class AccountRole(str, Enum):
    DONOR = "donor"
    NGO = "ngo"
    RECIPIENT = "recipient"
    ADMIN = "admin"


class ListingStatus(str, Enum):
    # available -> claimed -> completed ; available -> expired
    available = "available"
    claimed = "claimed"
    completed = "completed"
    expired = "expired"


class ClaimStatus(str, Enum):
    # pending -> received | cancelled
    pending = "pending"
    received = "received"
    cancelled = "cancelled"


class FoodCategory(str, Enum):
    vegetables = "vegetables"
    fruits = "fruits"
    grains = "grains"
    dairy = "dairy"
    meat = "meat"
    bakery = "bakery"
    prepared_food = "prepared_food"
    other = "other"


def sql_in(enum_cls) -> str:
    """Renders `('a','b',...)` for CHECK constraints."""
    return "(" + ",".join(f"'{m.value}'" for m in enum_cls) + ")"
