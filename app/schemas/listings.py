from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import FoodCategory, ListingStatus


class ListingCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    quantity: str = Field(..., min_length=1, max_length=100, description="free text, e.g. '20 meals'")
    category: FoodCategory
    expiry_date: datetime
    pickup_time_start: datetime
    pickup_time_end: datetime
    pickup_location: str = Field(..., min_length=1, max_length=500)

    @model_validator(mode="after")
    def _pickup_window(self):
        if self.pickup_time_end <= self.pickup_time_start:
            raise ValueError("pickup_time_end must be after pickup_time_start")
        return self


class ListingRecord(BaseModel):
    """
    Typed listing row. Unknown status/category values are rejected, which is
    what keeps untrusted change-feed payloads out of the read model.
    """
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    donor_id: uuid.UUID
    title: str
    description: str = ""
    quantity: str
    category: FoodCategory
    expiry_date: datetime
    pickup_time_start: datetime
    pickup_time_end: datetime
    pickup_location: str
    status: ListingStatus
    claimed_by: Optional[uuid.UUID] = None
    claimed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ExpireResponse(BaseModel):
    expired: int
    listing_ids: list[str] = Field(default_factory=list)
