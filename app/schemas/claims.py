from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import ClaimStatus


class ClaimCreateRequest(BaseModel):
    listing_id: uuid.UUID
    quantity_requested: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = Field(default=None, max_length=2000)


class SchedulePickupRequest(BaseModel):
    pickup_at: datetime


class ClaimRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    listing_id: uuid.UUID
    claimed_by: uuid.UUID
    quantity_requested: Optional[int] = None
    status: ClaimStatus
    notes: Optional[str] = None
    claimed_at: datetime
    pickup_scheduled_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
