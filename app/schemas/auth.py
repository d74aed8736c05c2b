from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str = Field(default="", max_length=256)
    role: str = "donor"
    organization_name: Optional[str] = None
    phone: Optional[str] = None


class SignupRequest(BaseModel):
    """
    Body of the secure-signup function. Fields are optional here so that a
    missing email/password is reported (and logged) as a malformed request.
    """
    email: Optional[str] = None
    password: Optional[str] = None
    userData: UserData = Field(default_factory=UserData)
    ip_address: Optional[str] = None


class AccountPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    role: str
    full_name: str
    organization_name: Optional[str] = None
    phone: Optional[str] = None
    email_confirmed_at: Optional[datetime] = None
    created_at: datetime


class SignupResponse(BaseModel):
    success: bool = True
    message: str = "Account created successfully"
    user: AccountPublic


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: AccountPublic


class SessionResponse(BaseModel):
    account_id: str
    email: str
    role: str
    session_id: str
    profile: Dict[str, Any] = Field(default_factory=dict)
