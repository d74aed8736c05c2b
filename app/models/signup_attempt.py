from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, utcnow


class SignupAttempt(Base):
    """
    Throttling record for the signup endpoint.
    - Append-only (never UPDATE / DELETE)
    - Read back only to count attempts inside the rate-limit window
    """
    __tablename__ = "signup_attempts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)

    attempt_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_signup_attempts_ip_time", "ip_address", "attempt_time"),
        Index("ix_signup_attempts_email_time", "email", "attempt_time"),
    )
