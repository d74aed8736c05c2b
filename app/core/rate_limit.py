from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.signup_attempt import SignupAttempt


@dataclass(frozen=True)
class SlidingWindow:
    """
    Count-based sliding window over the signup_attempts log:
      at most `limit` attempts per key within the trailing `minutes`.
    """
    minutes: int
    limit: int

    def since(self, now: datetime) -> datetime:
        return now - timedelta(minutes=self.minutes)


class SignupAttemptLimiter:
    """
    Keyed by IP address and by email.

    Check-then-act: the count and the later insert are separate statements,
    so concurrent requests can both pass. Fine for abuse deterrence.
    """

    def __init__(self, per_ip: SlidingWindow, per_email: SlidingWindow):
        self.per_ip = per_ip
        self.per_email = per_email

    def _count(self, db: Session, column, value: str, since: datetime) -> int:
        return int(
            db.execute(
                select(func.count())
                .select_from(SignupAttempt)
                .where(column == value, SignupAttempt.attempt_time >= since)
            ).scalar_one()
        )

    def ip_exceeded(self, db: Session, ip_address: Optional[str], now: datetime) -> bool:
        if not ip_address:
            return False
        n = self._count(db, SignupAttempt.ip_address, ip_address, self.per_ip.since(now))
        return n >= self.per_ip.limit

    def email_exceeded(self, db: Session, email: str, now: datetime) -> bool:
        n = self._count(db, SignupAttempt.email, email, self.per_email.since(now))
        return n >= self.per_email.limit

    def record(
        self,
        db: Session,
        *,
        ip_address: Optional[str],
        email: Optional[str],
        success: bool,
        now: datetime,
    ) -> SignupAttempt:
        row = SignupAttempt(ip_address=ip_address, email=email, success=success, attempt_time=now)
        db.add(row)
        db.commit()
        return row
