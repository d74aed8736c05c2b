from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


class AuditAction:
    # Listings
    LISTING_CREATED = "LISTING_CREATED"
    LISTING_CLAIMED = "LISTING_CLAIMED"
    LISTING_COMPLETED = "LISTING_COMPLETED"
    LISTING_EXPIRED = "LISTING_EXPIRED"

    # Claims
    CLAIM_CREATED = "CLAIM_CREATED"
    CLAIM_RECEIVED = "CLAIM_RECEIVED"
    CLAIM_COMPLETED = "CLAIM_COMPLETED"
    CLAIM_CANCELLED = "CLAIM_CANCELLED"
    CLAIM_PICKUP_SCHEDULED = "CLAIM_PICKUP_SCHEDULED"


class AuditService:
    def record(
        self,
        db: Session,
        *,
        table_name: str,
        record_id: str,
        action: str,
        user_id: Optional[str],
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> AuditLog:
        """
        Append-only insert. Does NOT commit: the row joins the caller's
        transaction so a rolled back transition leaves no audit trace.
        """
        row = AuditLog(
            table_name=table_name,
            record_id=record_id,
            action=action,
            user_id=user_id,
            old_values=old_values,
            new_values=new_values,
            request_id=request_id,
        )
        db.add(row)
        return row

    def history(self, db: Session, *, table_name: str, record_id: str) -> list[AuditLog]:
        return list(
            db.execute(
                select(AuditLog)
                .where(AuditLog.table_name == table_name, AuditLog.record_id == record_id)
                .order_by(AuditLog.timestamp.asc())
            ).scalars()
        )
