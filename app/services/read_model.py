from __future__ import annotations

import logging
import threading
import uuid
from typing import Dict, Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.realtime import ChangeBus, ChangeEvent, Subscription
from app.schemas.claims import ClaimRecord
from app.schemas.listings import ListingRecord
from app.services.stats_service import claim_status_counts, listing_status_counts

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


class ReadModel(Generic[R]):
    """
    Local cache of one table, kept current by the change bus.

    The store stays authoritative. Rows are keyed by primary key and the most
    recently applied event wins; DELETE drops the row. Payloads that do not
    validate (e.g. an unknown status) are rejected and logged.
    """

    table: str = ""
    record_cls: Type[R]

    def __init__(self) -> None:
        self._rows: Dict[uuid.UUID, R] = {}
        self._lock = threading.Lock()
        self._sub: Optional[Subscription] = None
        self.rejected = 0

    def load(self, rows: Iterable[object]) -> None:
        fresh = {}
        for row in rows:
            rec = self.record_cls.model_validate(row)
            fresh[rec.id] = rec
        with self._lock:
            self._rows = fresh

    def apply(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False

        if event.event_type == "DELETE":
            raw_id = (event.old or {}).get("id")
            try:
                row_id = uuid.UUID(str(raw_id)) if raw_id is not None else None
            except ValueError:
                row_id = None
            if row_id is None:
                self.rejected += 1
                logger.warning(
                    "rejected change event",
                    extra={"table": self.table, "event_type": event.event_type, "errors": 1},
                )
                return False
            with self._lock:
                self._rows.pop(row_id, None)
            return True

        try:
            rec = self.record_cls.model_validate(event.new)
        except ValidationError as e:
            self.rejected += 1
            logger.warning(
                "rejected change event",
                extra={"table": self.table, "event_type": event.event_type, "errors": e.error_count()},
            )
            return False

        with self._lock:
            self._rows[rec.id] = rec
        return True

    def attach(self, bus: ChangeBus, *, filter: Optional[str] = None) -> Subscription:
        self._sub = bus.subscribe(self.table, self.apply, filter=filter)
        return self._sub

    def detach(self, bus: ChangeBus) -> None:
        if self._sub is not None:
            bus.unsubscribe(self._sub)
            self._sub = None

    def get(self, row_id: uuid.UUID) -> Optional[R]:
        with self._lock:
            return self._rows.get(row_id)

    def snapshot(self) -> List[R]:
        with self._lock:
            return list(self._rows.values())

    def __len__(self) -> int:
        return len(self._rows)


class ListingReadModel(ReadModel[ListingRecord]):
    table = "food_listings"
    record_cls = ListingRecord

    def status_counts(self) -> Dict[str, int]:
        return listing_status_counts(self.snapshot())


class ClaimReadModel(ReadModel[ClaimRecord]):
    table = "claims"
    record_cls = ClaimRecord

    def status_counts(self) -> Dict[str, int]:
        return claim_status_counts(self.snapshot())
