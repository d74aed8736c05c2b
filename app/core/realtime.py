from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")


@dataclass(frozen=True)
class ChangeEvent:
    """
    One row mutation, shaped like a postgres change feed message:
    {eventType, new, old}. `new` is empty on DELETE, `old` empty on INSERT.
    """
    table: str
    event_type: str
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)
    commit_timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_payload(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "eventType": self.event_type,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": self.commit_timestamp,
        }


def parse_filter(expr: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    `column=eq.value` -> (column, value). Only equality is supported.
    """
    if not expr:
        return None
    column, sep, rest = expr.partition("=")
    if not sep or not column:
        raise ValueError(f"Invalid filter expression: {expr}")
    op, dot, value = rest.partition(".")
    if op != "eq" or not dot:
        raise ValueError(f"Unsupported filter operator in: {expr}")
    return column.strip(), value


def _matches(event: ChangeEvent, flt: Optional[Tuple[str, str]]) -> bool:
    if flt is None:
        return True
    column, value = flt
    # DELETE only carries `old`
    row = event.new or event.old
    v = row.get(column)
    return v is not None and str(v) == value


@dataclass
class Subscription:
    id: str
    table: str
    callback: Callable[[ChangeEvent], None]
    filter: Optional[Tuple[str, str]] = None
    event: str = "*"


class ChangeBus:
    """
    In-process fan-out of table mutations to subscribers.

    Read path only: writers publish after commit, nothing here orders or
    serializes writes. A failing subscriber is logged and skipped.
    """

    def __init__(self) -> None:
        self._subs: Dict[str, Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        *,
        filter: Optional[str] = None,
        event: str = "*",
    ) -> Subscription:
        if event != "*" and event not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event}")
        sub = Subscription(
            id=str(uuid.uuid4()),
            table=table,
            callback=callback,
            filter=parse_filter(filter),
            event=event,
        )
        with self._lock:
            self._subs[sub.id] = sub
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subs.pop(sub.id, None)

    def publish(self, event: ChangeEvent) -> int:
        with self._lock:
            targets: List[Subscription] = list(self._subs.values())

        delivered = 0
        for sub in targets:
            if sub.table != event.table:
                continue
            if sub.event != "*" and sub.event != event.event_type:
                continue
            if not _matches(event, sub.filter):
                continue
            try:
                sub.callback(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "realtime subscriber failed",
                    extra={"subscription_id": sub.id, "table": event.table},
                )
        return delivered

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)


change_bus = ChangeBus()
