from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Optional

from starlette.requests import Request

from app.core.realtime import ChangeBus, ChangeEvent

KEEPALIVE_SECONDS = 15.0
MAX_BUFFERED_EVENTS = 1000


def format_sse(ev: ChangeEvent) -> str:
    data = json.dumps(ev.to_payload(), separators=(",", ":"), ensure_ascii=False)
    return f"event: {ev.event_type}\ndata: {data}\n\n"


def open_change_stream(
    request: Request,
    bus: ChangeBus,
    table: str,
    *,
    filter: Optional[str] = None,
    event: str = "*",
) -> AsyncIterator[str]:
    """
    Subscribes immediately (so a bad filter fails before the response starts)
    and returns the server-sent-events body iterator.

    Writers publish from worker threads, so events hop onto this loop with
    call_soon_threadsafe. When the client lags, the oldest buffered event is dropped.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=MAX_BUFFERED_EVENTS)

    def _offer(ev: ChangeEvent) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(ev)

    def _push(ev: ChangeEvent) -> None:
        loop.call_soon_threadsafe(_offer, ev)

    sub = bus.subscribe(table, _push, filter=filter, event=event)

    async def _body() -> AsyncIterator[str]:
        try:
            yield f": subscribed {table}\n\n"
            while True:
                if await request.is_disconnected():
                    break
                try:
                    ev = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield format_sse(ev)
        finally:
            bus.unsubscribe(sub)

    return _body()
