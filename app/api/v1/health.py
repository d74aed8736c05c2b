from fastapi import APIRouter, Request

from app.core.realtime import change_bus

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    rid = getattr(request.state, "request_id", None)
    return {
        "status": "ok",
        "request_id": rid,
        "realtime_subscribers": change_bus.subscriber_count(),
    }
