"""Server-sent progress events."""

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from ..dependencies import get_service

router = APIRouter()


@router.get("/v1/events", tags=["Events"])
async def stream_events(topic: str | None = None):
    """Create, update and token-rate events for every thread."""
    return StreamingResponse(
        get_service().events(topic),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
