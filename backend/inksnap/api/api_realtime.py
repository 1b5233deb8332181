import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from ..core.config import settings
from ..crud.errors import GatewayDenied
from ..crud.policies import get_policy
from ..realtime.bus import hub
from ..realtime.sse import format_comment, format_event
from ..utils import denied_response
from .dependencies import get_current_identity

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/realtime/{table}")
async def stream_inserts(
    table: str,
    request: Request,
    column: str = Query(...),
    value: str = Query(...),
    identity: str = Depends(get_current_identity),
):
    """Server-sent events for rows inserted into ``table`` where ``column == value``.

    Only rows the caller may read are delivered. The first event is
    ``ready``; idle streams receive a comment heartbeat.
    """
    try:
        get_policy(table).column(column)
    except GatewayDenied as exc:
        raise denied_response(exc)

    sub = hub.subscribe(table, column, value, identity)
    heartbeat = settings.REALTIME_HEARTBEAT_SECONDS

    async def events():
        try:
            yield format_event({"table": table, "column": column, "value": value}, event="ready")
            while True:
                if await request.is_disconnected():
                    break
                try:
                    payload = await asyncio.wait_for(sub.queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    yield format_comment("keepalive")
                    continue
                yield format_event(payload, event=payload.get("type", "INSERT").lower())
        finally:
            hub.unsubscribe(sub)
            logger.debug("Realtime stream closed for %s on %s", identity, table)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
