"""HTTP routes for the speechrelay server.

Endpoints
---------
GET  /health        Version, service statuses, mute state, subscriber count.
POST /text          Manual caption ``{"type", "value", "target"}``. With
                    target ``stt`` (default) it goes through the recognition
                    pipeline; with ``textfield`` it is published as-is.
POST /stt/start     Start (or restart) the recognition backend.
POST /stt/stop      Stop the recognition backend.
POST /stt/mute      Toggle recognition mute.
POST /tts/start     Start (or restart) the synthesis backend.
POST /tts/stop      Stop the synthesis backend.
POST /stream/ended  Signal that the live stream ended.
GET  /events        Server-Sent Events stream of one bus topic.
"""

import asyncio
import logging

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from speechrelay import __version__
from speechrelay.config import EVENT_QUEUE_SIZE
from speechrelay.events.event_bus import TextEventBus
from speechrelay.events.types import (
    STREAM_ENDED_TOPIC,
    TextEvent,
    TextEventSource,
    TextEventType,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_bus(request: Request) -> TextEventBus:
    """Retrieve the shared TextEventBus from application state."""
    return request.app.state.bus


def _get_stt(request: Request):
    return request.app.state.stt_service


def _get_tts(request: Request):
    return request.app.state.tts_service


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@router.get("/health")
async def health(request: Request) -> dict:
    """Return server health information."""
    stt = _get_stt(request)
    tts = _get_tts(request)
    return {
        "status": "ok",
        "version": __version__,
        "subscribers": _get_bus(request).subscriber_count(),
        "stt": stt.state.model_dump(mode="json"),
        "tts": tts.state.model_dump(mode="json"),
        "tts_source": tts.source,
        "webhook_enabled": request.app.state.webhook.is_enabled,
    }


# ---------------------------------------------------------------------------
# POST /text
# ---------------------------------------------------------------------------


@router.post("/text")
async def submit_text(request: Request) -> dict:
    """Accept a manually typed caption."""
    try:
        body = await request.json()
    except Exception:
        logger.warning("Failed to decode JSON body for /text")
        return {"status": "error", "reason": "invalid json"}

    if not isinstance(body, dict):
        return {"status": "error", "reason": "expected a JSON object"}

    value = str(body.get("value") or "")
    try:
        kind = TextEventType(body.get("type", TextEventType.FINAL.value))
    except ValueError:
        return {"status": "error", "reason": "type must be 'interim' or 'final'"}
    if not value.strip():
        return {"status": "ignored", "reason": "empty value"}

    target = body.get("target", TextEventSource.STT.value)
    if target == TextEventSource.TEXTFIELD.value:
        _get_bus(request).publish_text(
            TextEvent(source=TextEventSource.TEXTFIELD, type=kind, value=value)
        )
    elif target == TextEventSource.STT.value:
        _get_stt(request).process_external_message({"type": kind, "value": value})
    else:
        return {"status": "error", "reason": f"unknown target '{target}'"}

    return {"status": "ok", "target": target, "type": kind.value}


# ---------------------------------------------------------------------------
# Service control
# ---------------------------------------------------------------------------


@router.post("/stt/start")
async def stt_start(request: Request) -> dict:
    stt = _get_stt(request)
    await stt.start()
    return stt.state.model_dump(mode="json")


@router.post("/stt/stop")
async def stt_stop(request: Request) -> dict:
    stt = _get_stt(request)
    await stt.stop()
    return stt.state.model_dump(mode="json")


@router.post("/stt/mute")
async def stt_mute(request: Request) -> dict:
    stt = _get_stt(request)
    stt.toggle_mute()
    return stt.state.model_dump(mode="json")


@router.post("/tts/start")
async def tts_start(request: Request) -> dict:
    tts = _get_tts(request)
    await tts.start()
    return tts.state.model_dump(mode="json")


@router.post("/tts/stop")
async def tts_stop(request: Request) -> dict:
    tts = _get_tts(request)
    await tts.stop()
    return tts.state.model_dump(mode="json")


@router.post("/stream/ended")
async def stream_ended(request: Request) -> dict:
    delivered = _get_bus(request).publish(STREAM_ENDED_TOPIC)
    return {"status": "ok", "delivered": delivered}


# ---------------------------------------------------------------------------
# GET /events  (Server-Sent Events)
# ---------------------------------------------------------------------------


@router.get("/events")
async def event_stream(request: Request, topic: str = TextEventSource.STT.value) -> EventSourceResponse:
    """Stream everything published on *topic* as Server-Sent Events.

    The synchronous bus handler only enqueues; when a slow client lets the
    queue fill up, further events are dropped for that client with a warning
    rather than blocking the publisher.
    """
    bus = _get_bus(request)
    queue: asyncio.Queue = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)

    def _enqueue(event) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("SSE queue full; dropping event on '%s'", topic)

    async def _generate():
        subscription = bus.subscribe(topic, _enqueue)
        try:
            while True:
                if await request.is_disconnected():
                    logger.debug("SSE client disconnected")
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=15.0)
                except asyncio.TimeoutError:
                    yield {"comment": "ping"}
                    continue
                if hasattr(event, "model_dump_json"):
                    data = event.model_dump_json()
                    name = getattr(getattr(event, "type", None), "value", topic)
                else:
                    data, name = "null", topic
                yield {"event": name, "data": data}
        except asyncio.CancelledError:
            logger.debug("SSE stream cancelled")
        finally:
            bus.unsubscribe(subscription)
            logger.debug("SSE subscriber cleaned up")

    return EventSourceResponse(_generate())
