"""
Events API
Push channel for priceUpdate and alert events.

Endpoints:
    GET /events/stream    → SSE stream
    WS  /events/ws        → WebSocket stream (JSON frames)
    GET /events/history   → Recent events
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from services import EventBroadcaster, get_broadcaster

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])

KEEPALIVE_SEC = 30.0


@router.get("/stream")
async def stream_events(broadcaster: EventBroadcaster = Depends(get_broadcaster)):
    """
    Server-Sent Events stream for real-time price updates and alerts.

    Connect via EventSource in browser:
        const es = new EventSource('/events/stream');
        es.addEventListener('alert', (e) => console.log(JSON.parse(e.data)));
        es.addEventListener('priceUpdate', (e) => console.log(JSON.parse(e.data)));
    """
    queue = broadcaster.subscribe()

    async def event_generator():
        try:
            yield f"event: connected\ndata: {json.dumps({'message': 'Event stream connected'})}\n\n"

            while True:
                try:
                    message = await asyncio.wait_for(queue.get(), KEEPALIVE_SEC)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue

                yield f"event: {message['event']}\ndata: {json.dumps(message['data'])}\n\n"
        finally:
            broadcaster.unsubscribe(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )


@router.websocket("/ws")
async def websocket_events(websocket: WebSocket):
    """Same events as /events/stream, one JSON frame per event"""
    broadcaster = get_broadcaster()
    await websocket.accept()
    queue = broadcaster.subscribe()
    try:
        await websocket.send_json({"event": "connected", "data": {"message": "Event stream connected"}})
        while True:
            message = await queue.get()
            await websocket.send_json(message)
    except WebSocketDisconnect:
        logger.debug("WebSocket subscriber disconnected")
    finally:
        broadcaster.unsubscribe(queue)


@router.get("/history")
async def get_event_history(
    limit: int = Query(default=50, le=200),
    event: Optional[str] = Query(default=None, description="priceUpdate or alert"),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
):
    history = broadcaster.get_history(limit, event)
    return {
        "count": len(history),
        "events": history,
    }


@router.get("/stats")
async def get_event_stats(broadcaster: EventBroadcaster = Depends(get_broadcaster)):
    return broadcaster.stats()
