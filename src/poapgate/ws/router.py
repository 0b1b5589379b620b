"""WebSocket endpoint streaming newly created posts."""

import asyncio

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from poapgate.config import get_settings
from poapgate.dependencies import get_store
from poapgate.mirror.store import MirrorStore

logger = structlog.get_logger()

router = APIRouter()


async def _forward_posts(websocket: WebSocket, store: MirrorStore, since_id: int | None) -> None:
    poll = get_settings().ws_poll_interval_seconds
    async for event in store.post_stream.subscribe(since_id=since_id, poll_timeout=poll):
        await websocket.send_json({"channel": "posts", "data": event.to_dict()})


async def _wait_for_close(websocket: WebSocket) -> None:
    """Drain client frames until it disconnects; only pings get an answer."""
    while True:
        try:
            raw = await websocket.receive_text()
        except WebSocketDisconnect:
            return
        if raw == "ping":
            await websocket.send_json({"type": "pong"})


@router.websocket("/ws/posts")
async def post_stream_endpoint(
    websocket: WebSocket,
    since_id: int | None = Query(None, ge=0),
    store: MirrorStore = Depends(get_store),  # noqa: B008
) -> None:
    """Live post feed.

    Protocol:
        Server -> Client:
            {"channel": "posts", "data": {"id": 7, "user_address": "...", ...}}
            {"type": "pong"}
        Client -> Server:
            "ping"

    Posts newer than ``since_id`` are replayed first, then live inserts follow.
    """
    await websocket.accept()
    if store.redis is None:
        await websocket.close(code=1011, reason="Post stream unavailable")
        return

    sender = asyncio.create_task(_forward_posts(websocket, store, since_id))
    receiver = asyncio.create_task(_wait_for_close(websocket))
    logger.info("ws_post_stream_opened", since_id=since_id)
    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("ws_post_stream_error", error=str(exc))
    finally:
        logger.info("ws_post_stream_closed", since_id=since_id)
