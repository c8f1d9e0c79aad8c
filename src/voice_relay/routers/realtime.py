"""WebSocket transport for the relay protocol."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState

from ..auth import websocket_authorized
from ..chat.relay import CONTROL_TYPES, RelayProtocol, Synthesizer, Transcriber
from ..chat.streamer import CompletionStreamer
from ..schemas import messages
from ..services.session_manager import SessionManager

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)


async def handle_connection(
    websocket: WebSocket,
    manager: SessionManager,
    streamer: CompletionStreamer,
    transcriber: Transcriber,
    synthesizer: Synthesizer,
) -> None:
    """Run one client connection until it closes.

    Control messages (interrupt, ping) are handled as soon as they are read.
    Everything else goes through a queue drained by a single worker, so a
    session never processes two inputs at once while an interrupt can still
    reach a response that is being generated.
    """

    await websocket.accept()
    session = manager.create(transport=True)
    send_lock = asyncio.Lock()

    async def send(payload: dict[str, Any]) -> None:
        if websocket.client_state is not WebSocketState.CONNECTED:
            return
        async with send_lock:
            try:
                await websocket.send_json(payload)
            except (RuntimeError, WebSocketDisconnect) as exc:
                logger.debug("Dropping %s for closed session %s: %s", payload.get("type"), session.id, exc)

    protocol = RelayProtocol(
        session,
        send,
        streamer=streamer,
        transcriber=transcriber,
        synthesizer=synthesizer,
    )
    inbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def worker() -> None:
        while True:
            data = await inbox.get()
            try:
                async with session.lock:
                    await protocol.dispatch(data)
            finally:
                inbox.task_done()

    worker_task = asyncio.create_task(worker())
    logger.info("New WebSocket connection established: %s", session.id)
    await send(messages.connected(session.id))

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))
            raw = frame.get("text")
            if raw is None:
                raw = frame.get("bytes") or b""

            data = await protocol.parse(raw)
            if data is None:
                continue
            if data.get("type") in CONTROL_TYPES:
                await protocol.dispatch(data)
            else:
                inbox.put_nowait(data)
    except WebSocketDisconnect:
        logger.info("WebSocket connection closed: %s", session.id)
    except Exception:
        logger.exception("WebSocket error for %s", session.id)
    finally:
        worker_task.cancel()
        with suppress(asyncio.CancelledError):
            await worker_task
        manager.remove(session.id)


@router.websocket("/")
@router.websocket("/ws")
async def relay_socket(websocket: WebSocket) -> None:
    app_state = websocket.app.state

    if not websocket_authorized(websocket, app_state.settings):
        logger.info("WebSocket authentication failed")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await handle_connection(
        websocket,
        app_state.session_manager,
        app_state.completion_streamer,
        app_state.transcriber,
        app_state.synthesizer,
    )


__all__ = ["handle_connection", "router"]
