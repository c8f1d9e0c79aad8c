"""REST chat routes sharing the session registry with the realtime socket."""

from __future__ import annotations

import base64
import json
import logging
from contextlib import aclosing

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sse_starlette.sse import EventSourceResponse

from ..auth import require_api_key
from ..chat.relay import Synthesizer, run_turn
from ..chat.streamer import FALLBACK_RESPONSE, CompletionStreamer
from ..chat_backends import ChatBackendError
from ..schemas.chat import ChatRequest, ChatResponse, ModelInfo
from ..services.session_manager import RelayState, Session, SessionManager
from ..services.tts_service import AUDIO_FORMAT

router = APIRouter(prefix="/api", tags=["chat"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_completion_streamer(request: Request) -> CompletionStreamer:
    return request.app.state.completion_streamer


def get_synthesizer(request: Request) -> Synthesizer:
    return request.app.state.synthesizer


def _prepare_session(payload: ChatRequest, manager: SessionManager) -> Session:
    if not payload.message:
        raise HTTPException(status_code=400, detail="Message is required")

    session = manager.get_or_create(payload.session_id)
    try:
        session.configure(
            model_id=payload.model_id,
            model_type=payload.model_type,
            voice=payload.voice,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return session


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
async def chat(
    payload: ChatRequest,
    include_audio: bool = Query(default=False),
    manager: SessionManager = Depends(get_session_manager),
    streamer: CompletionStreamer = Depends(get_completion_streamer),
    synthesizer: Synthesizer = Depends(get_synthesizer),
) -> ChatResponse:
    """Run one conversational turn and return the full reply."""

    session = _prepare_session(payload, manager)
    logger.info("REST chat on session %s: %r", session.id, payload.message)

    async with session.lock:
        session.gate.reset()
        try:
            response = await run_turn(session, payload.message or "", streamer)
        finally:
            session.state = RelayState.IDLE

        result = ChatResponse(
            session_id=session.id,
            message=response or "",
            model=ModelInfo(**session.model.as_payload()),
        )

        if include_audio and response:
            audio = await synthesizer.synthesize(response, session.voice)
            if audio:
                result.audio = base64.b64encode(audio).decode("ascii")
                result.audio_format = AUDIO_FORMAT
                result.voice = session.voice.name

    return result


@router.post("/chat/stream", response_model=None, status_code=200)
async def stream_chat(
    payload: ChatRequest,
    manager: SessionManager = Depends(get_session_manager),
    streamer: CompletionStreamer = Depends(get_completion_streamer),
) -> EventSourceResponse:
    """Stream the reply as Server-Sent Events, then a ``done`` event."""

    session = _prepare_session(payload, manager)
    message = payload.message or ""

    async def event_publisher():
        async with session.lock:
            session.gate.reset()
            session.context.add_user(message)
            session.state = RelayState.GENERATING
            parts: list[str] = []
            try:
                fragments = streamer.stream(
                    session.context.turns(), session.model, session.gate
                )
                async with aclosing(fragments):
                    async for fragment in fragments:
                        parts.append(fragment)
                        yield {"event": "message", "data": json.dumps({"text": fragment})}
            except ChatBackendError as exc:
                logger.error(
                    "Chat backend failed during stream (%s): %s",
                    exc.status_code,
                    exc.detail,
                )
                parts = [FALLBACK_RESPONSE]
                yield {"event": "message", "data": json.dumps({"text": FALLBACK_RESPONSE})}
            finally:
                session.state = RelayState.IDLE

            response = "".join(parts)
            if not session.interrupted:
                session.context.add_assistant(response)
            yield {
                "event": "done",
                "data": json.dumps({"sessionId": session.id, "message": response}),
            }

    return EventSourceResponse(event_publisher())


__all__ = [
    "get_completion_streamer",
    "get_session_manager",
    "get_synthesizer",
    "router",
]
