"""Message-level state machine for one relay session."""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

from pydantic import ValidationError

from ..schemas import messages
from ..services.audio_assembler import (
    DEFAULT_MIME_TYPE,
    AudioDecodeError,
    decode_audio,
)
from ..services.session_manager import RelayState, Session
from ..services.voices import VoiceSelector
from .streamer import CompletionStreamer

logger = logging.getLogger(__name__)

Send = Callable[[dict[str, Any]], Awaitable[None]]

# Handled by the connection reader as soon as they arrive, never queued
CONTROL_TYPES = frozenset({"interrupt", "ping"})

PROCESSING_FAILED = "Failed to process message"


class Transcriber(Protocol):
    async def transcribe(
        self,
        audio: bytes,
        mime_type: Optional[str] = None,
        language_code: Optional[str] = None,
    ) -> Optional[str]: ...


class Synthesizer(Protocol):
    async def synthesize(self, text: str, voice: VoiceSelector) -> Optional[bytes]: ...


async def run_turn(
    session: Session, text: str, streamer: CompletionStreamer
) -> Optional[str]:
    """Record the user turn, generate a reply and record it.

    Returns ``None`` when the session was interrupted; in that case no
    assistant turn is appended.
    """

    session.context.add_user(text)
    session.state = RelayState.GENERATING
    response = await streamer.complete(
        session.context.turns(), session.model, session.gate
    )
    if session.interrupted:
        logger.info("Response for session %s interrupted; discarding", session.id)
        return None
    session.context.add_assistant(response)
    logger.info("Assistant response for %s: %r", session.id, response)
    return response


class RelayProtocol:
    """Interprets inbound client messages for one session and emits replies."""

    def __init__(
        self,
        session: Session,
        send: Send,
        *,
        streamer: CompletionStreamer,
        transcriber: Transcriber,
        synthesizer: Synthesizer,
    ) -> None:
        self.session = session
        self._send = send
        self._streamer = streamer
        self._transcriber = transcriber
        self._synthesizer = synthesizer
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            "config": self._on_config,
            "chat_message": self._on_chat_message,
            "audio_data": self._on_audio_data,
            "interrupt": self._on_interrupt,
            "ping": self._on_ping,
        }

    async def send_error(self, description: str) -> None:
        await self._send(messages.error(description))

    async def parse(self, raw: str | bytes) -> Optional[dict[str, Any]]:
        """Decode one inbound frame; reports an error and returns ``None`` if malformed."""

        try:
            data = json.loads(raw)
            messages.Envelope.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning("Malformed message on session %s: %s", self.session.id, exc)
            await self.send_error(PROCESSING_FAILED)
            return None
        return data

    async def handle_raw(self, raw: str | bytes) -> None:
        data = await self.parse(raw)
        if data is not None:
            await self.dispatch(data)

    async def dispatch(self, data: dict[str, Any]) -> None:
        kind = data.get("type")
        self.session.touch()
        handler = self._handlers.get(kind) if isinstance(kind, str) else None
        if handler is None:
            logger.warning("Unknown message type: %s", kind)
            await self.send_error("Unknown message type")
            return

        logger.debug("Received %s on session %s", kind, self.session.id)
        try:
            await handler(data)
        except ValidationError as exc:
            logger.warning("Invalid %s message on session %s: %s", kind, self.session.id, exc)
            await self.send_error(PROCESSING_FAILED)
        except Exception:
            logger.exception("Error handling %s on session %s", kind, self.session.id)
            self.session.state = RelayState.IDLE
            await self.send_error(PROCESSING_FAILED)

    async def _on_config(self, data: dict[str, Any]) -> None:
        message = messages.ConfigMessage.model_validate(data)
        try:
            self.session.configure(
                model_id=message.model_id,
                model_type=message.model_type,
                audio_session=message.audio_session,
                voice=message.voice,
            )
        except ValueError as exc:
            await self.send_error(str(exc))
            return

        self.session.gate.reset()
        await self._send(messages.config_acknowledged(self.session.config_payload()))

    async def _on_chat_message(self, data: dict[str, Any]) -> None:
        message = messages.ChatMessageIn.model_validate(data)
        if not message.message:
            await self.send_error("Message is required")
            return

        self.session.gate.reset()
        logger.info("Processing chat message from %s: %r", self.session.id, message.message)
        await self._respond(message.message)

    async def _on_audio_data(self, data: dict[str, Any]) -> None:
        message = messages.AudioDataMessage.model_validate(data)
        if not message.audio:
            await self.send_error("Audio data is required")
            return

        self.session.gate.reset()
        if message.format != "base64":
            await self.send_error("Unsupported audio format")
            return

        try:
            if message.is_chunk:
                logger.info(
                    "Received audio chunk %s from %s",
                    message.chunk_number,
                    self.session.id,
                )
                result = self.session.audio.ingest(
                    message.audio,
                    message.chunk_number,
                    message.is_last_chunk is True,
                    message.mime_type,
                )
                if not result.complete:
                    return
                payload = result.payload or b""
                mime_type = result.mime_type or DEFAULT_MIME_TYPE
            else:
                payload = decode_audio(message.audio)
                mime_type = message.mime_type or DEFAULT_MIME_TYPE
        except AudioDecodeError as exc:
            logger.error("Undecodable audio on session %s: %s", self.session.id, exc)
            await self.send_error("Invalid audio data received")
            return

        await self._process_audio(payload, mime_type)

    async def _process_audio(self, payload: bytes, mime_type: str) -> None:
        if not payload:
            logger.error("Audio buffer is empty or invalid")
            await self.send_error("Invalid audio data received")
            return

        logger.info(
            "Transcribing %d bytes of %s for session %s",
            len(payload),
            mime_type,
            self.session.id,
        )
        self.session.state = RelayState.TRANSCRIBING
        try:
            text = await self._transcriber.transcribe(
                payload, mime_type, self.session.voice.language_code
            )
        finally:
            self.session.state = RelayState.IDLE

        if not text:
            logger.error("Failed to transcribe audio for session %s", self.session.id)
            await self.send_error("Could not transcribe audio")
            return

        await self._send(messages.transcript(text))
        if self.session.interrupted:
            logger.info("Session %s interrupted after transcription", self.session.id)
            return
        await self._respond(text)

    async def _respond(self, text: str) -> None:
        try:
            response = await run_turn(self.session, text, self._streamer)
            if response is None:
                return

            await self._send(messages.bot_message(response))

            if self.session.audio_session:
                voice = self.session.voice
                audio = await self._synthesizer.synthesize(response, voice)
                if audio and not self.session.interrupted:
                    await self._send(
                        messages.audio_message(
                            base64.b64encode(audio).decode("ascii"), voice.name
                        )
                    )
        finally:
            self.session.state = RelayState.IDLE

    async def _on_interrupt(self, data: dict[str, Any]) -> None:
        logger.info("User interrupted assistant response for session %s", self.session.id)
        self.session.gate.interrupt()
        await self._send(messages.interrupt_acknowledged())

    async def _on_ping(self, data: dict[str, Any]) -> None:
        await self._send(messages.pong())


__all__ = [
    "CONTROL_TYPES",
    "RelayProtocol",
    "Send",
    "Synthesizer",
    "Transcriber",
    "run_turn",
]
