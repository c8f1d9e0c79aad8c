"""Pydantic models for the realtime message envelope."""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool


class _Inbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", protected_namespaces=())


class Envelope(_Inbound):
    """Every inbound message is a JSON object tagged with ``type``."""

    type: Optional[str] = None


class ConfigMessage(_Inbound):
    model_id: Optional[str] = Field(default=None, alias="modelId")
    model_type: Optional[str] = Field(default=None, alias="modelType")
    audio_session: Optional[StrictBool] = Field(default=None, alias="audioSession")
    voice: Optional[Union[str, Dict[str, Any]]] = None


class ChatMessageIn(_Inbound):
    message: Optional[str] = None


class AudioDataMessage(_Inbound):
    audio: Optional[str] = None
    format: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    is_chunk: Optional[bool] = Field(default=None, alias="isChunk")
    chunk_number: Optional[int] = Field(default=None, alias="chunkNumber")
    is_last_chunk: Optional[Any] = Field(default=None, alias="isLastChunk")


def connected(connection_id: str) -> dict[str, Any]:
    return {"type": "connected", "connectionId": connection_id}


def config_acknowledged(config: dict[str, Any]) -> dict[str, Any]:
    return {"type": "config_acknowledged", **config}


def transcript(text: str) -> dict[str, Any]:
    return {"type": "transcript", "text": text}


def bot_message(text: str) -> dict[str, Any]:
    return {"type": "bot_message", "id": str(uuid.uuid4()), "text": text}


def audio_message(audio_b64: str, voice_name: str, audio_format: str = "mp3") -> dict[str, Any]:
    return {
        "type": "audio_message",
        "id": str(uuid.uuid4()),
        "audio": audio_b64,
        "format": audio_format,
        "voice": voice_name,
    }


def interrupt_acknowledged() -> dict[str, Any]:
    return {"type": "interrupt_acknowledged"}


def pong() -> dict[str, Any]:
    return {"type": "pong"}


def error(description: str) -> dict[str, Any]:
    return {"type": "error", "error": description}


__all__ = [
    "AudioDataMessage",
    "ChatMessageIn",
    "ConfigMessage",
    "Envelope",
    "audio_message",
    "bot_message",
    "config_acknowledged",
    "connected",
    "error",
    "interrupt_acknowledged",
    "pong",
    "transcript",
]
