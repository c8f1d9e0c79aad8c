"""Pydantic models for the REST chat and voice endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Incoming REST chat payload."""

    message: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    model_id: Optional[str] = Field(default=None, alias="modelId")
    model_type: Optional[str] = Field(default=None, alias="modelType")
    voice: Optional[Union[str, Dict[str, Any]]] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow", protected_namespaces=())


class ModelInfo(BaseModel):
    id: Optional[str] = None
    type: str


class ChatResponse(BaseModel):
    session_id: str = Field(alias="sessionId")
    message: str
    model: ModelInfo
    audio: Optional[str] = None
    audio_format: Optional[str] = Field(default=None, alias="audioFormat")
    voice: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class VoiceInfo(BaseModel):
    name: str
    language_codes: List[str] = Field(alias="languageCodes")
    ssml_gender: str = Field(alias="ssmlGender")

    model_config = ConfigDict(populate_by_name=True)


class VoicePreview(BaseModel):
    audio: str
    format: str = "mp3"


__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ModelInfo",
    "VoiceInfo",
    "VoicePreview",
]
