"""Voice catalog and preview routes."""

from __future__ import annotations

import base64
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import require_api_key
from ..chat.relay import Synthesizer
from ..schemas.chat import VoiceInfo, VoicePreview
from ..services.tts_service import AUDIO_FORMAT
from ..services.voices import list_voices, selector_for_name
from .chat import get_synthesizer

router = APIRouter(prefix="/api", tags=["voices"], dependencies=[Depends(require_api_key)])


@router.get("/list-voices", response_model=List[VoiceInfo])
async def get_voices() -> List[VoiceInfo]:
    return [VoiceInfo.model_validate(voice) for voice in list_voices()]


@router.get("/preview-voice", response_model=VoicePreview)
async def preview_voice(
    voice_name: Optional[str] = Query(default=None, alias="voiceName"),
    text: Optional[str] = Query(default=None),
    synthesizer: Synthesizer = Depends(get_synthesizer),
) -> VoicePreview:
    """Synthesize a short sample so clients can audition a voice."""

    if not voice_name or not text:
        raise HTTPException(status_code=400, detail="Voice name and text are required")

    audio = await synthesizer.synthesize(text, selector_for_name(voice_name))
    if not audio:
        raise HTTPException(status_code=500, detail="Failed to generate audio")

    return VoicePreview(audio=base64.b64encode(audio).decode("ascii"), format=AUDIO_FORMAT)


__all__ = ["router"]
