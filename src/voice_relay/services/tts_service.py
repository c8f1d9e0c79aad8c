"""Google Cloud Text-to-Speech gateway."""

from __future__ import annotations

import logging
from typing import Optional

from google.cloud import texttospeech

from ..config import Settings, get_settings
from .google_credentials import load_credentials
from .voices import VoiceSelector

logger = logging.getLogger(__name__)

AUDIO_FORMAT = "mp3"


def build_synthesis_request(
    text: str, voice: VoiceSelector
) -> texttospeech.SynthesizeSpeechRequest:
    return texttospeech.SynthesizeSpeechRequest(
        input=texttospeech.SynthesisInput(text=text),
        voice=texttospeech.VoiceSelectionParams(
            language_code=voice.language_code,
            name=voice.name,
            ssml_gender=texttospeech.SsmlVoiceGender[voice.gender.upper()],
        ),
        audio_config=texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.MP3,
        ),
    )


class SynthesisService:
    """Synthesizes MP3 audio for a voice; returns ``None`` on any failure."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[texttospeech.TextToSpeechAsyncClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    def _get_client(self) -> texttospeech.TextToSpeechAsyncClient:
        if self._client is None:
            credentials = load_credentials(self._settings)
            self._client = texttospeech.TextToSpeechAsyncClient(credentials=credentials)
            logger.info(
                "Created Text-to-Speech client (%s credentials)",
                "explicit" if credentials is not None else "default",
            )
        return self._client

    async def synthesize(self, text: str, voice: VoiceSelector) -> Optional[bytes]:
        if not text.strip():
            return None
        try:
            logger.info(
                "Converting text to speech using voice: %s (%s)",
                voice.name,
                voice.language_code,
            )
            response = await self._get_client().synthesize_speech(
                request=build_synthesis_request(text, voice)
            )
            audio = bytes(response.audio_content)
            return audio or None
        except Exception as exc:
            logger.error("Error in text-to-speech: %s", exc, exc_info=True)
            return None


__all__ = ["AUDIO_FORMAT", "SynthesisService", "build_synthesis_request"]
