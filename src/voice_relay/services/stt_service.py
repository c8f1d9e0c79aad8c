"""Google Cloud Speech-to-Text gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from google.cloud import speech

from ..config import Settings, get_settings
from ..utils.audio_formats import AudioFormat, AudioProfile, describe_audio
from .google_credentials import load_credentials

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en-US"

# Common English/Hindi phrases boosted for the Indian locales
HINT_PHRASES = (
    "hello", "hi", "namaste", "how are you", "kaise ho", "what are you doing",
    "kya kar rahe ho", "thank you", "dhanyavaad", "plant", "garden", "water",
    "fertilizer", "paudha", "bagichaa", "paani", "khaad",
)
HINT_BOOST = 10.0


@dataclass(frozen=True)
class LanguagePlan:
    primary: str
    alternates: tuple[str, ...] = ()


def resolve_languages(language_code: Optional[str]) -> LanguagePlan:
    """Pick the recognition language and alternates from the session voice.

    Hindi and English alternate for each other so mixed speech is recognised.
    """

    if not language_code:
        primary = DEFAULT_LANGUAGE
    elif language_code.startswith("hi-"):
        primary = "hi-IN"
    else:
        primary = language_code

    if primary == "hi-IN":
        return LanguagePlan(primary, ("en-US", "en-IN"))
    if primary in ("en-IN", "en-US"):
        return LanguagePlan(primary, ("hi-IN",))
    return LanguagePlan(primary)


def build_recognition_config(
    profile: AudioProfile, plan: LanguagePlan
) -> speech.RecognitionConfig:
    kwargs: dict[str, Any] = {
        "encoding": speech.RecognitionConfig.AudioEncoding[profile.format.value],
        "language_code": plan.primary,
        "model": "latest_long",
        "use_enhanced": True,
        "enable_automatic_punctuation": True,
        "profanity_filter": False,
        "enable_word_time_offsets": False,
        "enable_word_confidence": True,
        "audio_channel_count": profile.channel_count,
    }
    if plan.alternates:
        kwargs["alternative_language_codes"] = list(plan.alternates)
    if profile.sample_rate_hertz is not None:
        kwargs["sample_rate_hertz"] = profile.sample_rate_hertz
    if plan.primary in ("hi-IN", "en-IN"):
        kwargs["speech_contexts"] = [
            speech.SpeechContext(phrases=list(HINT_PHRASES), boost=HINT_BOOST)
        ]
    return speech.RecognitionConfig(**kwargs)


def _join_results(results: Sequence[Any]) -> str:
    return "\n".join(
        result.alternatives[0].transcript
        for result in results
        if result.alternatives
    )


class TranscriptionService:
    """Turns a complete audio unit into text; returns ``None`` on any failure."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[speech.SpeechAsyncClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    def _get_client(self) -> speech.SpeechAsyncClient:
        if self._client is None:
            credentials = load_credentials(self._settings)
            self._client = speech.SpeechAsyncClient(credentials=credentials)
            logger.info(
                "Created Speech-to-Text client (%s credentials)",
                "explicit" if credentials is not None else "default",
            )
        return self._client

    async def transcribe(
        self,
        audio: bytes,
        mime_type: Optional[str] = None,
        language_code: Optional[str] = None,
    ) -> Optional[str]:
        if not audio:
            logger.error("Audio buffer is empty")
            return None

        try:
            profile = describe_audio(audio, mime_type)
            plan = resolve_languages(language_code)
            logger.info(
                "Speech recognition config: language=%s, encoding=%s, sample rate=%s, bytes=%d",
                plan.primary,
                profile.format.value,
                profile.sample_rate_hertz or "auto",
                len(audio),
            )
            client = self._get_client()
            recognition_audio = speech.RecognitionAudio(content=audio)
            response = await client.recognize(
                config=build_recognition_config(profile, plan),
                audio=recognition_audio,
            )

            if not response.results and profile.is_container:
                logger.info("No results for container audio; retrying as LINEAR16")
                fallback = AudioProfile(AudioFormat.LINEAR16, 16000, profile.channel_count)
                response = await client.recognize(
                    config=build_recognition_config(fallback, plan),
                    audio=recognition_audio,
                )

            if not response.results:
                logger.warning("Speech recognition returned no results")
                return None

            detected = getattr(response.results[0], "language_code", None)
            if detected:
                logger.info("Detected speech language: %s", detected)

            transcript = _join_results(response.results)
            logger.info("Speech recognition successful: %r", transcript)
            return transcript or None
        except Exception as exc:
            logger.error("Error in speech-to-text: %s", exc, exc_info=True)
            return None


__all__ = [
    "HINT_PHRASES",
    "LanguagePlan",
    "TranscriptionService",
    "build_recognition_config",
    "resolve_languages",
]
