"""Voice catalog and voice-selection normalization."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Mapping, Union

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE_CODE = "en-IN"
DEFAULT_GENDER = "MALE"
DEFAULT_VOICE_NAME = "en-IN-Chirp3-HD-Orus"


@dataclass(frozen=True)
class VoiceSelector:
    """Canonical synthesis voice configuration for a session."""

    language_code: str = DEFAULT_LANGUAGE_CODE
    gender: str = DEFAULT_GENDER
    name: str = DEFAULT_VOICE_NAME

    def as_payload(self) -> dict[str, str]:
        return {
            "languageCode": self.language_code,
            "ssmlGender": self.gender,
            "name": self.name,
        }


@dataclass(frozen=True)
class VoiceName:
    """A bare voice name such as ``hi-IN-Chirp3-HD-Orus``."""

    name: str


@dataclass(frozen=True)
class FullVoice:
    """A complete voice description sent as an object."""

    language_code: str | None = None
    gender: str | None = None
    name: str | None = None


VoiceInput = Union[VoiceName, FullVoice]


SUPPORTED_VOICES: tuple[dict[str, Any], ...] = (
    {
        "name": "en-IN-Chirp3-HD-Orus",
        "languageCodes": ["en-IN"],
        "ssmlGender": "MALE",
    },
    {
        "name": "en-IN-Chirp3-HD-Zephyr",
        "languageCodes": ["en-IN"],
        "ssmlGender": "FEMALE",
    },
    {
        "name": "hi-IN-Chirp3-HD-Orus",
        "languageCodes": ["hi-IN"],
        "ssmlGender": "MALE",
    },
    {
        "name": "hi-IN-Chirp3-HD-Zephyr",
        "languageCodes": ["hi-IN"],
        "ssmlGender": "FEMALE",
    },
)

_GENDER_BY_NAME = {voice["name"]: voice["ssmlGender"] for voice in SUPPORTED_VOICES}


def list_voices() -> list[dict[str, Any]]:
    """Return a copy of the supported voice catalog."""

    return [
        {**voice, "languageCodes": list(voice["languageCodes"])}
        for voice in SUPPORTED_VOICES
    ]


def language_code_from_name(name: str) -> str | None:
    """Return the ``xx-YY`` prefix of a voice name, or ``None`` if it has none.

    Google voice names are ``<language>-<region>-<family>-...``; the language
    code is everything up to the second hyphen.
    """

    parts = name.split("-")
    if len(parts) < 3 or not parts[0] or not parts[1]:
        return None
    return f"{parts[0]}-{parts[1]}"


def normalize_voice_input(raw: Any) -> VoiceInput | None:
    """Turn the wire ``voice`` field (string or object) into a ``VoiceInput``."""

    if isinstance(raw, str):
        name = raw.strip()
        return VoiceName(name) if name else None
    if isinstance(raw, Mapping):
        return FullVoice(
            language_code=_clean(raw.get("languageCode")),
            gender=_clean(raw.get("ssmlGender")),
            name=_clean(raw.get("name")),
        )
    if raw is not None:
        raise ValueError("voice must be a voice name or an object")
    return None


def resolve_voice(
    current: VoiceSelector,
    voice: VoiceInput,
    *,
    default: VoiceSelector | None = None,
) -> VoiceSelector:
    """Apply a voice update to ``current`` and return the canonical selector.

    A full object replaces the selector, filling absent fields from
    ``default``. A bare name keeps the current selector and only changes the
    name, its derived language code and, for catalog voices, the gender.
    """

    if isinstance(voice, FullVoice):
        base = default or VoiceSelector()
        return VoiceSelector(
            language_code=voice.language_code or base.language_code,
            gender=voice.gender or base.gender,
            name=voice.name or base.name,
        )

    language_code = language_code_from_name(voice.name)
    if language_code is None:
        logger.info("Voice %s has no language prefix; keeping %s", voice.name, current.language_code)
        language_code = current.language_code
    return replace(
        current,
        name=voice.name,
        language_code=language_code,
        gender=_GENDER_BY_NAME.get(voice.name, current.gender),
    )


def selector_for_name(name: str) -> VoiceSelector:
    """Build a selector from a voice name alone, used for previews and defaults."""

    return resolve_voice(VoiceSelector(), VoiceName(name))


def _clean(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


__all__ = [
    "FullVoice",
    "SUPPORTED_VOICES",
    "VoiceInput",
    "VoiceName",
    "VoiceSelector",
    "language_code_from_name",
    "list_voices",
    "normalize_voice_input",
    "resolve_voice",
    "selector_for_name",
]
