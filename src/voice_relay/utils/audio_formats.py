"""Audio format detection for recognition requests."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class AudioFormat(str, Enum):
    """Encodings accepted by the recognition backend."""

    FLAC = "FLAC"
    MULAW = "MULAW"
    AMR = "AMR"
    AMR_WB = "AMR_WB"
    OGG_OPUS = "OGG_OPUS"
    SPEEX_WITH_HEADER_BYTE = "SPEEX_WITH_HEADER_BYTE"
    LINEAR16 = "LINEAR16"


_EBML_MAGIC = b"\x1a\x45\xdf\xa3"  # WebM / Matroska
_OGG_MAGIC = b"OggS"
_FLAC_MAGIC = b"fLaC"

# Checked in order; the first substring found in the lowercased mime type wins.
_MIME_RULES: tuple[tuple[tuple[str, ...], AudioFormat], ...] = (
    (("webm",), AudioFormat.OGG_OPUS),
    (("flac",), AudioFormat.FLAC),
    (("mulaw",), AudioFormat.MULAW),
    (("amr_wb", "amr-wb"), AudioFormat.AMR_WB),
    (("amr",), AudioFormat.AMR),
    (("opus", "ogg"), AudioFormat.OGG_OPUS),
    (("speex",), AudioFormat.SPEEX_WITH_HEADER_BYTE),
    (("wav", "linear", "l16"), AudioFormat.LINEAR16),
)

_RATE_PATTERN = re.compile(r"rate=(\d+)")

DEFAULT_SAMPLE_RATE = 16000
_FIXED_SAMPLE_RATES = {
    AudioFormat.MULAW: 8000,
    AudioFormat.AMR: 8000,
    AudioFormat.AMR_WB: 16000,
    AudioFormat.SPEEX_WITH_HEADER_BYTE: 16000,
}


@dataclass(frozen=True)
class AudioProfile:
    """Recognition parameters derived from an audio payload."""

    format: AudioFormat
    sample_rate_hertz: int | None
    channel_count: int

    @property
    def is_container(self) -> bool:
        """True when the payload is opus inside a WebM/Ogg container."""

        return self.format is AudioFormat.OGG_OPUS


def _signature_format(audio: bytes) -> AudioFormat | None:
    if audio.startswith(_EBML_MAGIC) or audio.startswith(_OGG_MAGIC):
        return AudioFormat.OGG_OPUS
    if audio.startswith(_FLAC_MAGIC):
        return AudioFormat.FLAC
    return None


def classify_audio(audio: bytes, mime_type: str | None = None) -> AudioFormat:
    """Return the recognition encoding for ``audio``.

    Precedence: byte signatures (WebM/EBML, Ogg, FLAC), then mime type
    substrings, then LINEAR16. MP3 and anything unrecognized fall back to
    LINEAR16 since the backend has no MP3 decoder.
    """

    detected = _signature_format(audio)
    if detected is not None:
        return detected

    lowered = (mime_type or "").lower()
    for needles, audio_format in _MIME_RULES:
        if any(needle in lowered for needle in needles):
            return audio_format
    return AudioFormat.LINEAR16


def describe_audio(audio: bytes, mime_type: str | None = None) -> AudioProfile:
    """Classify ``audio`` and pick the sample rate and channel count to send."""

    audio_format = classify_audio(audio, mime_type)

    if audio_format is AudioFormat.OGG_OPUS:
        # The container header carries the rate; browsers record in stereo.
        return AudioProfile(audio_format, None, 2)

    if audio_format is AudioFormat.FLAC:
        rate = None if audio.startswith(_FLAC_MAGIC) else DEFAULT_SAMPLE_RATE
        return AudioProfile(audio_format, rate, 1)

    if audio_format is AudioFormat.LINEAR16:
        match = _RATE_PATTERN.search(mime_type or "")
        rate = int(match.group(1)) if match else DEFAULT_SAMPLE_RATE
        return AudioProfile(audio_format, rate, 1)

    return AudioProfile(audio_format, _FIXED_SAMPLE_RATES[audio_format], 1)


def is_structured_container(mime_type: str | None) -> bool:
    """True for formats that are only decodable once the whole file arrived."""

    return "flac" in (mime_type or "").lower()


__all__ = [
    "AudioFormat",
    "AudioProfile",
    "classify_audio",
    "describe_audio",
    "is_structured_container",
]
