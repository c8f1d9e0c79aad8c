"""Reassembly of chunked base64 audio into complete utterances."""

from __future__ import annotations

import base64
import binascii
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..utils.audio_formats import is_structured_container

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "audio/mp3"
DEFAULT_CHUNK_THRESHOLD = 10


class AudioDecodeError(ValueError):
    """Raised when buffered audio is not valid base64."""


@dataclass(frozen=True)
class AssemblyResult:
    """Outcome of ingesting one fragment."""

    complete: bool
    payload: Optional[bytes] = None
    mime_type: Optional[str] = None
    fragment_count: int = 0


def decode_audio(data: str) -> bytes:
    """Decode transport-encoded audio, raising ``AudioDecodeError`` on bad input."""

    try:
        return base64.b64decode(data)
    except (binascii.Error, ValueError) as exc:
        raise AudioDecodeError(str(exc)) from exc


class AudioAssembler:
    """Buffers the fragments of the in-progress utterance for one session.

    Fragments are kept in arrival order. A unit completes when the client
    marks the last fragment, or, for formats that are not structured
    containers, once ``threshold`` fragments are buffered.
    """

    def __init__(
        self,
        *,
        threshold: int = DEFAULT_CHUNK_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be positive")
        self._threshold = threshold
        self._clock = clock
        self._fragments: list[str] = []
        self._arrivals: list[float] = []
        self._mime_type: str | None = None

    @property
    def pending(self) -> int:
        return len(self._fragments)

    @property
    def mime_type(self) -> str | None:
        return self._mime_type

    @property
    def last_chunk_at(self) -> float | None:
        return self._arrivals[-1] if self._arrivals else None

    def reset(self) -> None:
        self._fragments.clear()
        self._arrivals.clear()
        self._mime_type = None

    def ingest(
        self,
        fragment: str,
        sequence_number: int | None,
        is_last: bool,
        mime_type: str | None = None,
    ) -> AssemblyResult:
        if sequence_number in (0, 1):
            if self._fragments:
                logger.debug(
                    "New utterance started; discarding %d buffered fragment(s)",
                    len(self._fragments),
                )
            self.reset()
            self._mime_type = mime_type or DEFAULT_MIME_TYPE
        elif self._mime_type is None:
            self._mime_type = mime_type or DEFAULT_MIME_TYPE

        self._fragments.append(fragment)
        self._arrivals.append(self._clock())

        structured = is_structured_container(mime_type or self._mime_type)
        if is_last or (
            not structured and len(self._fragments) >= self._threshold
        ):
            return self._flush()

        logger.debug(
            "Waiting for more audio chunks (have %d, structured=%s)",
            len(self._fragments),
            structured,
        )
        return AssemblyResult(complete=False, fragment_count=len(self._fragments))

    def _flush(self) -> AssemblyResult:
        fragments = list(self._fragments)
        mime_type = self._mime_type or DEFAULT_MIME_TYPE
        self.reset()
        combined = "".join(fragments)
        if "=" in combined.rstrip("="):
            # Each fragment was encoded separately and carries its own padding
            payload = b"".join(decode_audio(fragment) for fragment in fragments)
        else:
            payload = decode_audio(combined)
        count = len(fragments)
        return AssemblyResult(
            complete=True,
            payload=payload,
            mime_type=mime_type,
            fragment_count=count,
        )


__all__ = [
    "AssemblyResult",
    "AudioAssembler",
    "AudioDecodeError",
    "DEFAULT_CHUNK_THRESHOLD",
    "DEFAULT_MIME_TYPE",
    "decode_audio",
]
