"""Registry of live conversational sessions."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

from ..chat.context import DEFAULT_CONTEXT_LIMIT, ConversationContext
from ..chat.interrupt import InterruptGate
from ..chat.models import ModelBackend, ModelSelector
from .audio_assembler import DEFAULT_CHUNK_THRESHOLD, AudioAssembler
from .voices import VoiceSelector, normalize_voice_input, resolve_voice

logger = logging.getLogger(__name__)


class RelayState(str, Enum):
    IDLE = "idle"
    TRANSCRIBING = "transcribing"
    GENERATING = "generating"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SessionDefaults:
    """Initial values applied to every new session."""

    model_ids: Mapping[ModelBackend, str] = field(
        default_factory=lambda: {
            ModelBackend.PRIMARY: "gpt-4o-mini",
            ModelBackend.SECONDARY: "gemini-1.5-pro",
        }
    )
    voice: VoiceSelector = field(default_factory=VoiceSelector)
    context_limit: int = DEFAULT_CONTEXT_LIMIT
    chunk_threshold: int = DEFAULT_CHUNK_THRESHOLD

    def model_for(self, backend: ModelBackend) -> ModelSelector:
        return ModelSelector(backend=backend, model_id=self.model_ids.get(backend))


@dataclass(eq=False)
class Session:
    """All state for one logical conversation."""

    id: str
    defaults: SessionDefaults = field(default_factory=SessionDefaults)
    transport: bool = False
    model: ModelSelector = field(init=False)
    voice: VoiceSelector = field(init=False)
    context: ConversationContext = field(init=False)
    audio: AudioAssembler = field(init=False)
    gate: InterruptGate = field(default_factory=InterruptGate)
    audio_session: bool = False
    state: RelayState = RelayState.IDLE
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def __post_init__(self) -> None:
        self.model = self.defaults.model_for(ModelBackend.PRIMARY)
        self.voice = self.defaults.voice
        self.context = ConversationContext(self.defaults.context_limit)
        self.audio = AudioAssembler(threshold=self.defaults.chunk_threshold)

    @property
    def interrupted(self) -> bool:
        return self.gate.interrupted

    def touch(self) -> None:
        self.last_activity = _utcnow()

    def configure(
        self,
        *,
        model_id: Optional[str] = None,
        model_type: Optional[str] = None,
        audio_session: Optional[bool] = None,
        voice: Any = None,
    ) -> None:
        """Apply a partial configuration update; absent fields are unchanged.

        Raises ``ValueError`` for an unknown model type or malformed voice
        before anything is modified.
        """

        backend = ModelBackend.parse(model_type) if model_type else self.model.backend
        voice_input = normalize_voice_input(voice)

        if model_id:
            self.model = ModelSelector(backend=backend, model_id=model_id)
        elif backend is not self.model.backend:
            self.model = self.defaults.model_for(backend)

        if audio_session is not None:
            self.audio_session = audio_session

        if voice_input is not None:
            self.voice = resolve_voice(self.voice, voice_input, default=self.defaults.voice)
            logger.info("Session %s voice set to %s", self.id, self.voice)

    def config_payload(self) -> dict[str, Any]:
        return {
            "voice": self.voice.as_payload(),
            "model": self.model.as_payload(),
            "audioSession": self.audio_session,
        }


class SessionManager:
    """Owns every live session, keyed by connection or client-supplied id.

    All registry operations are synchronous, so a lookup followed by an
    insert cannot interleave with another task on the event loop.
    """

    def __init__(
        self,
        defaults: Optional[SessionDefaults] = None,
        *,
        idle_ttl: timedelta = timedelta(hours=1),
    ) -> None:
        self._defaults = defaults or SessionDefaults()
        self._idle_ttl = idle_ttl
        self._sessions: Dict[str, Session] = {}

    @property
    def defaults(self) -> SessionDefaults:
        return self._defaults

    def create(self, session_id: Optional[str] = None, *, transport: bool = False) -> Session:
        session = Session(
            id=session_id or uuid.uuid4().hex,
            defaults=self._defaults,
            transport=transport,
        )
        self._sessions[session.id] = session
        logger.info(
            "Session %s created (%s)",
            session.id,
            "connection" if transport else "rest",
        )
        return session

    def get_or_create(self, session_id: Optional[str] = None, *, transport: bool = False) -> Session:
        if session_id:
            existing = self._sessions.get(session_id)
            if existing is not None:
                existing.touch()
                return existing
        return self.create(session_id, transport=transport)

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Optional[Session]:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            logger.info("Session %s removed", session_id)
        return session

    def evict_idle(self, now: Optional[datetime] = None) -> List[str]:
        """Drop REST sessions idle for longer than the TTL.

        Connection-owned sessions are removed by their transport instead.
        A TTL of zero disables eviction.
        """

        if self._idle_ttl <= timedelta(0):
            return []
        cutoff = (now or _utcnow()) - self._idle_ttl
        expired = [
            session.id
            for session in self._sessions.values()
            if not session.transport
            and session.last_activity < cutoff
            and not session.lock.locked()
        ]
        for session_id in expired:
            self._sessions.pop(session_id, None)
        if expired:
            logger.info("Evicted %d idle session(s)", len(expired))
        return expired

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))


__all__ = [
    "RelayState",
    "Session",
    "SessionDefaults",
    "SessionManager",
]
