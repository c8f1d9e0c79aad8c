"""Bounded conversation history for a single session."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterator, Literal

Role = Literal["user", "assistant"]

DEFAULT_CONTEXT_LIMIT = 10


@dataclass(frozen=True)
class Turn:
    """One role-tagged message in the conversation history."""

    role: Role
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class ConversationContext:
    """Ordered, oldest-first log of turns capped at ``limit`` entries.

    Appending past the cap drops the oldest turns first.
    """

    def __init__(self, limit: int = DEFAULT_CONTEXT_LIMIT) -> None:
        if limit < 1:
            raise ValueError("limit must be positive")
        self._turns: deque[Turn] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._turns.maxlen or 0

    def append(self, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        self._turns.append(turn)
        return turn

    def add_user(self, content: str) -> Turn:
        return self.append("user", content)

    def add_assistant(self, content: str) -> Turn:
        return self.append("assistant", content)

    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))


__all__ = ["ConversationContext", "DEFAULT_CONTEXT_LIMIT", "Role", "Turn"]
