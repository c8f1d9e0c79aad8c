"""Text-generation backend selection."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ModelBackend(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"

    @classmethod
    def parse(cls, value: str) -> "ModelBackend":
        """Resolve a wire ``modelType`` value, accepting provider aliases."""

        normalized = value.strip().lower()
        try:
            return _ALIASES[normalized]
        except KeyError:
            raise ValueError(f"Unsupported model type: {value}") from None


_ALIASES = {
    "primary": ModelBackend.PRIMARY,
    "openai": ModelBackend.PRIMARY,
    "secondary": ModelBackend.SECONDARY,
    "gemini": ModelBackend.SECONDARY,
}


@dataclass(frozen=True)
class ModelSelector:
    """Which backend and model variant a session talks to."""

    backend: ModelBackend = ModelBackend.PRIMARY
    model_id: Optional[str] = None

    def as_payload(self) -> dict[str, Optional[str]]:
        return {"id": self.model_id, "type": self.backend.value}


__all__ = ["ModelBackend", "ModelSelector"]
