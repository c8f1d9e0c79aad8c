"""Interruptible streaming of model responses."""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import (
    AsyncIterator,
    Callable,
    Mapping,
    Protocol,
    Sequence,
)

from ..chat_backends import ChatBackendError
from .context import Turn
from .models import ModelBackend, ModelSelector

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = (
    "I apologize, but I encountered an issue processing your request. "
    "Please try again."
)

InterruptCheck = Callable[[], bool]


class ChatBackend(Protocol):
    provider: str

    def stream_text(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]: ...


def _never_interrupted() -> bool:
    return False


class CompletionStreamer:
    """Runs one completion against the backend chosen by a ``ModelSelector``."""

    def __init__(
        self,
        backends: Mapping[ModelBackend, ChatBackend],
        *,
        system_prompt: str,
        default_models: Mapping[ModelBackend, str],
        temperature: float = 0.3,
        max_tokens: int = 200,
    ) -> None:
        self._backends = dict(backends)
        self._system_prompt = system_prompt
        self._default_models = dict(default_models)
        self._temperature = temperature
        self._max_tokens = max_tokens

    def build_messages(self, turns: Sequence[Turn]) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": self._system_prompt}]
        messages.extend(turn.as_message() for turn in turns)
        return messages

    def _resolve(self, model: ModelSelector) -> tuple[ChatBackend, str]:
        backend = self._backends.get(model.backend)
        if backend is None:
            raise ChatBackendError(503, f"No client configured for {model.backend.value}")
        model_id = model.model_id or self._default_models.get(model.backend)
        if not model_id:
            raise ChatBackendError(400, f"No model configured for {model.backend.value}")
        return backend, model_id

    async def stream(
        self,
        turns: Sequence[Turn],
        model: ModelSelector,
        interrupt_check: InterruptCheck = _never_interrupted,
    ) -> AsyncIterator[str]:
        """Yield response fragments until the backend finishes or the gate closes.

        The upstream stream is closed as soon as ``interrupt_check`` reports an
        interrupt. Backend failures propagate as ``ChatBackendError``.
        """

        if interrupt_check():
            logger.info("Interrupted before generation; skipping model call")
            return

        backend, model_id = self._resolve(model)
        messages = self.build_messages(turns)
        logger.debug(
            "Streaming %d message(s) to %s model %s",
            len(messages),
            backend.provider,
            model_id,
        )

        fragments = backend.stream_text(
            messages,
            model=model_id,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        async with aclosing(fragments):
            async for fragment in fragments:
                if interrupt_check():
                    logger.info("Response streaming interrupted")
                    return
                if fragment:
                    yield fragment

    async def complete(
        self,
        turns: Sequence[Turn],
        model: ModelSelector,
        interrupt_check: InterruptCheck = _never_interrupted,
    ) -> str:
        """Return the concatenated response, or the apology if the backend fails."""

        parts: list[str] = []
        try:
            async with aclosing(self.stream(turns, model, interrupt_check)) as stream:
                async for fragment in stream:
                    parts.append(fragment)
        except ChatBackendError as exc:
            logger.error(
                "Chat backend %s failed (%s): %s",
                model.backend.value,
                exc.status_code,
                exc.detail,
            )
            return FALLBACK_RESPONSE
        except Exception:
            logger.exception("Unexpected error while generating a response")
            return FALLBACK_RESPONSE
        return "".join(parts)


__all__ = [
    "ChatBackend",
    "CompletionStreamer",
    "FALLBACK_RESPONSE",
    "InterruptCheck",
]
