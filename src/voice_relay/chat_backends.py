"""Streaming clients for the text-generation backends."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Iterable, Mapping, Optional, Sequence

import httpx
from fastapi import status

from .config import Settings

logger = logging.getLogger(__name__)


class ChatBackendError(Exception):
    """Wrap transport or API failures when communicating with a chat backend."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


@dataclass
class ServerSentEvent:
    """Represents a parsed Server-Sent Event."""

    data: str
    event: str = "message"


class _StreamingClient:
    """Shared HTTP pooling and SSE parsing for the backend clients."""

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    provider = "backend"

    def __init__(self, settings: Settings):
        self._settings = settings

    @property
    def _base_url(self) -> str:
        raise NotImplementedError

    def _client_key(self) -> tuple[str, float]:
        return (self._base_url, float(self._settings.request_timeout))

    async def _get_http_client(self) -> httpx.AsyncClient:
        key = self._client_key()
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                )
                client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    http2=True,
                )
                self.__class__._client_pool[key] = client
        return client

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close pooled HTTP client", exc_info=True)

    async def _stream_events(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
        payload: dict[str, Any],
        params: Optional[Mapping[str, str]] = None,
    ) -> AsyncGenerator[ServerSentEvent, None]:
        client = await self._get_http_client()
        try:
            async with client.stream(
                "POST",
                url,
                headers=dict(headers),
                params=dict(params) if params else None,
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    detail = self._extract_error_detail(body)
                    raise ChatBackendError(response.status_code, detail)

                async for event in self._iter_events(response):
                    yield event
        except httpx.HTTPError as exc:
            raise ChatBackendError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    async def _iter_events(
        self, response: httpx.Response
    ) -> AsyncGenerator[ServerSentEvent, None]:
        """Group stream lines into events; a blank line ends each event."""

        block: list[str] = []
        async for line in response.aiter_lines():
            if line.startswith(":"):
                continue
            if line:
                block.append(line)
            elif block:
                yield self._parse_event(block)
                block = []
        if block:
            yield self._parse_event(block)

    def _parse_event(self, lines: Iterable[str]) -> ServerSentEvent:
        event = ServerSentEvent(data="")
        data_lines: list[str] = []
        for line in lines:
            name, _, value = line.partition(":")
            if name == "data":
                data_lines.append(value.removeprefix(" "))
            elif name == "event" and value.strip():
                event.event = value.strip()
        event.data = "\n".join(data_lines)
        return event

    def _require_key(self, key: Any, env_name: str) -> str:
        secret = key.get_secret_value() if key is not None else ""
        if not secret:
            raise ChatBackendError(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                f"{env_name} is not configured",
            )
        return secret

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Backend returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("error") or payload
        if isinstance(payload, list) and payload and isinstance(payload[0], dict):
            # Gemini wraps errors in a single-element array
            return payload[0].get("error") or payload[0]
        return payload


class OpenAIChatClient(_StreamingClient):
    """Streams chat completions from an OpenAI-compatible API."""

    provider = "openai"

    @property
    def _base_url(self) -> str:
        return str(self._settings.openai_base_url).rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        api_key = self._require_key(self._settings.openai_api_key, "OPENAI_API_KEY")
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    def build_payload(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [dict(message) for message in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": True,
        }

    async def stream_text(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> AsyncGenerator[str, None]:
        payload = self.build_payload(
            messages, model=model, temperature=temperature, max_tokens=max_tokens
        )
        async for event in self._stream_events(
            f"{self._base_url}/chat/completions",
            headers=self._headers,
            payload=payload,
        ):
            if event.data == "[DONE]":
                break
            text = self.extract_delta(event.data)
            if text:
                yield text

    @staticmethod
    def extract_delta(data: str) -> str:
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON stream event: %s", data[:80])
            return ""
        if not isinstance(chunk, dict):
            return ""
        if chunk.get("error"):
            raise ChatBackendError(status.HTTP_502_BAD_GATEWAY, chunk["error"])
        choices = chunk.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        delta = choices[0].get("delta") or {}
        content = delta.get("content")
        return content if isinstance(content, str) else ""


class GeminiClient(_StreamingClient):
    """Streams content from the Gemini ``streamGenerateContent`` endpoint."""

    provider = "gemini"

    @property
    def _base_url(self) -> str:
        return str(self._settings.gemini_base_url).rstrip("/")

    @property
    def _headers(self) -> dict[str, str]:
        api_key = self._require_key(self._settings.gemini_api_key, "GEMINI_API_KEY")
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    def build_payload(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> dict[str, Any]:
        system_parts: list[dict[str, str]] = []
        contents: list[dict[str, Any]] = []
        for message in messages:
            role = message.get("role")
            text = message.get("content", "")
            if role == "system":
                system_parts.append({"text": text})
                continue
            gemini_role = "model" if role == "assistant" else "user"
            contents.append({"role": gemini_role, "parts": [{"text": text}]})

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    async def stream_text(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> AsyncGenerator[str, None]:
        payload = self.build_payload(
            messages, temperature=temperature, max_tokens=max_tokens
        )
        async for event in self._stream_events(
            f"{self._base_url}/models/{model}:streamGenerateContent",
            headers=self._headers,
            params={"alt": "sse"},
            payload=payload,
        ):
            text = self.extract_text(event.data)
            if text:
                yield text

    @staticmethod
    def extract_text(data: str) -> str:
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON stream event: %s", data[:80])
            return ""
        if not isinstance(chunk, dict):
            return ""
        if chunk.get("error"):
            raise ChatBackendError(status.HTTP_502_BAD_GATEWAY, chunk["error"])
        candidates = chunk.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return ""
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        return "".join(
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )


async def aclose_backends() -> None:
    """Close pooled HTTP clients on shutdown."""

    await _StreamingClient.aclose_shared()


__all__ = [
    "ChatBackendError",
    "GeminiClient",
    "OpenAIChatClient",
    "ServerSentEvent",
    "aclose_backends",
]
