import pathlib
import sys
from typing import Any, AsyncIterator, Callable, Mapping, Optional, Sequence

import pytest
from pydantic import SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from voice_relay.chat.models import ModelBackend  # noqa: E402
from voice_relay.chat.streamer import CompletionStreamer  # noqa: E402
from voice_relay.config import Settings  # noqa: E402
from voice_relay.services.voices import VoiceSelector  # noqa: E402

TEST_API_KEY = "test-secret"


class ScriptedBackend:
    """Chat backend that replays fixed fragments and records each request."""

    provider = "scripted"

    def __init__(self, fragments: Sequence[str] = ("Hello", " there")) -> None:
        self.fragments = list(fragments)
        self.requests: list[dict[str, Any]] = []

    async def stream_text(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        self.requests.append({"messages": [dict(m) for m in messages], "model": model})
        for fragment in self.fragments:
            yield fragment


class FakeTranscriber:
    def __init__(self, text: Optional[str] = "Hello") -> None:
        self.text = text
        self.calls: list[tuple[bytes, Optional[str], Optional[str]]] = []

    async def transcribe(
        self,
        audio: bytes,
        mime_type: Optional[str] = None,
        language_code: Optional[str] = None,
    ) -> Optional[str]:
        self.calls.append((audio, mime_type, language_code))
        return self.text


class FakeSynthesizer:
    def __init__(self, audio: Optional[bytes] = b"mp3-bytes") -> None:
        self.audio = audio
        self.calls: list[tuple[str, VoiceSelector]] = []

    async def synthesize(self, text: str, voice: VoiceSelector) -> Optional[bytes]:
        self.calls.append((text, voice))
        return self.audio


def _build_streamer(backend: Any, *, secondary: Any = None) -> CompletionStreamer:
    backends = {ModelBackend.PRIMARY: backend}
    if secondary is not None:
        backends[ModelBackend.SECONDARY] = secondary
    return CompletionStreamer(
        backends,
        system_prompt="You are a test assistant.",
        default_models={
            ModelBackend.PRIMARY: "gpt-4o-mini",
            ModelBackend.SECONDARY: "gemini-1.5-pro",
        },
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_secret_key=SecretStr(TEST_API_KEY),
        openai_api_key=SecretStr("sk-test"),
        gemini_api_key=SecretStr("gm-test"),
        google_credentials_json=None,
        google_application_credentials=None,
    )


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY


@pytest.fixture
def backend_factory() -> Callable[..., ScriptedBackend]:
    return ScriptedBackend


@pytest.fixture
def transcriber_factory() -> Callable[..., FakeTranscriber]:
    return FakeTranscriber


@pytest.fixture
def synthesizer_factory() -> Callable[..., FakeSynthesizer]:
    return FakeSynthesizer


@pytest.fixture
def streamer_factory() -> Callable[..., CompletionStreamer]:
    return _build_streamer
