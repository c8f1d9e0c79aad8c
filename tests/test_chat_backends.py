import json

import httpx
import pytest
from pydantic import SecretStr

from voice_relay.chat_backends import ChatBackendError, GeminiClient, OpenAIChatClient
from voice_relay.config import Settings

MESSAGES = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": "Hi"},
    {"role": "assistant", "content": "Hello"},
    {"role": "user", "content": "How are plants?"},
]


def make_settings(**overrides) -> Settings:
    values = {
        "openai_api_key": SecretStr("sk-test"),
        "openai_base_url": "https://llm.test/v1",
        "gemini_api_key": SecretStr("gm-test"),
        "gemini_base_url": "https://gemini.test/v1beta",
    }
    values.update(overrides)
    return Settings(**values)


def use_transport(monkeypatch: pytest.MonkeyPatch, client, handler) -> None:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def _get_http_client() -> httpx.AsyncClient:
        return http_client

    monkeypatch.setattr(client, "_get_http_client", _get_http_client)


def sse(*payloads: str) -> bytes:
    return "".join(f"data: {payload}\n\n" for payload in payloads).encode()


def test_parse_event_supports_multiple_data_lines() -> None:
    client = OpenAIChatClient(make_settings())

    event = client._parse_event(  # type: ignore[attr-defined]
        ["event: completion", "id: abc", "data: part one", "data: part two"]
    )

    assert event.event == "completion"
    assert event.data == "part one\npart two"


@pytest.mark.asyncio
async def test_iter_events_skips_comments_and_defaults_event_name() -> None:
    client = OpenAIChatClient(make_settings())
    response = httpx.Response(
        200, content=b": keep-alive\n\ndata: first\n\nevent: \ndata: second"
    )

    events = [event async for event in client._iter_events(response)]  # type: ignore[attr-defined]

    assert [(event.event, event.data) for event in events] == [
        ("message", "first"),
        ("message", "second"),
    ]


def test_openai_payload_and_delta_extraction() -> None:
    client = OpenAIChatClient(make_settings())

    payload = client.build_payload(MESSAGES, model="gpt-4o-mini", temperature=0.3, max_tokens=200)

    assert payload["model"] == "gpt-4o-mini"
    assert payload["stream"] is True
    assert payload["messages"] == MESSAGES
    assert payload["max_tokens"] == 200

    chunk = json.dumps({"choices": [{"delta": {"content": "Leaf"}}]})
    assert OpenAIChatClient.extract_delta(chunk) == "Leaf"
    assert OpenAIChatClient.extract_delta(json.dumps({"choices": [{"delta": {}}]})) == ""
    assert OpenAIChatClient.extract_delta("not json") == ""
    with pytest.raises(ChatBackendError):
        OpenAIChatClient.extract_delta(json.dumps({"error": {"message": "boom"}}))


def test_gemini_payload_maps_roles_and_system_instruction() -> None:
    client = GeminiClient(make_settings())

    payload = client.build_payload(MESSAGES, temperature=0.3, max_tokens=200)

    assert payload["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
    assert [item["role"] for item in payload["contents"]] == ["user", "model", "user"]
    assert payload["contents"][2]["parts"] == [{"text": "How are plants?"}]
    assert payload["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 200}


def test_gemini_extract_text_joins_parts() -> None:
    chunk = json.dumps(
        {"candidates": [{"content": {"parts": [{"text": "Water "}, {"text": "weekly."}]}}]}
    )
    assert GeminiClient.extract_text(chunk) == "Water weekly."
    assert GeminiClient.extract_text(json.dumps({"candidates": []})) == ""


@pytest.mark.asyncio
async def test_openai_stream_text_yields_fragments(monkeypatch: pytest.MonkeyPatch) -> None:
    client = OpenAIChatClient(make_settings())
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = sse(
            json.dumps({"choices": [{"delta": {"content": "Hello"}}]}),
            json.dumps({"choices": [{"delta": {"content": " world"}}]}),
            "[DONE]",
        )
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    use_transport(monkeypatch, client, handler)

    fragments = [
        fragment
        async for fragment in client.stream_text(
            MESSAGES, model="gpt-4o-mini", temperature=0.3, max_tokens=200
        )
    ]

    assert fragments == ["Hello", " world"]
    assert str(seen[0].url) == "https://llm.test/v1/chat/completions"
    assert seen[0].headers["Authorization"] == "Bearer sk-test"
    assert json.loads(seen[0].content)["stream"] is True


@pytest.mark.asyncio
async def test_gemini_stream_text_uses_sse_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    client = GeminiClient(make_settings())
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = sse(json.dumps({"candidates": [{"content": {"parts": [{"text": "Namaste"}]}}]}))
        return httpx.Response(200, content=body)

    use_transport(monkeypatch, client, handler)

    fragments = [
        fragment
        async for fragment in client.stream_text(
            MESSAGES, model="gemini-1.5-pro", temperature=0.3, max_tokens=200
        )
    ]

    assert fragments == ["Namaste"]
    assert seen[0].url.path == "/v1beta/models/gemini-1.5-pro:streamGenerateContent"
    assert seen[0].url.params["alt"] == "sse"
    assert seen[0].headers["x-goog-api-key"] == "gm-test"


@pytest.mark.asyncio
async def test_error_status_raises_backend_error(monkeypatch: pytest.MonkeyPatch) -> None:
    client = OpenAIChatClient(make_settings())

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "bad key"}})

    use_transport(monkeypatch, client, handler)

    with pytest.raises(ChatBackendError) as excinfo:
        async for _ in client.stream_text(
            MESSAGES, model="gpt-4o-mini", temperature=0.3, max_tokens=200
        ):
            pass

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == {"message": "bad key"}


@pytest.mark.asyncio
async def test_missing_api_key_is_service_unavailable() -> None:
    client = GeminiClient(make_settings(gemini_api_key=None))

    with pytest.raises(ChatBackendError) as excinfo:
        async for _ in client.stream_text(
            MESSAGES, model="gemini-1.5-pro", temperature=0.3, max_tokens=200
        ):
            pass

    assert excinfo.value.status_code == 503
