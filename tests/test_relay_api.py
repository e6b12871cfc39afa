from __future__ import annotations

import gzip
import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from mkhub_chat.app.main import create_app
from mkhub_chat.app.settings import Settings
from mkhub_chat.bootstrap.container import RelayComponents
from mkhub_chat.modules.relay.upstream import GatewayClient, extract_image_url
from mkhub_chat.modules.relay.validation import MESSAGE_TOO_LONG, TOO_MANY_MESSAGES
from tests.conftest import chunked, sse_body

GATEWAY_URL = "http://gateway.test/v1"


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    *,
    api_key: str = "gateway-key",
    **overrides: Any,
) -> TestClient:
    app_settings = Settings(gateway_api_key=api_key, **overrides)
    gateway = GatewayClient(
        base_url=GATEWAY_URL,
        api_key=api_key,
        chat_model=app_settings.chat_model,
        image_model=app_settings.image_model,
        system_instruction=app_settings.system_instruction,
        timeout_seconds=5.0,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return TestClient(create_app(app_settings, components=RelayComponents(gateway=gateway)))


def _no_upstream(request: httpx.Request) -> httpx.Response:
    raise AssertionError("upstream should not be called")


def test_health() -> None:
    with _client(_no_upstream) as client:
        response = client.get("/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_chat_streams_upstream_bytes_unchanged() -> None:
    captured: list[httpx.Request] = []
    body = b": OPENROUTER PROCESSING\n\n" + sse_body(["न", "मस्ते"])

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=chunked([body[:10], body[10:33], body[33:]]),
        )

    with _client(handler, system_instruction="आप एक सहायक हैं।") as client:
        response = client.post("/v1/chat", json={"messages": [{"role": "user", "content": "नमस्ते"}]})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.content == body

    upstream = json.loads(captured[0].content)
    assert str(captured[0].url) == f"{GATEWAY_URL}/chat/completions"
    assert captured[0].headers["Authorization"] == "Bearer gateway-key"
    assert upstream["stream"] is True
    assert upstream["model"] == "google/gemini-2.5-flash"
    assert upstream["messages"] == [
        {"role": "system", "content": "आप एक सहायक हैं।"},
        {"role": "user", "content": "नमस्ते"},
    ]


def test_chat_accepts_image_parts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=sse_body(["ok"]))

    content = [
        {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
        {"type": "text", "text": "यह क्या है?"},
    ]
    with _client(handler) as client:
        response = client.post("/v1/chat", json={"messages": [{"role": "user", "content": content}]})
    assert response.status_code == 200


@pytest.mark.parametrize(
    ("messages", "expected_error"),
    [
        ([{"role": "user", "content": "hi"}] * 51, TOO_MANY_MESSAGES),
        ([{"role": "user", "content": "a" * 4001}], MESSAGE_TOO_LONG.format(limit=4000)),
        (
            [{"role": "user", "content": [{"type": "text", "text": "b" * 4001}]}],
            MESSAGE_TOO_LONG.format(limit=4000),
        ),
    ],
)
def test_chat_rejects_invalid_messages(messages: list[dict[str, Any]], expected_error: str) -> None:
    with _client(_no_upstream) as client:
        response = client.post("/v1/chat", json={"messages": messages})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == expected_error
    assert body["error_code"] == "VALIDATION_FAILED"


def test_chat_rejects_empty_and_malformed_messages() -> None:
    with _client(_no_upstream) as client:
        empty = client.post("/v1/chat", json={"messages": []})
        malformed = client.post(
            "/v1/chat",
            json={"messages": [{"role": "user", "content": [{"type": "audio"}]}]},
        )
    assert empty.status_code == 400
    assert malformed.status_code == 400


@pytest.mark.parametrize(
    ("upstream_status", "relay_status", "error_code"),
    [
        (429, 429, "RATE_LIMITED"),
        (402, 402, "QUOTA_EXHAUSTED"),
        (500, 502, "UPSTREAM_TRANSIENT"),
    ],
)
def test_chat_maps_upstream_failures(upstream_status: int, relay_status: int, error_code: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(upstream_status, text="upstream failure")

    with _client(handler) as client:
        response = client.post("/v1/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == relay_status
    body = response.json()
    assert body["error_code"] == error_code
    assert body["error"]


def test_chat_maps_connection_failure_to_bad_gateway() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with _client(handler) as client:
        response = client.post("/v1/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert response.status_code == 502
    assert response.json()["error"] == "AI से जुड़ने में समस्या हुई"


def test_missing_gateway_key_is_configuration_error() -> None:
    with _client(_no_upstream, api_key="") as client:
        response = client.post("/v1/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert response.status_code == 500
    assert response.json()["error_code"] == "CONFIGURATION_ERROR"


def test_relay_token_is_enforced_when_configured() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=sse_body(["ok"]))

    payload = {"messages": [{"role": "user", "content": "hi"}]}
    with _client(handler, relay_api_token="secret") as client:
        denied = client.post("/v1/chat", json=payload)
        allowed = client.post("/v1/chat", json=payload, headers={"Authorization": "Bearer secret"})

    assert denied.status_code == 401
    assert denied.json()["error_code"] == "AUTH_FAILED"
    assert allowed.status_code == 200


def test_generate_image_returns_url_and_message() -> None:
    captured: list[Any] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "choices": [
                    {
                        "message": {
                            "content": "यह रही",
                            "images": [{"image_url": {"url": "data:image/png;base64,QUJD"}}],
                        }
                    }
                ]
            },
        )

    with _client(handler) as client:
        response = client.post("/v1/generate-image", json={"prompt": "एक बिल्ली"})

    assert response.status_code == 200
    assert response.json() == {"imageUrl": "data:image/png;base64,QUJD", "message": "यह रही"}
    assert captured[0]["model"] == "google/gemini-2.5-flash-image"
    assert captured[0]["modalities"] == ["image", "text"]
    assert captured[0]["messages"][0]["content"] == "Generate an image: एक बिल्ली"


def test_generate_image_rejects_blank_prompt_and_missing_image() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": "sorry"}}]})

    with _client(handler) as client:
        blank = client.post("/v1/generate-image", json={"prompt": "  "})
        missing = client.post("/v1/generate-image", json={"prompt": "cat"})

    assert blank.status_code == 400
    assert missing.status_code == 502


def test_generate_image_quota_exhausted() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, text="payment required")

    with _client(handler) as client:
        response = client.post("/v1/generate-image", json={"prompt": "cat"})
    assert response.status_code == 402


def _message(**message: Any) -> dict[str, Any]:
    return {"choices": [{"message": message}]}


def test_extract_image_url_supports_gateway_shapes() -> None:
    url = "https://cdn.test/cat.png"
    assert extract_image_url(_message(images=[{"image_url": {"url": url}}])) == url
    assert extract_image_url(_message(content=[{"type": "image_url", "image_url": {"url": url}}])) == url
    assert extract_image_url(_message(content=[{"type": "image", "url": url}])) == url
    assert (
        extract_image_url(_message(content=[{"inline_data": {"mime_type": "image/jpeg", "data": "QUJD"}}]))
        == "data:image/jpeg;base64,QUJD"
    )
    assert extract_image_url(_message(content=[{"inline_data": {"data": "QUJD"}}])) == "data:image/png;base64,QUJD"


def test_extract_image_url_returns_none_without_image() -> None:
    assert extract_image_url({}) is None
    assert extract_image_url(_message(content="text only")) is None
    assert extract_image_url(_message(content=[{"type": "text", "text": "no"}])) is None
    assert extract_image_url({"choices": []}) is None


def test_chat_decompresses_gzip_upstream_stream() -> None:
    body = sse_body(["न", "मस्ते"])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream", "content-encoding": "gzip"},
            content=gzip.compress(body),
        )

    with _client(handler) as client:
        response = client.post("/v1/chat", json={"messages": [{"role": "user", "content": "नमस्ते"}]})

    assert response.status_code == 200
    assert "content-encoding" not in response.headers
    assert response.content == body
