from __future__ import annotations

import itertools
import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

import httpx
import pytest

from mkhub_chat.app.auth import StaticTokenProvider
from mkhub_chat.app.store import InMemoryConversationStore
from mkhub_chat.modules.chat.contracts import ChatOptions
from mkhub_chat.modules.chat.orchestrator import RequestOrchestrator

BASE_URL = "http://relay.test"
ATTACHMENT_ONLY_TITLE = "फ़ाइल से जुड़ा सवाल"
ATTACHMENT_FALLBACK_TEXT = "कृपया इस फ़ाइल को देखकर जानकारी दें।"


def _counter_ids(prefix: str) -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


@pytest.fixture
def conversation_store() -> InMemoryConversationStore:
    """각 테스트용으로 새로 만든 빈 대화 저장소예요."""
    return InMemoryConversationStore(turn_id_factory=_counter_ids("a"))


@pytest.fixture
def chat_options() -> ChatOptions:
    return ChatOptions(
        attachment_only_title=ATTACHMENT_ONLY_TITLE,
        attachment_fallback_text=ATTACHMENT_FALLBACK_TEXT,
    )


def delta_frame(fragment: str) -> str:
    """델타 하나를 담은 SSE data 줄을 만들어요."""
    body = {"choices": [{"delta": {"content": fragment}}]}
    return f"data: {json.dumps(body, ensure_ascii=False)}\n"


def sse_body(fragments: Iterable[str], *, terminate: bool = True, trailer: str = "") -> bytes:
    text = "".join(delta_frame(fragment) for fragment in fragments)
    if terminate:
        text += "data: [DONE]\n"
    return (text + trailer).encode("utf-8")


def split_bytes(body: bytes, size: int) -> list[bytes]:
    return [body[index : index + size] for index in range(0, len(body), size)]


async def chunked(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


async def async_items(items: Iterable[Any]) -> AsyncIterator[Any]:
    for item in items:
        yield item


def stream_response(chunks: Iterable[bytes], status_code: int = 200) -> httpx.Response:
    """청크 경계를 그대로 유지하는 스트리밍 응답을 만들어요."""
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream; charset=utf-8"},
        content=chunked(list(chunks)),
    )


def build_orchestrator(
    store: InMemoryConversationStore,
    options: ChatOptions,
    handler: Callable[[httpx.Request], Any],
    *,
    token: str | None = "t-1",
) -> tuple[RequestOrchestrator, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    orchestrator = RequestOrchestrator(
        store=store,
        client=client,
        base_url=BASE_URL,
        token_provider=StaticTokenProvider(token),
        options=options,
        turn_id_factory=_counter_ids("u"),
    )
    return orchestrator, client
