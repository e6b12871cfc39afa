from __future__ import annotations

from dataclasses import dataclass

import httpx

from mkhub_chat.app.attachments import AttachmentEncoder
from mkhub_chat.app.auth import ChainedTokenProvider, FileTokenProvider, StaticTokenProvider
from mkhub_chat.app.settings import Settings
from mkhub_chat.app.store import InMemoryConversationStore
from mkhub_chat.modules.chat.contracts import ChatOptions
from mkhub_chat.modules.chat.orchestrator import RequestOrchestrator
from mkhub_chat.modules.relay.upstream import GatewayClient


@dataclass(slots=True)
class RelayComponents:
    gateway: GatewayClient


@dataclass(slots=True)
class ChatClientComponents:
    store: InMemoryConversationStore
    http_client: httpx.AsyncClient
    orchestrator: RequestOrchestrator
    attachment_encoder: AttachmentEncoder

    async def aclose(self) -> None:
        await self.http_client.aclose()


def build_relay_components(settings: Settings) -> RelayComponents:
    gateway = GatewayClient(
        base_url=settings.gateway_base_url,
        api_key=settings.gateway_api_key,
        chat_model=settings.chat_model,
        image_model=settings.image_model,
        system_instruction=settings.system_instruction,
        timeout_seconds=settings.upstream_timeout_seconds,
    )
    return RelayComponents(gateway=gateway)


def build_chat_options(settings: Settings) -> ChatOptions:
    return ChatOptions(
        attachment_only_title=settings.attachment_only_title,
        attachment_fallback_text=settings.attachment_fallback_text,
        title_max_chars=settings.title_max_chars,
    )


def build_chat_client(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ChatClientComponents:
    # 스트림 읽기는 기본적으로 무제한이에요. 시간 제한은 호출자가 요청을 취소해서 걸어요.
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            settings.connect_timeout_seconds,
            read=settings.stream_read_timeout_seconds,
        ),
        transport=transport,
    )
    store = InMemoryConversationStore()
    token_provider = ChainedTokenProvider(
        [
            StaticTokenProvider(settings.client_token),
            FileTokenProvider(cache_path=settings.token_cache_path),
        ]
    )
    orchestrator = RequestOrchestrator(
        store=store,
        client=http_client,
        base_url=settings.relay_base_url,
        token_provider=token_provider,
        options=build_chat_options(settings),
    )
    return ChatClientComponents(
        store=store,
        http_client=http_client,
        orchestrator=orchestrator,
        attachment_encoder=AttachmentEncoder(max_bytes=settings.attachment_max_bytes),
    )
