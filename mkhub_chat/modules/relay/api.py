from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Literal

import httpx
from fastapi import APIRouter, Header, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from libs.common.errors import AuthenticationError, ValidationError
from libs.common.logging import get_logger
from mkhub_chat.app.settings import Settings, settings
from mkhub_chat.modules.relay.upstream import GatewayClient
from mkhub_chat.modules.relay.validation import validate_chat_messages

router = APIRouter()
logger = get_logger("mkhub_chat.relay.api")


class RelayMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str | list[dict[str, Any]]


class ChatRelayRequest(BaseModel):
    messages: list[RelayMessage] = Field(default_factory=list)


class GenerateImageRequest(BaseModel):
    prompt: str = ""


class GenerateImageResponse(BaseModel):
    imageUrl: str
    message: str


def get_settings(request: Request) -> Settings:
    configured = getattr(request.app.state, "settings", None)
    if isinstance(configured, Settings):
        return configured
    return settings


def get_gateway(request: Request) -> GatewayClient:
    return request.app.state.gateway  # type: ignore[no-any-return]


def require_auth(request: Request, authorization: str) -> None:
    expected = get_settings(request).relay_api_token
    if expected and authorization != f"Bearer {expected}":
        raise AuthenticationError()


@router.post("/chat")
async def relay_chat(
    request: Request,
    req: ChatRelayRequest,
    authorization: str = Header(default=""),
) -> StreamingResponse:
    require_auth(request, authorization)
    app_settings = get_settings(request)
    messages = [message.model_dump() for message in req.messages]
    validate_chat_messages(
        messages,
        max_messages=app_settings.max_messages,
        max_text_chars=app_settings.max_text_chars,
    )

    upstream = await get_gateway(request).open_chat_stream(messages)
    logger.info("chat_relay_opened", message_count=len(messages))
    return StreamingResponse(
        _relay_body(upstream),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.post("/generate-image")
async def relay_generate_image(
    request: Request,
    req: GenerateImageRequest,
    authorization: str = Header(default=""),
) -> GenerateImageResponse:
    require_auth(request, authorization)
    prompt = req.prompt.strip()
    if not prompt:
        raise ValidationError("कृपया image के लिए description दें")

    generated = await get_gateway(request).generate_image(prompt)
    logger.info("image_relay_completed")
    return GenerateImageResponse(imageUrl=generated.image_url, message=generated.message)


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


async def _relay_body(upstream: httpx.Response) -> AsyncIterator[bytes]:
    try:
        # Content-Encoding 헤더는 넘기지 않으므로 압축을 풀어서 보내요.
        async for chunk in upstream.aiter_bytes():
            yield chunk
    except httpx.HTTPError as exc:
        # 헤더를 이미 보낸 뒤라 상태 코드를 바꿀 수 없어요. 스트림을 끊어서 클라이언트가 전송 오류로 처리하게 해요.
        logger.warning("chat_relay_upstream_broken", error=type(exc).__name__)
        raise
    finally:
        await upstream.aclose()
