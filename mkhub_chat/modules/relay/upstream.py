from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from libs.common.errors import (
    ConfigurationError,
    QuotaExhaustedError,
    RateLimitError,
    UpstreamTransientError,
)
from libs.common.logging import get_logger

logger = get_logger("mkhub_chat.relay.upstream")

_DEFAULT_IMAGE_MESSAGE = "यहाँ आपकी image है!"


@dataclass(slots=True)
class GeneratedImage:
    image_url: str
    message: str


class GatewayClient:
    """업스트림 AI 게이트웨이를 호출해요. 채팅은 스트림을 열어 그대로 넘겨줘요."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        chat_model: str,
        image_model: str,
        system_instruction: str,
        timeout_seconds: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._chat_model = chat_model
        self._image_model = image_model
        self._system_instruction = system_instruction
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, read=None),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def open_chat_stream(self, messages: list[dict[str, Any]]) -> httpx.Response:
        """스트리밍 응답을 열어서 돌려줘요. 호출자가 다 읽은 뒤 ``aclose`` 해야 해요."""
        upstream_messages = list(messages)
        if self._system_instruction:
            upstream_messages.insert(0, {"role": "system", "content": self._system_instruction})

        request = self._client.build_request(
            "POST",
            f"{self._base_url}/chat/completions",
            json={"model": self._chat_model, "messages": upstream_messages, "stream": True},
            headers=self._headers(),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise UpstreamTransientError() from exc

        if response.is_success:
            return response

        try:
            error_text = (await response.aread()).decode("utf-8", errors="replace")
        finally:
            await response.aclose()
        logger.error("gateway_chat_failed", status_code=response.status_code, error=error_text[:500])
        if response.status_code == 429:
            raise RateLimitError()
        if response.status_code == 402:
            raise QuotaExhaustedError()
        raise UpstreamTransientError()

    async def generate_image(self, prompt: str) -> GeneratedImage:
        try:
            response = await self._client.post(
                f"{self._base_url}/chat/completions",
                json={
                    "model": self._image_model,
                    "messages": [{"role": "user", "content": f"Generate an image: {prompt}"}],
                    "modalities": ["image", "text"],
                },
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise UpstreamTransientError("Image generate करने में समस्या हुई") from exc

        if not response.is_success:
            logger.error("gateway_image_failed", status_code=response.status_code, error=response.text[:500])
            if response.status_code == 429:
                raise RateLimitError()
            if response.status_code == 402:
                raise QuotaExhaustedError("सेवा अस्थायी रूप से अनुपलब्ध है।")
            raise UpstreamTransientError("Image generate करने में समस्या हुई")

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamTransientError("Image generate करने में समस्या हुई") from exc

        image_url = extract_image_url(data)
        if not image_url:
            logger.error("gateway_image_missing_url")
            raise UpstreamTransientError("Image generate नहीं हो पाई, कृपया फिर से कोशिश करें")

        text_content = _first_message(data).get("content")
        message = text_content if isinstance(text_content, str) and text_content else _DEFAULT_IMAGE_MESSAGE
        return GeneratedImage(image_url=image_url, message=message)

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ConfigurationError()
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }


def _first_message(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return {}
    message = choices[0].get("message")
    return message if isinstance(message, dict) else {}


def extract_image_url(data: Any) -> str | None:
    """게이트웨이가 쓰는 여러 응답 모양에서 이미지 URL을 찾아요.

    순서대로 ``message.images[0].image_url.url``, ``image_url`` 타입 파트,
    ``image`` 타입 파트나 ``url`` 필드, ``inline_data`` 파트(data URL로 조립)를 봐요.
    """
    message = _first_message(data)

    images = message.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict):
        image_url = images[0].get("image_url")
        if isinstance(image_url, dict) and isinstance(image_url.get("url"), str):
            return image_url["url"]

    content = message.get("content")
    if not isinstance(content, list):
        return None
    parts = [part for part in content if isinstance(part, dict)]

    for part in parts:
        image_url = part.get("image_url")
        if part.get("type") == "image_url" and isinstance(image_url, dict) and isinstance(image_url.get("url"), str):
            return image_url["url"]

    for part in parts:
        if part.get("type") == "image" or part.get("image_url"):
            image_url = part.get("image_url")
            if isinstance(image_url, dict) and isinstance(image_url.get("url"), str):
                return image_url["url"]
            if isinstance(part.get("url"), str):
                return part["url"]

    for part in parts:
        inline_data = part.get("inline_data")
        if isinstance(inline_data, dict) and isinstance(inline_data.get("data"), str):
            mime_type = inline_data.get("mime_type") or "image/png"
            return f"data:{mime_type};base64,{inline_data['data']}"

    return None
