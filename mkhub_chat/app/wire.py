"""대화 턴을 채팅 엔드포인트가 받는 메시지 형식으로 바꿔요.

메시지 내용은 ``TextContent`` 또는 ``PartsContent`` 둘 중 하나예요. 어떤
형태인지 dict 모양을 보고 추측하지 않고, 변환 함수가 두 경우를 모두
명시적으로 다뤄요.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mkhub_chat.app.models import ConversationTurn, Role


@dataclass(slots=True, frozen=True)
class TextPart:
    text: str


@dataclass(slots=True, frozen=True)
class ImagePart:
    url: str


ContentPart = TextPart | ImagePart


@dataclass(slots=True, frozen=True)
class TextContent:
    text: str


@dataclass(slots=True, frozen=True)
class PartsContent:
    parts: tuple[ContentPart, ...]


MessageContent = TextContent | PartsContent


@dataclass(slots=True, frozen=True)
class WireMessage:
    role: str
    content: MessageContent


def content_for_turn(turn: ConversationTurn, *, fallback_text: str) -> MessageContent:
    """턴 하나의 메시지 내용을 만들어요.

    사용자 턴에 인라인 이미지가 있으면 이미지마다 ``image_url`` 파트를 첨부
    순서대로 넣고 마지막에 텍스트 파트를 하나 붙여요. 텍스트 없이 첨부만 있는
    사용자 턴은 ``fallback_text`` 로 텍스트를 채워요. assistant 턴은 첨부와
    상관없이 텍스트만 보내요.
    """
    if turn.role != Role.USER:
        return TextContent(text=turn.content)

    text = turn.content
    if not text.strip() and turn.attachments:
        text = fallback_text

    image_parts = [
        ImagePart(url=attachment.inline_data)
        for attachment in turn.attachments
        if attachment.is_inline_image and attachment.inline_data is not None
    ]
    if not image_parts:
        return TextContent(text=text)

    parts: list[ContentPart] = list(image_parts)
    if text:
        parts.append(TextPart(text=text))
    return PartsContent(parts=tuple(parts))


def build_wire_messages(
    turns: tuple[ConversationTurn, ...] | list[ConversationTurn],
    *,
    fallback_text: str,
) -> list[WireMessage]:
    return [
        WireMessage(role=turn.role.value, content=content_for_turn(turn, fallback_text=fallback_text))
        for turn in turns
    ]


def part_to_wire(part: ContentPart) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, ImagePart):
        return {"type": "image_url", "image_url": {"url": part.url}}
    raise TypeError(f"알 수 없는 콘텐츠 파트예요: {type(part).__name__}")


def content_to_wire(content: MessageContent) -> str | list[dict[str, Any]]:
    if isinstance(content, TextContent):
        return content.text
    if isinstance(content, PartsContent):
        return [part_to_wire(part) for part in content.parts]
    raise TypeError(f"알 수 없는 메시지 내용이에요: {type(content).__name__}")


def content_from_wire(value: object) -> MessageContent:
    """릴레이가 받은 메시지 내용을 다시 태그된 형태로 읽어요."""
    if isinstance(value, str):
        return TextContent(text=value)
    if not isinstance(value, list):
        raise ValueError("메시지 내용은 문자열이나 파트 목록이어야 해요.")

    parts: list[ContentPart] = []
    for item in value:
        if not isinstance(item, dict):
            raise ValueError("콘텐츠 파트 형식이 올바르지 않아요.")
        part_type = item.get("type")
        if part_type == "text" and isinstance(item.get("text"), str):
            parts.append(TextPart(text=item["text"]))
            continue
        image_url = item.get("image_url")
        if part_type == "image_url" and isinstance(image_url, dict) and isinstance(image_url.get("url"), str):
            parts.append(ImagePart(url=image_url["url"]))
            continue
        raise ValueError(f"지원하지 않는 콘텐츠 파트예요: {part_type!r}")
    return PartsContent(parts=tuple(parts))


def message_to_wire(message: WireMessage) -> dict[str, Any]:
    return {"role": message.role, "content": content_to_wire(message.content)}


def content_texts(content: MessageContent) -> list[str]:
    if isinstance(content, TextContent):
        return [content.text]
    return [part.text for part in content.parts if isinstance(part, TextPart)]
