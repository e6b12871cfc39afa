from __future__ import annotations

from typing import Any

from libs.common.errors import ValidationError
from mkhub_chat.app.wire import content_from_wire, content_texts

TOO_MANY_MESSAGES = "बहुत सारे संदेश हैं, कृपया नई चैट शुरू करें।"
MESSAGE_TOO_LONG = "संदेश बहुत लंबा है, कृपया {limit} अक्षरों से छोटा लिखें।"
INVALID_MESSAGE = "संदेश का प्रारूप सही नहीं है।"


def validate_chat_messages(
    messages: list[dict[str, Any]],
    *,
    max_messages: int,
    max_text_chars: int,
) -> None:
    """릴레이로 들어온 메시지 목록이 개수와 길이 제한을 지키는지 확인해요."""
    if not messages:
        raise ValidationError(INVALID_MESSAGE)
    if len(messages) > max_messages:
        raise ValidationError(TOO_MANY_MESSAGES)

    for message in messages:
        try:
            content = content_from_wire(message.get("content"))
        except ValueError as exc:
            raise ValidationError(INVALID_MESSAGE) from exc
        for text in content_texts(content):
            if len(text) > max_text_chars:
                raise ValidationError(MESSAGE_TOO_LONG.format(limit=max_text_chars))
