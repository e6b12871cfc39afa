from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ChatOptions:
    attachment_only_title: str
    attachment_fallback_text: str
    title_max_chars: int = 30
    chat_path: str = "/v1/chat"
    image_path: str = "/v1/generate-image"
    generated_image_name: str = "generated-image.png"


def derive_title(text: str, *, max_chars: int, placeholder: str) -> str:
    """첫 입력으로 대화 제목을 만들어요. 첨부만 있고 글이 없으면 고정 제목을 써요."""
    stripped = text.strip()
    if not stripped:
        return placeholder
    if len(stripped) <= max_chars:
        return stripped
    return f"{stripped[:max_chars]}..."
