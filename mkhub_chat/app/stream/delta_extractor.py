from __future__ import annotations

from typing import Any


def extract_delta(payload: Any) -> str | None:
    """``choices[0].delta.content`` 가 비어 있지 않은 문자열일 때만 돌려줘요."""
    if not isinstance(payload, dict):
        return None

    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None

    first_choice = choices[0]
    if not isinstance(first_choice, dict):
        return None

    delta = first_choice.get("delta")
    if not isinstance(delta, dict):
        return None

    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None
