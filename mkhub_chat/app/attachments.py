from __future__ import annotations

import base64
import mimetypes
from pathlib import Path

from libs.common.errors import ValidationError
from mkhub_chat.app.models import Attachment, MediaKind

_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def classify_media(content_type: str | None) -> MediaKind:
    if content_type and content_type.startswith("image/"):
        return MediaKind.IMAGE
    return MediaKind.DOCUMENT


def encode_attachment(name: str, content_type: str | None, data: bytes) -> Attachment:
    """원본 파일을 첨부로 바꿔요. 이미지만 base64 ``data:`` URL로 담아요."""
    media_kind = classify_media(content_type)
    if media_kind != MediaKind.IMAGE:
        return Attachment(name=name, media_kind=media_kind, content_type=content_type)

    encoded = base64.b64encode(data).decode("ascii")
    return Attachment(
        name=name,
        media_kind=media_kind,
        inline_data=f"data:{content_type};base64,{encoded}",
        content_type=content_type,
    )


class AttachmentEncoder:
    def __init__(self, *, max_bytes: int) -> None:
        self._max_bytes = max_bytes

    def encode_file(self, path: str | Path) -> Attachment:
        file_path = Path(path).expanduser()
        if not file_path.is_file():
            raise ValidationError(f"फ़ाइल नहीं मिली: {file_path.name}")

        content_type, _ = mimetypes.guess_type(file_path.name)
        if classify_media(content_type) != MediaKind.IMAGE:
            return encode_attachment(file_path.name, content_type or _DEFAULT_CONTENT_TYPE, b"")

        size = file_path.stat().st_size
        if size > self._max_bytes:
            raise ValidationError(f"फ़ाइल बहुत बड़ी है: {file_path.name}")
        return encode_attachment(file_path.name, content_type, file_path.read_bytes())
