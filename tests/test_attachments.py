from __future__ import annotations

from pathlib import Path

import pytest

from libs.common.errors import ValidationError
from mkhub_chat.app.attachments import AttachmentEncoder, classify_media, encode_attachment
from mkhub_chat.app.models import MediaKind


def test_classify_media() -> None:
    assert classify_media("image/png") == MediaKind.IMAGE
    assert classify_media("application/pdf") == MediaKind.DOCUMENT
    assert classify_media(None) == MediaKind.DOCUMENT


def test_encode_image_builds_data_url() -> None:
    attachment = encode_attachment("a.png", "image/png", b"\x89PNG")
    assert attachment.inline_data == "data:image/png;base64,iVBORw=="
    assert attachment.is_inline_image


def test_encode_document_keeps_metadata_only() -> None:
    attachment = encode_attachment("a.pdf", "application/pdf", b"%PDF")
    assert attachment.inline_data is None
    assert attachment.media_kind == MediaKind.DOCUMENT
    assert not attachment.is_inline_image


def test_encode_file_reads_image(tmp_path: Path) -> None:
    image = tmp_path / "photo.png"
    image.write_bytes(b"abc")
    attachment = AttachmentEncoder(max_bytes=1024).encode_file(image)
    assert attachment.name == "photo.png"
    assert attachment.inline_data == "data:image/png;base64,YWJj"


def test_encode_file_document_has_no_inline_data(tmp_path: Path) -> None:
    document = tmp_path / "notes.pdf"
    document.write_bytes(b"%PDF-1.4")
    attachment = AttachmentEncoder(max_bytes=1).encode_file(str(document))
    assert attachment.inline_data is None
    assert attachment.content_type == "application/pdf"


def test_encode_file_rejects_missing_and_oversized(tmp_path: Path) -> None:
    encoder = AttachmentEncoder(max_bytes=2)
    with pytest.raises(ValidationError):
        encoder.encode_file(tmp_path / "missing.png")

    image = tmp_path / "big.png"
    image.write_bytes(b"abc")
    with pytest.raises(ValidationError):
        encoder.encode_file(image)
