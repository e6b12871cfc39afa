from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MediaKind(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"


@dataclass(slots=True, frozen=True)
class Attachment:
    """턴에 딸린 첨부파일이에요.

    ``inline_data`` 는 자체 완결된 ``data:`` URL이에요. 값이 있으면 미리보기를
    그대로 그릴 수 있고, 없으면 이름과 종류만 가진 메타데이터 첨부예요.
    원격 주소로만 받은 이미지는 ``remote_url`` 에 메타데이터로 남겨요.
    """

    name: str
    media_kind: MediaKind
    inline_data: str | None = None
    content_type: str | None = None
    remote_url: str | None = None

    @property
    def is_inline_image(self) -> bool:
        return self.media_kind == MediaKind.IMAGE and self.inline_data is not None


@dataclass(slots=True, frozen=True)
class ConversationTurn:
    turn_id: str
    role: Role
    content: str
    attachments: tuple[Attachment, ...] = ()

    def with_content(self, content: str) -> "ConversationTurn":
        return ConversationTurn(
            turn_id=self.turn_id,
            role=self.role,
            content=content,
            attachments=self.attachments,
        )


@dataclass(slots=True, frozen=True)
class Conversation:
    conversation_id: str
    title: str
    created_at: datetime
    turns: tuple[ConversationTurn, ...] = field(default_factory=tuple)

    @property
    def last_turn(self) -> ConversationTurn | None:
        return self.turns[-1] if self.turns else None

    def with_turns(self, turns: tuple[ConversationTurn, ...]) -> "Conversation":
        return Conversation(
            conversation_id=self.conversation_id,
            title=self.title,
            created_at=self.created_at,
            turns=turns,
        )

    def with_turn_appended(self, turn: ConversationTurn) -> "Conversation":
        return self.with_turns((*self.turns, turn))


@dataclass(slots=True, frozen=True)
class ConversationSummary:
    """히스토리 목록에 보여줄 대화 요약이에요."""

    conversation_id: str
    title: str
    created_at: datetime
