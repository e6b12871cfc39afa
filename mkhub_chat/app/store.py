from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from libs.common.errors import ConflictError, NotFoundError
from libs.common.logging import get_logger
from mkhub_chat.app.models import Conversation, ConversationSummary, ConversationTurn
from mkhub_chat.app.transcript import new_turn_id, reduce_delta

logger = get_logger("mkhub_chat.store")

ConversationListener = Callable[[Conversation], None]


class ConversationNotFoundError(NotFoundError):
    """요청한 대화를 찾을 수 없어요."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__()
        self.conversation_id = conversation_id


class ConversationBusyError(ConflictError):
    """같은 대화에 이미 진행 중인 요청이 있어요."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__()
        self.conversation_id = conversation_id


class InMemoryConversationStore:
    """대화 스냅샷을 보관하고 변경할 때마다 구독자에게 알려요.

    모든 변경은 락 안에서 새 스냅샷으로 통째로 교체하므로, 구독자는 절반만
    바뀐 턴을 볼 수 없어요. 요청이 진행 중인 대화는 ``begin_request`` 로
    표시해서 같은 대화에 두 번째 요청이 끼어들지 못하게 해요.
    """

    def __init__(self, *, turn_id_factory: Callable[[], str] = new_turn_id) -> None:
        self._lock = asyncio.Lock()
        self._conversations: dict[str, Conversation] = {}
        self._in_flight: set[str] = set()
        self._listeners: list[ConversationListener] = []
        self._turn_id_factory = turn_id_factory

    def subscribe(self, listener: ConversationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def create_conversation(self, title: str, *, created_at: datetime | None = None) -> Conversation:
        async with self._lock:
            conversation = Conversation(
                conversation_id=str(uuid.uuid4()),
                title=title,
                created_at=created_at or datetime.now(timezone.utc),
            )
            self._commit(conversation)
            return conversation

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Conversation:
        async with self._lock:
            return self._require(conversation_id)

    async def list_conversations(self) -> list[ConversationSummary]:
        async with self._lock:
            # dict 삽입 순서를 뒤집어서 같은 시각에 만든 대화도 최신 순으로 정렬돼요.
            ordered = sorted(
                reversed(list(self._conversations.values())),
                key=lambda conversation: conversation.created_at,
                reverse=True,
            )
            return [
                ConversationSummary(
                    conversation_id=conversation.conversation_id,
                    title=conversation.title,
                    created_at=conversation.created_at,
                )
                for conversation in ordered
            ]

    async def append_turn(self, conversation_id: str, turn: ConversationTurn) -> Conversation:
        async with self._lock:
            conversation = self._require(conversation_id).with_turn_appended(turn)
            self._commit(conversation)
            return conversation

    async def apply_delta(self, conversation_id: str, fragment: str) -> Conversation:
        async with self._lock:
            conversation = reduce_delta(
                self._require(conversation_id),
                fragment,
                turn_id_factory=self._turn_id_factory,
            )
            self._commit(conversation)
            return conversation

    async def begin_request(self, conversation_id: str) -> None:
        async with self._lock:
            self._require(conversation_id)
            if conversation_id in self._in_flight:
                raise ConversationBusyError(conversation_id)
            self._in_flight.add(conversation_id)

    async def end_request(self, conversation_id: str) -> None:
        async with self._lock:
            self._in_flight.discard(conversation_id)

    async def is_in_flight(self, conversation_id: str) -> bool:
        async with self._lock:
            return conversation_id in self._in_flight

    def _commit(self, conversation: Conversation) -> None:
        self._conversations[conversation.conversation_id] = conversation
        for listener in list(self._listeners):
            try:
                listener(conversation)
            except Exception:
                logger.exception(
                    "conversation_listener_failed",
                    conversation_id=conversation.conversation_id,
                )
