from __future__ import annotations

import uuid
from collections.abc import Callable

from mkhub_chat.app.models import Conversation, ConversationTurn, Role


def new_turn_id() -> str:
    return str(uuid.uuid4())


def reduce_delta(
    conversation: Conversation,
    fragment: str,
    *,
    turn_id_factory: Callable[[], str] = new_turn_id,
) -> Conversation:
    """델타 조각 하나를 대화에 반영한 새 스냅샷을 돌려줘요.

    마지막 턴이 assistant면 내용 끝에 조각을 이어 붙이고, 아니면 조각을
    내용으로 하는 assistant 턴을 새로 추가해요. 원래 스냅샷은 건드리지 않아요.
    """
    last_turn = conversation.last_turn
    if last_turn is not None and last_turn.role == Role.ASSISTANT:
        updated = last_turn.with_content(last_turn.content + fragment)
        return conversation.with_turns((*conversation.turns[:-1], updated))

    return conversation.with_turn_appended(
        ConversationTurn(
            turn_id=turn_id_factory(),
            role=Role.ASSISTANT,
            content=fragment,
        )
    )
