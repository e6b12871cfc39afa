from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from libs.common.errors import DomainError
from libs.common.logging import get_logger

logger = get_logger("mkhub_chat.stream.event_decoder")

DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"
DONE_SENTINEL = "[DONE]"


class StreamEventKind(str, Enum):
    DATA = "data"
    TERMINATOR = "terminator"
    COMMENT = "comment"
    BLANK = "blank"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class StreamEvent:
    kind: StreamEventKind
    payload: Any | None = None


class StreamProtocolError(DomainError):
    """재시도 후에도 이벤트 페이로드를 해석하지 못했어요."""

    def __init__(self, message: str = "जवाब पढ़ने में समस्या हुई, कृपया फिर से कोशिश करें।") -> None:
        super().__init__("STREAM_PROTOCOL", message, retryable=False)


class EventDecoder:
    """프레임 하나를 이벤트로 분류하고 data 줄의 JSON을 해석해요.

    JSON 해석에 실패한 data 줄은 한 번만 보관해요. 다음 프레임이 오면
    줄바꿈을 사이에 두고 이어 붙여 다시 해석하고, 그래도 실패하면
    ``StreamProtocolError`` 를 던져요. 줄 하나당 재시도는 최대 한 번이에요.
    """

    def __init__(self) -> None:
        self._pending: str | None = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def feed(self, frame: str) -> StreamEvent | None:
        if self._pending is not None:
            return self._retry_pending(frame)

        if frame == "":
            return StreamEvent(kind=StreamEventKind.BLANK)
        if frame.startswith(COMMENT_PREFIX):
            return StreamEvent(kind=StreamEventKind.COMMENT)
        if not frame.startswith(DATA_PREFIX):
            return StreamEvent(kind=StreamEventKind.UNKNOWN)

        candidate = frame[len(DATA_PREFIX) :].strip()
        if candidate == DONE_SENTINEL:
            return StreamEvent(kind=StreamEventKind.TERMINATOR)
        if not candidate:
            # 빈 data 줄은 keep-alive로 보고 페이로드 없이 넘겨요.
            return StreamEvent(kind=StreamEventKind.DATA)

        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError:
            logger.debug("event_payload_incomplete", length=len(candidate))
            self._pending = candidate
            return None
        return StreamEvent(kind=StreamEventKind.DATA, payload=payload)

    def finish(self) -> None:
        """스트림이 닫혔을 때 호출해요. 끝내 이어지지 못한 페이로드가 있으면 실패로 처리해요."""
        if self._pending is not None:
            self._pending = None
            logger.warning("event_payload_unresolved_at_close")
            raise StreamProtocolError()

    def _retry_pending(self, frame: str) -> StreamEvent:
        joined = f"{self._pending}\n{frame}"
        self._pending = None
        try:
            # 문자열 값 안에서 끊긴 줄도 복원하도록 제어 문자를 허용해요.
            payload = json.loads(joined, strict=False)
        except json.JSONDecodeError as exc:
            logger.warning("event_payload_unrecoverable", length=len(joined))
            raise StreamProtocolError() from exc
        return StreamEvent(kind=StreamEventKind.DATA, payload=payload)


async def iter_events(frames: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """종료 센티널을 만나면 그 뒤 프레임은 더 당겨오지 않고 멈춰요."""
    decoder = EventDecoder()
    async for frame in frames:
        event = decoder.feed(frame)
        if event is None:
            continue
        yield event
        if event.kind == StreamEventKind.TERMINATOR:
            return
    decoder.finish()
