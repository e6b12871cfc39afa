from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator

from libs.common.logging import get_logger

logger = get_logger("mkhub_chat.stream.frame_splitter")


class FrameSplitter:
    """네트워크에서 받은 텍스트 조각을 완결된 줄(프레임) 단위로 잘라요.

    조각이 줄 중간에서 끝나면 남은 부분을 보관했다가 다음 조각 앞에 붙여서
    다시 훑어요. 줄바꿈 문자와 끝의 ``\\r`` 하나는 떼어내요.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: str) -> list[str]:
        if not chunk:
            return []

        self._buffer += chunk
        frames: list[str] = []
        while True:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break
            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1 :]
            if line.endswith("\r"):
                line = line[:-1]
            frames.append(line)
        return frames

    def close(self) -> None:
        """스트림이 닫힐 때 호출해요. 줄바꿈 없이 남은 조각은 버려요."""
        if self._buffer:
            logger.debug("frame_splitter_discarded_partial_line", length=len(self._buffer))
        self._buffer = ""


async def iter_frames(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    splitter = FrameSplitter()
    async for chunk in chunks:
        for frame in splitter.feed(chunk):
            yield frame
    splitter.close()
