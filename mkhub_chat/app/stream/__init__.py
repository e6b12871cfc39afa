from __future__ import annotations

from mkhub_chat.app.stream.delta_extractor import extract_delta
from mkhub_chat.app.stream.event_decoder import (
    EventDecoder,
    StreamEvent,
    StreamEventKind,
    StreamProtocolError,
    iter_events,
)
from mkhub_chat.app.stream.frame_splitter import FrameSplitter, iter_frames

__all__ = [
    "EventDecoder",
    "FrameSplitter",
    "StreamEvent",
    "StreamEventKind",
    "StreamProtocolError",
    "extract_delta",
    "iter_events",
    "iter_frames",
]
