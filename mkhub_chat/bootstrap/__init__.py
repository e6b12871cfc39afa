from __future__ import annotations

from mkhub_chat.bootstrap.container import (
    ChatClientComponents,
    RelayComponents,
    build_chat_client,
    build_relay_components,
)
from mkhub_chat.bootstrap.lifespan import create_lifespan

__all__ = [
    "ChatClientComponents",
    "RelayComponents",
    "build_chat_client",
    "build_relay_components",
    "create_lifespan",
]
