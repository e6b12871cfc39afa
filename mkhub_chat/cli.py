from __future__ import annotations

import asyncio
import os
import sys

import uvicorn

from libs.common.errors import DomainError
from libs.common.logging import configure_logging
from mkhub_chat.app.models import Attachment, Conversation, Role
from mkhub_chat.app.settings import settings
from mkhub_chat.bootstrap.container import build_chat_client

_HELP = (
    "/new  नई चैट\n"
    "/history  पुरानी चैट\n"
    "/open <n>  चैट खोलें\n"
    "/attach <path>  फ़ाइल जोड़ें\n"
    "/image <prompt>  image बनाएं\n"
    "/quit  बाहर निकलें"
)


def _run(*, reload_enabled: bool) -> None:
    host = os.getenv("MKHUB_HOST", settings.host)
    port = int(os.getenv("MKHUB_PORT", str(settings.port)))
    uvicorn.run(
        "mkhub_chat.app.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
    )


def main() -> None:
    _run(reload_enabled=False)


def main_dev() -> None:
    _run(reload_enabled=True)


class _TerminalView:
    """대화 스냅샷이 바뀔 때마다 새로 붙은 assistant 텍스트만 터미널에 찍어요."""

    def __init__(self) -> None:
        self._printed: dict[str, int] = {}

    def __call__(self, conversation: Conversation) -> None:
        last_turn = conversation.last_turn
        if last_turn is None or last_turn.role != Role.ASSISTANT:
            return
        already = self._printed.get(last_turn.turn_id, 0)
        if already == 0:
            sys.stdout.write("\nAI: ")
        sys.stdout.write(last_turn.content[already:])
        sys.stdout.flush()
        self._printed[last_turn.turn_id] = len(last_turn.content)


async def _chat_loop() -> None:
    runtime = build_chat_client(settings)
    runtime.store.subscribe(_TerminalView())
    conversation_id: str | None = None
    pending_attachments: list[Attachment] = []
    print(_HELP)
    try:
        while True:
            line = (await asyncio.to_thread(input, "\n> ")).strip()
            if not line:
                continue
            command, _, argument = line.partition(" ")
            try:
                if command == "/quit":
                    return
                if command == "/new":
                    conversation_id = None
                    continue
                if command == "/history":
                    summaries = await runtime.store.list_conversations()
                    for index, summary in enumerate(summaries, start=1):
                        print(f"{index}. {summary.title} ({summary.created_at:%Y-%m-%d})")
                    continue
                if command == "/open":
                    summaries = await runtime.store.list_conversations()
                    index = int(argument) - 1 if argument.isdigit() else -1
                    if 0 <= index < len(summaries):
                        conversation_id = summaries[index].conversation_id
                    continue
                if command == "/attach":
                    pending_attachments.append(runtime.attachment_encoder.encode_file(argument.strip()))
                    print(f"जोड़ा गया: {pending_attachments[-1].name}")
                    continue
                if command == "/image":
                    outcome = await runtime.orchestrator.generate_image(conversation_id, argument)
                else:
                    outcome = await runtime.orchestrator.send_turn(conversation_id, line, pending_attachments)
                    pending_attachments = []
            except DomainError as exc:
                print(f"त्रुटि: {exc.message}")
                continue

            conversation_id = outcome.conversation_id
            if not outcome.ok:
                print(f"\nत्रुटि: {outcome.message}")
    finally:
        await runtime.aclose()


def chat_main() -> None:
    configure_logging("warning")
    try:
        asyncio.run(_chat_loop())
    except (KeyboardInterrupt, EOFError):
        pass
