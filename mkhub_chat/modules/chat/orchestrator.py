from __future__ import annotations

import asyncio
import json
import uuid
from collections.abc import Callable, Sequence
from contextlib import aclosing
from typing import Any

import httpx

from libs.common.errors import ValidationError
from libs.common.logging import get_logger
from mkhub_chat.app.auth import TokenProvider
from mkhub_chat.app.models import Attachment, ConversationTurn, MediaKind, Role
from mkhub_chat.app.outcomes import OutcomeKind, RequestOutcome, build_outcome, kind_for_status
from mkhub_chat.app.store import InMemoryConversationStore
from mkhub_chat.app.stream import StreamEventKind, StreamProtocolError, extract_delta, iter_events, iter_frames
from mkhub_chat.app.wire import build_wire_messages, message_to_wire
from mkhub_chat.modules.chat.contracts import ChatOptions, derive_title

logger = get_logger("mkhub_chat.orchestrator")


class RequestOrchestrator:
    """요청 한 건의 생명주기를 맡아요.

    대화를 고르고(없으면 만들고), 보낼 메시지를 조립하고, 사용자 턴을 먼저
    기록한 뒤 스트림을 읽어서 델타를 대화에 반영해요. 결과는 언제나
    ``RequestOutcome`` 하나로 돌려주고, 이미 반영한 내용은 되돌리지 않아요.
    같은 대화에 요청이 진행 중이면 ``ConversationBusyError`` 로 거절해요.
    """

    def __init__(
        self,
        *,
        store: InMemoryConversationStore,
        client: httpx.AsyncClient,
        base_url: str,
        token_provider: TokenProvider,
        options: ChatOptions,
        turn_id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._options = options
        self._turn_id_factory = turn_id_factory or (lambda: str(uuid.uuid4()))

    async def send_turn(
        self,
        conversation_id: str | None,
        text: str,
        attachments: Sequence[Attachment] = (),
    ) -> RequestOutcome:
        if not text.strip() and not attachments:
            raise ValidationError("कृपया कुछ लिखें या फ़ाइल जोड़ें।")

        conversation_id = await self._ensure_conversation(conversation_id, text, attachments)
        await self._store.begin_request(conversation_id)
        try:
            conversation = await self._store.get_conversation(conversation_id)
            user_turn = ConversationTurn(
                turn_id=self._turn_id_factory(),
                role=Role.USER,
                content=text,
                attachments=tuple(attachments),
            )
            messages = build_wire_messages(
                (*conversation.turns, user_turn),
                fallback_text=self._options.attachment_fallback_text,
            )
            await self._store.append_turn(conversation_id, user_turn)
            payload = {"messages": [message_to_wire(message) for message in messages]}
            return await self._stream_reply(conversation_id, payload)
        finally:
            await self._store.end_request(conversation_id)

    async def generate_image(self, conversation_id: str | None, prompt: str) -> RequestOutcome:
        if not prompt.strip():
            raise ValidationError("कृपया image के लिए description दें")

        conversation_id = await self._ensure_conversation(conversation_id, prompt, ())
        await self._store.begin_request(conversation_id)
        try:
            await self._store.append_turn(
                conversation_id,
                ConversationTurn(turn_id=self._turn_id_factory(), role=Role.USER, content=prompt),
            )
            headers = await self._headers(accept="application/json")
            try:
                response = await self._client.post(
                    self._url(self._options.image_path),
                    json={"prompt": prompt},
                    headers=headers,
                )
            except httpx.HTTPError as exc:
                logger.warning(
                    "image_request_transport_failed",
                    conversation_id=conversation_id,
                    error=type(exc).__name__,
                )
                return build_outcome(OutcomeKind.TRANSPORT_ERROR, conversation_id=conversation_id)

            if not response.is_success:
                return self._failure_outcome(conversation_id, response.status_code, response.content)

            body = _json_or_none(response.content)
            image_url = body.get("imageUrl") if isinstance(body, dict) else None
            if not isinstance(image_url, str) or not image_url:
                logger.warning("image_response_missing_url", conversation_id=conversation_id)
                return build_outcome(OutcomeKind.PROTOCOL_ERROR, conversation_id=conversation_id)

            message = body.get("message") if isinstance(body, dict) else None
            await self._store.append_turn(
                conversation_id,
                ConversationTurn(
                    turn_id=self._turn_id_factory(),
                    role=Role.ASSISTANT,
                    content=message if isinstance(message, str) else "",
                    attachments=(_generated_image(self._options.generated_image_name, image_url),),
                ),
            )
            logger.info("image_generated", conversation_id=conversation_id)
            return build_outcome(OutcomeKind.SUCCESS, conversation_id=conversation_id)
        finally:
            await self._store.end_request(conversation_id)

    async def _ensure_conversation(
        self,
        conversation_id: str | None,
        text: str,
        attachments: Sequence[Attachment],
    ) -> str:
        if conversation_id is not None:
            existing = await self._store.get_conversation(conversation_id)
            return existing.conversation_id

        title = derive_title(
            text,
            max_chars=self._options.title_max_chars,
            placeholder=self._options.attachment_only_title,
        )
        created = await self._store.create_conversation(title)
        logger.info(
            "conversation_created",
            conversation_id=created.conversation_id,
            attachment_count=len(attachments),
        )
        return created.conversation_id

    async def _stream_reply(self, conversation_id: str, payload: dict[str, Any]) -> RequestOutcome:
        fragment_count = 0
        terminated = False
        headers = await self._headers(accept="text/event-stream")
        try:
            async with self._client.stream(
                "POST",
                self._url(self._options.chat_path),
                json=payload,
                headers=headers,
            ) as response:
                if not response.is_success:
                    body = await response.aread()
                    return self._failure_outcome(conversation_id, response.status_code, body)
                if response.status_code == 204:
                    logger.warning("chat_response_without_body", conversation_id=conversation_id)
                    return build_outcome(OutcomeKind.TRANSPORT_ERROR, conversation_id=conversation_id)

                async with (
                    aclosing(iter_frames(response.aiter_text())) as frames,
                    aclosing(iter_events(frames)) as events,
                ):
                    async for event in events:
                        if event.kind == StreamEventKind.TERMINATOR:
                            terminated = True
                            break
                        if event.kind != StreamEventKind.DATA:
                            continue
                        fragment = extract_delta(event.payload)
                        if fragment is None:
                            continue
                        await self._store.apply_delta(conversation_id, fragment)
                        fragment_count += 1
        except StreamProtocolError as exc:
            logger.warning(
                "chat_stream_protocol_error",
                conversation_id=conversation_id,
                fragment_count=fragment_count,
            )
            return build_outcome(OutcomeKind.PROTOCOL_ERROR, conversation_id=conversation_id, message=exc.message)
        except httpx.HTTPError as exc:
            logger.warning(
                "chat_stream_transport_failed",
                conversation_id=conversation_id,
                fragment_count=fragment_count,
                error=type(exc).__name__,
            )
            return build_outcome(OutcomeKind.TRANSPORT_ERROR, conversation_id=conversation_id)
        except asyncio.CancelledError:
            logger.info("chat_stream_cancelled", conversation_id=conversation_id, fragment_count=fragment_count)
            raise

        logger.info(
            "chat_stream_completed",
            conversation_id=conversation_id,
            fragment_count=fragment_count,
            terminated_by_sentinel=terminated,
        )
        return build_outcome(OutcomeKind.SUCCESS, conversation_id=conversation_id)

    def _failure_outcome(self, conversation_id: str, status_code: int, body: bytes) -> RequestOutcome:
        kind = kind_for_status(status_code)
        parsed = _json_or_none(body)
        server_message = parsed.get("error") if isinstance(parsed, dict) else None
        logger.warning(
            "chat_request_rejected",
            conversation_id=conversation_id,
            status_code=status_code,
            outcome=kind.value,
        )
        return build_outcome(
            kind,
            conversation_id=conversation_id,
            message=server_message if isinstance(server_message, str) else None,
        )

    async def _headers(self, *, accept: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": accept}
        # 토큰 캐시 파일 읽기가 이벤트 루프를 막지 않도록 요청마다 한 번 스레드에서 읽어요.
        token = await asyncio.to_thread(self._token_provider.get_token)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"


def _json_or_none(body: bytes) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def _data_url_content_type(url: str) -> str | None:
    header, _, _ = url[len("data:") :].partition(",")
    content_type = header.split(";", 1)[0]
    return content_type or None


def _generated_image(name: str, image_url: str) -> Attachment:
    """``data:`` URL만 인라인 데이터로 담고, 원격 URL은 메타데이터로만 남겨요."""
    if image_url.startswith("data:"):
        return Attachment(
            name=name,
            media_kind=MediaKind.IMAGE,
            inline_data=image_url,
            content_type=_data_url_content_type(image_url),
        )
    return Attachment(name=name, media_kind=MediaKind.IMAGE, remote_url=image_url)
