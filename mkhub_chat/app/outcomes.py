from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    RATE_LIMITED = "rateLimited"
    QUOTA_EXHAUSTED = "quotaExhausted"
    UNAUTHORIZED = "unauthorized"
    TRANSPORT_ERROR = "transportError"
    PROTOCOL_ERROR = "protocolError"


# 화면에 바로 띄울 수 있는 기본 메시지예요. 응답 본문에 error 문구가 있으면 그걸 우선해요.
DEFAULT_MESSAGES: dict[OutcomeKind, str] = {
    OutcomeKind.SUCCESS: "जवाब पूरा हुआ।",
    OutcomeKind.RATE_LIMITED: "बहुत ज्यादा requests, कृपया थोड़ी देर बाद कोशिश करें।",
    OutcomeKind.QUOTA_EXHAUSTED: "Credits समाप्त हो गए हैं।",
    OutcomeKind.UNAUTHORIZED: "पहचान सत्यापित नहीं हो सकी, कृपया फिर से लॉगिन करें।",
    OutcomeKind.TRANSPORT_ERROR: "AI से जुड़ने में समस्या हुई",
    OutcomeKind.PROTOCOL_ERROR: "जवाब पढ़ने में समस्या हुई, कृपया फिर से कोशिश करें।",
}

_KIND_BY_STATUS: dict[int, OutcomeKind] = {
    401: OutcomeKind.UNAUTHORIZED,
    402: OutcomeKind.QUOTA_EXHAUSTED,
    429: OutcomeKind.RATE_LIMITED,
}


@dataclass(slots=True, frozen=True)
class RequestOutcome:
    """한 번의 요청이 끝났을 때 호출자에게 한 번만 전달하는 결과예요."""

    kind: OutcomeKind
    message: str
    conversation_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS


def kind_for_status(status_code: int) -> OutcomeKind:
    """2xx가 아닌 상태 코드를 결과 종류로 바꿔요. 따로 매핑이 없으면 전송 오류예요."""
    return _KIND_BY_STATUS.get(status_code, OutcomeKind.TRANSPORT_ERROR)


def build_outcome(
    kind: OutcomeKind,
    *,
    conversation_id: str | None,
    message: str | None = None,
) -> RequestOutcome:
    text = message.strip() if isinstance(message, str) else ""
    return RequestOutcome(
        kind=kind,
        message=text or DEFAULT_MESSAGES[kind],
        conversation_id=conversation_id,
    )
