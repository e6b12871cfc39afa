from __future__ import annotations

import logging

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MKHUB_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    service_name: str = "mkhub-chat-relay"
    log_level: str = "info"

    # 릴레이 서버
    host: str = "0.0.0.0"
    port: int = 8090
    relay_api_token: str = ""
    gateway_base_url: str = "https://ai.gateway.lovable.dev/v1"
    gateway_api_key: str = ""
    chat_model: str = "google/gemini-2.5-flash"
    image_model: str = "google/gemini-2.5-flash-image"
    # 시스템 지시문 내용은 배포 환경에서 주입해요. 비어 있으면 붙이지 않아요.
    system_instruction: str = ""
    upstream_timeout_seconds: float = 60.0

    # 채팅 클라이언트
    relay_base_url: str = "http://localhost:8090"
    client_token: str = ""
    token_cache_path: str = ".runtime/mkhub-token.json"
    connect_timeout_seconds: float = 10.0
    stream_read_timeout_seconds: float | None = None

    # 메시지 검증 경계
    max_messages: int = Field(default=50, ge=1)
    max_text_chars: int = Field(default=4000, ge=1)

    # 대화 제목과 첨부 전용 입력
    title_max_chars: int = Field(default=30, ge=1)
    attachment_only_title: str = "फ़ाइल से जुड़ा सवाल"
    attachment_fallback_text: str = "कृपया इस फ़ाइल को देखकर जानकारी दें।"
    attachment_max_bytes: int = 10_000_000

    @model_validator(mode="after")
    def _warn_missing_gateway_key(self) -> "Settings":
        """업스트림 게이트웨이 키가 비어 있으면 릴레이가 요청을 전달할 수 없다는 경고를 남겨요."""
        if not self.gateway_api_key:
            logging.getLogger("mkhub_chat.settings").warning(
                "MKHUB_GATEWAY_API_KEY가 비어 있어요. 릴레이는 업스트림 요청을 거부해요."
            )
        return self


settings = Settings()
