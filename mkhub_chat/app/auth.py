from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from libs.common.logging import get_logger

logger = get_logger("mkhub_chat.auth")


class TokenProvider(Protocol):
    def get_token(self) -> str | None: ...


class StaticTokenProvider:
    def __init__(self, token: str | None) -> None:
        self._token = token or None

    def get_token(self) -> str | None:
        return self._token


class FileTokenProvider:
    """로그인 흐름이 남긴 토큰 캐시 파일에서 bearer 토큰을 읽어요.

    파일이 없거나 깨져 있으면 익명 접근으로 보고 ``None`` 을 돌려줘요.
    만료 여부는 서버가 401로 알려줘요.
    """

    def __init__(self, *, cache_path: str, workspace_root: str = ".") -> None:
        self._cache_path = cache_path
        self._workspace_root = workspace_root

    def cache_file_path(self) -> Path:
        candidate = Path(self._cache_path).expanduser()
        if candidate.is_absolute():
            return candidate
        return (Path(self._workspace_root).expanduser() / candidate).resolve()

    def get_token(self) -> str | None:
        cache_path = self.cache_file_path()
        if not cache_path.exists():
            return None
        try:
            payload = json.loads(cache_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("token_cache_unreadable", cache_path=str(cache_path))
            return None
        return _extract_token(payload)

    def store_token(self, token: str) -> None:
        cache_path = self.cache_file_path()
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(json.dumps({"token": token}, ensure_ascii=True), encoding="utf-8")


class ChainedTokenProvider:
    def __init__(self, providers: list[TokenProvider]) -> None:
        self._providers = providers

    def get_token(self) -> str | None:
        for provider in self._providers:
            token = provider.get_token()
            if token:
                return token
        return None


def _extract_token(body: object) -> str | None:
    if not isinstance(body, dict):
        return None

    for key in ("token", "access_token"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value

    nested = body.get("session")
    if isinstance(nested, dict):
        return _extract_token(nested)

    return None
