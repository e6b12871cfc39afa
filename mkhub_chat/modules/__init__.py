from __future__ import annotations

from fastapi import APIRouter


def build_api_router() -> APIRouter:
    from mkhub_chat.modules.relay.api import router as relay_router

    api_router = APIRouter(prefix="/v1")
    api_router.include_router(relay_router)
    return api_router


__all__ = ["build_api_router"]
