from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mkhub_chat.app.settings import Settings
from mkhub_chat.bootstrap.container import RelayComponents, build_relay_components


def create_lifespan(settings: Settings, *, components: RelayComponents | None = None):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        runtime = components or build_relay_components(settings)
        app.state.gateway = runtime.gateway
        app.state.settings = settings

        try:
            yield
        finally:
            await runtime.gateway.aclose()

    return lifespan
