from __future__ import annotations

from fastapi import FastAPI

from libs.common.http_handlers import register_exception_handlers
from libs.common.logging import configure_logging
from mkhub_chat.app.settings import Settings, settings
from mkhub_chat.bootstrap.container import RelayComponents
from mkhub_chat.bootstrap.lifespan import create_lifespan
from mkhub_chat.modules import build_api_router


def create_app(app_settings: Settings, *, components: RelayComponents | None = None) -> FastAPI:
    configure_logging(app_settings.log_level)
    app = FastAPI(
        title=app_settings.service_name,
        lifespan=create_lifespan(app_settings, components=components),
    )
    app.include_router(build_api_router())
    register_exception_handlers(app, "mkhub_chat.errors")
    return app


app = create_app(settings)
