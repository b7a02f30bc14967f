"""FastAPI application factory and entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import random

from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from insider_api.api.routers.rooms import router as rooms_router
from insider_api.auth.http import handle_http_exception
from insider_api.auth.http import handle_request_validation_error
from insider_api.core.config import Settings
from insider_api.core.config import load_settings
from insider_api.core.logging import configure_logging
from insider_api.ws.routers import router as ws_router
from insider_engine.clock import Clock
from insider_engine.clock import utc_now
from insider_engine.store import RoomStore
from insider_engine.store import SqliteStore
from insider_engine.topics import ChatCompletionTopicProvider
from insider_engine.topics import StaticTopicProvider
from insider_engine.topics import TopicProvider

logger = logging.getLogger(__name__)


def build_topic_provider(settings: Settings) -> TopicProvider:
    if settings.insider_topic_provider == "chat":
        return ChatCompletionTopicProvider(
            endpoint=settings.insider_chat_endpoint,
            model=settings.insider_chat_model,
            api_key=settings.insider_chat_api_key,
            timeout_seconds=settings.insider_chat_timeout_seconds,
        )
    return StaticTopicProvider()


def create_app(
    settings: Settings | None = None,
    *,
    store: RoomStore | None = None,
    topic_provider: TopicProvider | None = None,
    clock: Clock = utc_now,
    rng: random.Random | None = None,
) -> FastAPI:
    """Build the service; collaborators not passed in are derived from settings."""
    app_settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(app_settings.insider_log_level)
        owned_store: SqliteStore | None = None
        if store is None:
            owned_store = SqliteStore(app_settings.insider_sqlite_path)
            app.state.store = owned_store
        logger.info(
            "room service starting env=%s topics=%s",
            app_settings.insider_app_env,
            app_settings.insider_topic_provider,
        )
        try:
            yield
        finally:
            if owned_store is not None:
                owned_store.close()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = app_settings
    app.state.store = store
    app.state.topic_provider = topic_provider or build_topic_provider(app_settings)
    app.state.clock = clock
    app.state.rng = rng or random.SystemRandom()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception_route(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Adapter used by FastAPI exception handling."""
        return await handle_http_exception(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_route(request: Request, exc: RequestValidationError) -> JSONResponse:
        return await handle_request_validation_error(request, exc)

    app.include_router(rooms_router)
    app.include_router(ws_router)
    return app


def main() -> None:
    """Run the service with uvicorn using environment settings."""
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.insider_app_host, port=settings.insider_app_port)


__all__ = [
    "build_topic_provider",
    "create_app",
    "main",
]
