"""
Application entry point for the Relaycast gateway.

Builds the FastAPI application (health, OAuth callback, metrics), the
Socket.IO server that carries session traffic, and the ASGI app that
routes between them.  The lifespan creates the shared default
credential and the ``SessionManager``, and tears every session down on
shutdown.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import socketio
import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from rc_common.config import Settings, get_settings
from rc_common.logging import configure_logging

from chat.credentials import CredentialContext
from chat.oauth import GoogleOAuthClient

from gateway.health import router as health_router
from gateway.middleware.logging import LoggingMiddleware
from gateway.oauth_callback import router as oauth_router
from gateway.session_manager import SessionManager
from gateway.transport import SocketTransport

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    # ── startup ──
    settings: Settings = app.state.settings
    transport: SocketTransport = app.state.transport
    configure_logging(settings.log_level, json=settings.log_json)

    oauth_client = GoogleOAuthClient.from_settings(settings)
    default_credentials = CredentialContext.from_tokens(
        settings.youtube_access_token,
        settings.youtube_refresh_token,
        refresher=oauth_client,
        shared=True,
        label="default",
    )
    manager = SessionManager(
        transport.emit,
        default_credentials=default_credentials,
        settings=settings,
    )
    transport.refresher = oauth_client
    transport.manager = manager
    app.state.oauth_client = oauth_client
    app.state.session_manager = manager

    logger.info("gateway_starting", host=settings.host, port=settings.port)
    if not settings.youtube_access_token and not settings.youtube_refresh_token:
        logger.warning("youtube_authorization_required", auth_url=oauth_client.authorization_url())

    yield

    # ── shutdown ──
    logger.info("gateway_stopping", active_sessions=len(manager.registry))
    await manager.stop_all()
    transport.manager = None
    await oauth_client.close()


def create_api(settings: Settings, transport: SocketTransport) -> FastAPI:
    """Build the FastAPI application served next to Socket.IO."""
    app = FastAPI(title="Relaycast Gateway", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.transport = transport

    app.include_router(health_router)
    app.include_router(oauth_router)
    app.mount("/metrics", make_asgi_app())

    app.add_middleware(LoggingMiddleware)
    return app


def create_sio(settings: Settings) -> socketio.AsyncServer:
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=settings.cors_origins,
        max_http_buffer_size=settings.socket_max_buffer_bytes,
        logger=False,
        engineio_logger=False,
    )


def create_app(settings: Settings | None = None) -> socketio.ASGIApp:
    """Build and return the combined Socket.IO + FastAPI ASGI application."""
    settings = settings or get_settings()
    sio = create_sio(settings)
    transport = SocketTransport(sio)
    api = create_api(settings, transport)
    # Lifespan events pass through to the FastAPI app.
    return socketio.ASGIApp(sio, other_asgi_app=api)


app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "gateway.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
