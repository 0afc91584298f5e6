"""
Socket.IO transport adapter for the Relaycast gateway.

Maps Socket.IO events onto ``SessionManager`` operations, using the
Socket.IO sid as the session id, and pushes status and chat events back
to the originating connection only.  Handlers never let an exception
escape into python-socketio.
"""

from __future__ import annotations

from typing import Any

import socketio
import structlog
from pydantic import BaseModel, Field, ValidationError

from rc_common.errors import InvalidDestinations
from rc_common.models.relay import RelayState, RelayStatus

from chat.credentials import CredentialContext, TokenRefresher

from gateway.session_manager import STREAM_STATUS_EVENT, SessionManager

logger = structlog.get_logger()


# ── inbound payloads ──


class CredentialsPayload(BaseModel):
    """Browser-supplied OAuth tokens."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    access_token: str | None = Field(default=None, alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")

    @property
    def complete(self) -> bool:
        return bool(self.access_token) and bool(self.refresh_token)


class SetDestinationsPayload(BaseModel):
    """``set_destinations`` body.

    ``destinations`` is left untyped here; ``parse_destinations`` owns
    validation so every malformed shape yields ``InvalidDestinations``.
    """

    model_config = {"extra": "ignore"}

    destinations: Any = Field(default=None, description="Destination URLs.")
    credentials: CredentialsPayload | None = Field(default=None)


class LegacySetUrlsPayload(BaseModel):
    """``set_rtmp_urls`` body sent by older clients."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    urls: Any = Field(default=None)
    access_token: str | None = Field(default=None, alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")

    def normalized(self) -> SetDestinationsPayload:
        return SetDestinationsPayload(
            destinations=self.urls,
            credentials=CredentialsPayload(
                access_token=self.access_token,
                refresh_token=self.refresh_token,
            ),
        )


# ── adapter ──


class SocketTransport:
    """Binds a ``socketio.AsyncServer`` to a ``SessionManager``.

    Args:
        sio: Server whose events are handled.
        refresher: Refresh capability given to per-session credentials.
        manager: Session manager; may be attached later (application
            lifespan) via the ``manager`` attribute.
    """

    def __init__(
        self,
        sio: socketio.AsyncServer,
        *,
        refresher: TokenRefresher | None = None,
        manager: SessionManager | None = None,
    ) -> None:
        self.sio = sio
        self.refresher = refresher
        self.manager = manager
        self._register()

    def _register(self) -> None:
        self.sio.on("connect", self.on_connect)
        self.sio.on("disconnect", self.on_disconnect)
        self.sio.on("set_destinations", self.on_set_destinations)
        self.sio.on("set_rtmp_urls", self.on_set_rtmp_urls)
        self.sio.on("binary_chunk", self.on_binary_chunk)
        self.sio.on("binarystream", self.on_binary_chunk)
        self.sio.on("stop_streaming", self.on_stop_streaming)

    async def emit(self, session_id: str, event: str, payload: Any) -> None:
        """Send *event* to the connection identified by *session_id*."""
        await self.sio.emit(event, payload, to=session_id)

    def credentials_for(self, session_id: str, payload: CredentialsPayload | None) -> CredentialContext | None:
        """Per-session credential, or ``None`` to use the shared default.

        A per-session credential is only built when the browser supplied
        both an access and a refresh token.
        """
        if payload is None or not payload.complete:
            return None
        return CredentialContext.from_tokens(
            payload.access_token,
            payload.refresh_token,
            refresher=self.refresher,
            label=f"session:{session_id}",
        )

    # ── event handlers ──

    async def on_connect(self, sid: str, environ: dict[str, Any], auth: Any | None = None) -> None:
        logger.info("client_connected", session_id=sid)

    async def on_disconnect(self, sid: str, reason: Any | None = None) -> None:
        logger.info("client_disconnected", session_id=sid, reason=str(reason) if reason else None)
        if self.manager is None:
            return
        try:
            await self.manager.on_transport_disconnect(sid)
        except Exception:  # noqa: BLE001
            logger.exception("disconnect_cleanup_failed", session_id=sid)

    async def on_set_destinations(self, sid: str, data: Any = None) -> None:
        try:
            payload = SetDestinationsPayload.model_validate(data if isinstance(data, dict) else {})
        except ValidationError as exc:
            await self._reject(sid, f"Malformed set_destinations payload: {exc.error_count()} error(s)")
            return
        await self._start(sid, payload)

    async def on_set_rtmp_urls(self, sid: str, data: Any = None) -> None:
        try:
            legacy = LegacySetUrlsPayload.model_validate(data if isinstance(data, dict) else {})
        except ValidationError as exc:
            await self._reject(sid, f"Malformed set_rtmp_urls payload: {exc.error_count()} error(s)")
            return
        await self._start(sid, legacy.normalized())

    async def on_binary_chunk(self, sid: str, chunk: Any = None) -> None:
        if self.manager is None:
            return
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            logger.debug("binary_chunk_ignored", session_id=sid, kind=type(chunk).__name__)
            return
        try:
            await self.manager.ingest(sid, bytes(chunk))
        except Exception:  # noqa: BLE001
            logger.exception("binary_chunk_failed", session_id=sid)

    async def on_stop_streaming(self, sid: str, data: Any = None) -> None:
        if self.manager is None:
            return
        try:
            await self.manager.stop(sid)
        except Exception:  # noqa: BLE001
            logger.exception("stop_streaming_failed", session_id=sid)

    # ── internal ──

    async def _start(self, sid: str, payload: SetDestinationsPayload) -> None:
        log = logger.bind(session_id=sid)
        if self.manager is None:
            log.warning("session_manager_unavailable")
            await self._reject(sid, "Server is not ready")
            return
        creds = self.credentials_for(sid, payload.credentials)
        log.info("set_destinations_received", per_session_credentials=creds is not None)
        try:
            await self.manager.start(sid, payload.destinations, creds)
        except InvalidDestinations:
            # failed status already emitted by the manager
            return
        except Exception as exc:  # noqa: BLE001
            log.exception("session_start_failed")
            await self._reject(sid, f"Failed to start session: {exc}")

    async def _reject(self, sid: str, message: str) -> None:
        status = RelayStatus(state=RelayState.FAILED, message=message)
        try:
            await self.emit(sid, STREAM_STATUS_EVENT, status.to_event())
        except Exception:  # noqa: BLE001
            logger.exception("session_emit_failed", session_id=sid, event_name=STREAM_STATUS_EVENT)
