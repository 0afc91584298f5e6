"""
Session manager for the Relaycast gateway.

Coordinates one relay supervisor and one chat subsystem per transport
session.  ``start``, ``stop`` and the write half of ``ingest`` serialize on
that session's lock; ``stop`` marks the session as stopping before it
waits for the lock, so any ``ingest`` queued behind it becomes a no-op.
Sessions are independent: nothing here blocks across sessions apart
from brief registry mutations.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from functools import partial
from typing import Any

import structlog

from rc_common.config import Settings, get_settings
from rc_common.errors import InvalidDestinations
from rc_common.models.chat import ChatMessage, ChatStatus
from rc_common.models.relay import RelayState, RelayStatus

from chat.credentials import CredentialContext
from chat.subsystem import ChatSubsystem
from chat.youtube_client import YouTubeClient
from relay.command import EncoderProfile
from relay.destinations import DestinationSpec, parse_destinations
from relay.supervisor import RelaySupervisor

from gateway.registry import SessionRegistry

logger = structlog.get_logger()

Emit = Callable[[str, str, Any], Awaitable[None]]
RelayFactory = Callable[[str, Callable[[RelayStatus], Awaitable[None]]], RelaySupervisor]
ChatFactory = Callable[
    [
        str,
        CredentialContext,
        Callable[[list[ChatMessage]], Awaitable[None]],
        Callable[[ChatStatus], Awaitable[None]],
    ],
    ChatSubsystem,
]

# Outbound event names.
STREAM_STATUS_EVENT = "stream_status"
CHAT_STATUS_EVENT = "chat_status"
CHAT_UPDATE_EVENT = "chat_update"


def default_relay_factory(settings: Settings) -> RelayFactory:
    """Build supervisors configured from *settings*."""
    profile = EncoderProfile.from_settings(settings)

    def _factory(session_id: str, on_status: Callable[[RelayStatus], Awaitable[None]]) -> RelaySupervisor:
        return RelaySupervisor(
            session_id,
            on_status=on_status,
            profile=profile,
            ffmpeg_path=settings.ffmpeg_path,
            stop_timeout=settings.relay_stop_timeout_s,
        )

    return _factory


def default_chat_factory(settings: Settings) -> ChatFactory:
    """Build YouTube-backed chat subsystems configured from *settings*."""

    def _factory(
        session_id: str,
        credentials: CredentialContext,
        on_messages: Callable[[list[ChatMessage]], Awaitable[None]],
        on_status: Callable[[ChatStatus], Awaitable[None]],
    ) -> ChatSubsystem:
        return ChatSubsystem(
            session_id,
            YouTubeClient.from_settings(credentials, settings),
            on_messages=on_messages,
            on_status=on_status,
            max_attempts=settings.chat_locate_max_attempts,
            retry_delay=settings.chat_locate_retry_delay_s,
            poll_interval=settings.chat_poll_interval_s,
        )

    return _factory


class Session:
    """Everything one transport session owns.

    Attributes:
        session_id: Transport-assigned identifier.
        destinations: Validated destinations the relay was started with.
        credentials: Credential used by the chat subsystem.
        relay: The session's relay supervisor.
        chat: The session's chat subsystem.
        lock: Serializes start/ingest/stop for this session.
        stopping: Set as soon as teardown begins.
    """

    def __init__(
        self,
        session_id: str,
        destinations: DestinationSpec,
        credentials: CredentialContext,
        relay: RelaySupervisor,
        chat: ChatSubsystem,
    ) -> None:
        self.session_id = session_id
        self.destinations = destinations
        self.credentials = credentials
        self.relay = relay
        self.chat = chat
        self.lock = asyncio.Lock()
        self.stopping = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> bool:
        """Tear down relay and chat once.

        Returns:
            ``True`` if this call performed the teardown.
        """
        self.stopping = True
        async with self.lock:
            if self._closed:
                return False
            self._closed = True
            try:
                await self.relay.stop()
            finally:
                await self.chat.stop()
        return True


class SessionManager:
    """Top-level per-session coordinator.

    Args:
        emit: Async ``(session_id, event, payload)`` sink, normally the
            Socket.IO transport.
        default_credentials: Shared credential used when a session does
            not bring its own.
        relay_factory: Builds a ``RelaySupervisor`` for a session.
        chat_factory: Builds a ``ChatSubsystem`` for a session.
        registry: Session registry; a fresh one by default.
        settings: Used to build the default factories.
    """

    def __init__(
        self,
        emit: Emit,
        *,
        default_credentials: CredentialContext,
        relay_factory: RelayFactory | None = None,
        chat_factory: ChatFactory | None = None,
        registry: SessionRegistry[Session] | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._emit = emit
        self._default_credentials = default_credentials
        self._relay_factory = relay_factory or default_relay_factory(settings)
        self._chat_factory = chat_factory or default_chat_factory(settings)
        self.registry: SessionRegistry[Session] = registry if registry is not None else SessionRegistry()

    # ── public API ──

    def get(self, session_id: str) -> Session | None:
        return self.registry.get(session_id)

    @property
    def active_sessions(self) -> list[str]:
        return self.registry.session_ids()

    async def start(
        self,
        session_id: str,
        destinations: DestinationSpec | Iterable[str] | None,
        credentials: CredentialContext | None = None,
    ) -> Session:
        """Start (or restart) relay and chat for *session_id*.

        Args:
            session_id: Transport session id.
            destinations: Raw destination URLs or an already-built spec.
            credentials: Per-session credential; the shared default is
                used when omitted.

        Raises:
            InvalidDestinations: Destination list empty or malformed.
                A ``failed`` status has already been emitted and nothing
                was started or registered.
        """
        log = logger.bind(session_id=session_id)
        try:
            spec = destinations if isinstance(destinations, DestinationSpec) else parse_destinations(destinations)
        except InvalidDestinations as exc:
            log.warning("session_invalid_destinations", error=str(exc))
            status = RelayStatus(state=RelayState.FAILED, message=str(exc), error=exc.code)
            await self._safe_emit(session_id, STREAM_STATUS_EVENT, status.to_event())
            raise

        previous = await self.registry.pop(session_id)
        if previous is not None:
            log.info("session_restarting")
            await previous.close()

        creds = credentials or self._default_credentials
        session = Session(
            session_id,
            spec,
            creds,
            relay=self._relay_factory(session_id, partial(self._on_relay_status, session_id)),
            chat=self._chat_factory(
                session_id,
                creds,
                partial(self._on_chat_messages, session_id),
                partial(self._on_chat_status, session_id),
            ),
        )

        async with session.lock:
            await self.registry.put(session_id, session)
            log.info(
                "session_started",
                destinations=len(spec.urls),
                shared_credentials=creds.shared,
            )
            await session.relay.start(spec)
            await session.chat.start()
        return session

    async def ingest(self, session_id: str, chunk: bytes) -> bool:
        """Forward *chunk* to the session's relay.

        The write happens under the session lock so chunks keep their
        order; the drain does not, so a relay that stopped reading never
        holds up ``stop``.

        Returns:
            ``True`` if written; ``False`` if silently dropped.
        """
        session = self.registry.get(session_id)
        if session is None or session.stopping:
            return False
        async with session.lock:
            if session.stopping:
                return False
            if not session.relay.write(chunk):
                return False
        return await session.relay.drain()

    async def stop(self, session_id: str) -> bool:
        """Tear down *session_id*.  No-op when absent; safe to repeat.

        Returns:
            ``True`` if a session was torn down by this call.
        """
        session = await self.registry.pop(session_id)
        if session is None:
            logger.debug("session_stop_noop", session_id=session_id)
            return False
        closed = await session.close()
        logger.info("session_stopped", session_id=session_id)
        return closed

    async def on_transport_disconnect(self, session_id: str) -> bool:
        """Handle the transport dropping *session_id*; same as ``stop``."""
        return await self.stop(session_id)

    async def stop_all(self) -> None:
        """Tear down every session (application shutdown)."""
        sessions = await self.registry.drain()
        if not sessions:
            return
        await asyncio.gather(*(s.close() for s in sessions), return_exceptions=True)
        logger.info("sessions_stopped_all", count=len(sessions))

    # ── callbacks ──

    async def _on_relay_status(self, session_id: str, status: RelayStatus) -> None:
        await self._safe_emit(session_id, STREAM_STATUS_EVENT, status.to_event())

    async def _on_chat_status(self, session_id: str, status: ChatStatus) -> None:
        await self._safe_emit(session_id, CHAT_STATUS_EVENT, status.to_event())

    async def _on_chat_messages(self, session_id: str, messages: list[ChatMessage]) -> None:
        await self._safe_emit(session_id, CHAT_UPDATE_EVENT, [m.to_event() for m in messages])

    async def _safe_emit(self, session_id: str, event: str, payload: Any) -> None:
        try:
            await self._emit(session_id, event, payload)
        except Exception:  # noqa: BLE001
            logger.exception("session_emit_failed", session_id=session_id, event_name=event)
