"""Shared fixtures for gateway tests."""

from __future__ import annotations

import asyncio
import os
from typing import Any

import pytest

os.environ.setdefault("RC_LOG_JSON", "false")
os.environ.setdefault("RC_YOUTUBE_CLIENT_ID", "test-client-id")
os.environ.setdefault("RC_YOUTUBE_CLIENT_SECRET", "test-client-secret")

from rc_common.models.relay import RelayState, RelayStatus  # noqa: E402


# ─── Fake relay / chat ───────────────────────────────────────────


class FakeRelay:
    """Records calls; reports ``active`` on start and ``stopped`` on stop."""

    def __init__(self, session_id: str, on_status, journal: list) -> None:
        self.session_id = session_id
        self.on_status = on_status
        self.journal = journal
        self.chunks: list[bytes] = []
        self.running = False
        self.spec = None
        self.stalled = False
        self._released = asyncio.Event()

    async def start(self, spec) -> bool:
        self.journal.append(("relay.start", self.session_id, id(self)))
        self.spec = spec
        self.running = True
        await self.on_status(RelayStatus(state=RelayState.ACTIVE, message=f"Streaming to {len(spec.urls)} destination(s)"))
        return True

    def write(self, chunk: bytes) -> bool:
        if not self.running:
            return False
        self.chunks.append(chunk)
        return True

    async def drain(self) -> bool:
        # a stalled relay never drains until it is stopped
        if self.stalled:
            await self._released.wait()
        return self.running

    async def stop(self) -> None:
        self.journal.append(("relay.stop", self.session_id, id(self)))
        self._released.set()
        if self.running:
            self.running = False
            await self.on_status(RelayStatus(state=RelayState.STOPPED, message="Stream stopped"))


class FakeChat:
    def __init__(self, session_id: str, credentials, on_messages, on_status, journal: list) -> None:
        self.session_id = session_id
        self.credentials = credentials
        self.on_messages = on_messages
        self.on_status = on_status
        self.journal = journal
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.journal.append(("chat.start", self.session_id, id(self)))
        self.started = True

    async def stop(self) -> None:
        self.journal.append(("chat.stop", self.session_id, id(self)))
        self.stopped = True


class Factories:
    """Relay and chat factories that keep every instance they build."""

    def __init__(self) -> None:
        self.journal: list[tuple[str, str, int]] = []
        self.relays: list[FakeRelay] = []
        self.chats: list[FakeChat] = []

    def relay(self, session_id: str, on_status) -> FakeRelay:
        r = FakeRelay(session_id, on_status, self.journal)
        self.relays.append(r)
        return r

    def chat(self, session_id: str, credentials, on_messages, on_status) -> FakeChat:
        c = FakeChat(session_id, credentials, on_messages, on_status, self.journal)
        self.chats.append(c)
        return c


class EmitRecorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []
        self.error: BaseException | None = None

    async def __call__(self, session_id: str, event: str, payload: Any) -> None:
        if self.error is not None:
            raise self.error
        self.events.append((session_id, event, payload))

    def of(self, session_id: str, event: str) -> list[Any]:
        return [p for sid, ev, p in self.events if sid == session_id and ev == event]


# ─── Fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def factories() -> Factories:
    return Factories()


@pytest.fixture()
def emit() -> EmitRecorder:
    return EmitRecorder()


@pytest.fixture()
def default_credentials():
    from chat.credentials import CredentialContext

    return CredentialContext.from_tokens("default-at", "default-rt", shared=True, label="default")


@pytest.fixture()
def settings():
    from rc_common.config import Settings

    return Settings(_env_file=None)


@pytest.fixture()
def manager(emit, factories, default_credentials, settings):
    from gateway.session_manager import SessionManager

    return SessionManager(
        emit,
        default_credentials=default_credentials,
        relay_factory=factories.relay,
        chat_factory=factories.chat,
        settings=settings,
    )


@pytest.fixture()
def urls() -> list[str]:
    return ["rtmp://a.rtmp.youtube.com/live2/key-1", "rtmps://live.example.com:443/app/key-2"]
