"""Shared fixtures for relay tests."""

from __future__ import annotations

import asyncio
import os
from typing import Any

import pytest

os.environ.setdefault("RC_LOG_JSON", "false")


# ─── Fake subprocess ─────────────────────────────────────────────


class FakeStdin:
    """Records writes the way ``asyncio.StreamWriter`` would accept them.

    With ``stalled`` set the pipe behaves like one whose reader stopped:
    ``drain`` and ``wait_closed`` block until the process goes away.
    """

    def __init__(self) -> None:
        self.chunks: list[bytes] = []
        self.broken = False
        self.stalled = False
        self._closing = False
        self._released = asyncio.Event()

    def write(self, data: bytes) -> None:
        if self.broken:
            raise BrokenPipeError("pipe closed")
        self.chunks.append(data)

    async def drain(self) -> None:
        if self.stalled:
            await self._released.wait()
        if self.broken:
            raise BrokenPipeError("pipe closed")

    def close(self) -> None:
        self._closing = True

    def is_closing(self) -> bool:
        return self._closing

    async def wait_closed(self) -> None:
        if self.stalled:
            await self._released.wait()

    def release(self) -> None:
        self._released.set()


class FakeStderr:
    def __init__(self, data: bytes = b"") -> None:
        self._data = data
        self._eof = asyncio.Event()

    async def read(self, n: int = -1) -> bytes:
        if self._data:
            data, self._data = self._data, b""
            return data
        await self._eof.wait()
        return b""

    def feed_eof(self) -> None:
        self._eof.set()


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process``."""

    _next_pid = 4000

    def __init__(self, argv: tuple[str, ...], *, exit_on_sigint: bool = True) -> None:
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.argv = argv
        self.returncode: int | None = None
        self.stdin = FakeStdin()
        self.stderr = FakeStderr(b"frame=1 fps=30\n")
        self.signals: list[int] = []
        self.killed = False
        self.exit_on_sigint = exit_on_sigint
        self._exited = asyncio.Event()

    def exit(self, code: int) -> None:
        if self.returncode is None:
            self.returncode = code
            self._exited.set()
            self.stderr.feed_eof()
            self.stdin.release()

    def send_signal(self, sig: int) -> None:
        self.signals.append(sig)
        if self.exit_on_sigint:
            self.exit(255)

    def kill(self) -> None:
        self.killed = True
        self.exit(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


class FakeProcessFactory:
    """Replacement for ``asyncio.create_subprocess_exec``."""

    def __init__(self) -> None:
        self.processes: list[FakeProcess] = []
        self.kwargs: list[dict[str, Any]] = []
        self.error: BaseException | None = None
        self.exit_on_sigint = True

    async def __call__(self, *argv: str, **kwargs: Any) -> FakeProcess:
        if self.error is not None:
            raise self.error
        proc = FakeProcess(argv, exit_on_sigint=self.exit_on_sigint)
        self.processes.append(proc)
        self.kwargs.append(kwargs)
        return proc

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


# ─── Fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def session_id() -> str:
    return "sid-relay-1"


@pytest.fixture()
def process_factory() -> FakeProcessFactory:
    return FakeProcessFactory()


@pytest.fixture()
def status_log() -> list:
    return []


@pytest.fixture()
def on_status(status_log: list):
    async def _record(status) -> None:
        status_log.append(status)

    return _record


@pytest.fixture()
def youtube_url() -> str:
    return "rtmp://a.rtmp.youtube.com/live2/abcd-efgh"


@pytest.fixture()
def twitch_url() -> str:
    return "rtmps://live.twitch.tv:443/app/live_123"
