"""Shared fixtures for chat tests."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from typing import Any

import httpx
import pytest

os.environ.setdefault("RC_LOG_JSON", "false")
os.environ.setdefault("RC_YOUTUBE_CLIENT_ID", "test-client-id")
os.environ.setdefault("RC_YOUTUBE_CLIENT_SECRET", "test-client-secret")


# ─── Fake clock ──────────────────────────────────────────────────


class FakeClock:
    """Clock that advances instantly and records every sleep.

    After ``hold_after`` sleeps, further sleeps block until the calling
    task is cancelled, so polling loops can be parked.
    """

    def __init__(self, hold_after: int | None = None) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []
        self.hold_after = hold_after
        self._hold = asyncio.Event()

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self.hold_after is not None and len(self.sleeps) > self.hold_after:
            await self._hold.wait()
        self.now += seconds
        await asyncio.sleep(0)


# ─── Fake token refresher ────────────────────────────────────────


class FakeRefresher:
    def __init__(self, *, access_token: str = "fresh-token", refresh_token: str | None = None) -> None:
        self.calls: list[str] = []
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.error: BaseException | None = None

    async def refresh(self, refresh_token: str):
        from chat.credentials import OAuthTokens

        self.calls.append(refresh_token)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return OAuthTokens(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
        )


# ─── Fixtures ────────────────────────────────────────────────────


@pytest.fixture()
def session_id() -> str:
    return "sid-chat-1"


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def parked_clock() -> Callable[[int], FakeClock]:
    return FakeClock


@pytest.fixture()
def refresher() -> FakeRefresher:
    return FakeRefresher()


@pytest.fixture()
def credentials(refresher):
    from chat.credentials import CredentialContext

    return CredentialContext.from_tokens("stale-token", "refresh-1", refresher=refresher, label="test")


@pytest.fixture()
def mock_http() -> Callable[..., httpx.AsyncClient]:
    """Build an ``httpx.AsyncClient`` whose requests go to *handler*."""

    def _build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _build


@pytest.fixture()
def live_broadcast_item() -> dict[str, Any]:
    return {
        "id": "bc-live",
        "snippet": {
            "title": "Friday stream",
            "liveChatId": "chat-123",
            "actualStartTime": "2024-05-01T18:00:00Z",
        },
    }


@pytest.fixture()
def ended_broadcast_item() -> dict[str, Any]:
    return {
        "id": "bc-old",
        "snippet": {
            "title": "Last week",
            "liveChatId": "chat-old",
            "actualStartTime": "2024-04-24T18:00:00Z",
            "actualEndTime": "2024-04-24T20:00:00Z",
        },
    }


@pytest.fixture()
def chat_item() -> Callable[..., dict[str, Any]]:
    def _item(author: str | None = "alice", text: str | None = "hi", published: str | None = "2024-05-01T18:05:09Z"):
        snippet: dict[str, Any] = {}
        if text is not None:
            snippet["displayMessage"] = text
        if published is not None:
            snippet["publishedAt"] = published
        details = {"displayName": author} if author is not None else {}
        return {"id": f"msg-{author}-{text}", "snippet": snippet, "authorDetails": details}

    return _item
