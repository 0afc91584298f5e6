"""
YouTube Data API v3 client for Relaycast.

Exposes the two calls the chat subsystem needs, "list my broadcasts"
and "list chat messages by live chat id and page token", and maps HTTP
failures onto an exception hierarchy that keeps auth, rate-limit and
not-found errors distinguishable.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

from rc_common.config import Settings
from rc_common.errors import RelaycastError

from chat.credentials import CredentialContext

logger = structlog.get_logger()

PLATFORM_NAME = "YouTube"
DEFAULT_BASE_URL = "https://www.googleapis.com/youtube/v3"

_RATE_LIMIT_REASONS = frozenset(
    {"rateLimitExceeded", "userRateLimitExceeded", "quotaExceeded", "dailyLimitExceeded"}
)


# ── errors ──


class PlatformError(RelaycastError):
    """A YouTube API call failed.

    Attributes:
        status_code: HTTP status, or ``None`` for transport failures.
        reason: First ``errors[].reason`` from the API body, if any.
    """

    code = "PlatformError"

    def __init__(self, message: str, *, status_code: int | None = None, reason: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class PlatformAuthError(PlatformError):
    """Credentials were rejected (401, or 403 for a non-quota reason)."""

    code = "PlatformAuthError"


class PlatformRateLimited(PlatformError):
    """Quota or rate limit exceeded."""

    code = "PlatformRateLimited"


class PlatformNotFound(PlatformError):
    """The requested resource (e.g. a live chat) does not exist."""

    code = "PlatformNotFound"


# ── response models ──


class Broadcast(BaseModel):
    """The subset of a ``liveBroadcast`` resource the locator inspects."""

    id: str
    title: str = ""
    live_chat_id: str | None = None
    actual_start_time: datetime | None = None
    actual_end_time: datetime | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> Broadcast:
        snippet = item.get("snippet") or {}
        return cls(
            id=item.get("id", ""),
            title=snippet.get("title", ""),
            live_chat_id=snippet.get("liveChatId") or None,
            actual_start_time=snippet.get("actualStartTime"),
            actual_end_time=snippet.get("actualEndTime"),
        )

    @property
    def is_live(self) -> bool:
        """Started, not ended, and exposing a chat feed."""
        return (
            self.live_chat_id is not None
            and self.actual_start_time is not None
            and self.actual_end_time is None
        )


class LiveChatItem(BaseModel):
    """The subset of a ``liveChatMessage`` resource the poller maps."""

    id: str = ""
    author: str | None = None
    display_message: str | None = None
    published_at: datetime | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> LiveChatItem:
        snippet = item.get("snippet") or {}
        author = item.get("authorDetails") or {}
        return cls(
            id=item.get("id", ""),
            author=author.get("displayName"),
            display_message=snippet.get("displayMessage"),
            published_at=snippet.get("publishedAt"),
        )


class ChatPage(BaseModel):
    """One page of live chat messages.

    Attributes:
        items: Messages in the order the API returned them.
        next_page_token: Cursor for the following request.
        polling_interval_ms: Server-suggested minimum poll interval.
    """

    items: list[LiveChatItem] = Field(default_factory=list)
    next_page_token: str | None = None
    polling_interval_ms: int | None = None


# ── client ──


class YouTubeClient:
    """Thin async client over the YouTube Data API v3.

    On a 401 the credential is refreshed once and the request retried.

    Args:
        credentials: Tokens used for the ``Authorization`` header.
        base_url: API base URL.
        timeout: Per-request timeout in seconds.
        http_client: Optional pre-built ``httpx.AsyncClient``.
    """

    platform: str = PLATFORM_NAME

    def __init__(
        self,
        credentials: CredentialContext,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client

    @classmethod
    def from_settings(cls, credentials: CredentialContext, settings: Settings) -> YouTubeClient:
        return cls(
            credentials,
            base_url=settings.youtube_api_base_url,
            timeout=settings.http_timeout_s,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Return (and lazily create) the ``httpx.AsyncClient``."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def list_my_broadcasts(self, *, max_results: int = 10) -> list[Broadcast]:
        """List the authenticated channel's broadcasts."""
        data = await self._get(
            "/liveBroadcasts",
            {"part": "id,snippet", "mine": "true", "maxResults": str(max_results)},
        )
        return [Broadcast.from_api(item) for item in data.get("items") or []]

    async def list_chat_messages(
        self, live_chat_id: str, page_token: str | None = None,
    ) -> ChatPage:
        """Fetch the chat page following *page_token*."""
        params = {"part": "snippet,authorDetails", "liveChatId": live_chat_id}
        if page_token:
            params["pageToken"] = page_token
        data = await self._get("/liveChat/messages", params)
        return ChatPage(
            items=[LiveChatItem.from_api(item) for item in data.get("items") or []],
            next_page_token=data.get("nextPageToken"),
            polling_interval_ms=data.get("pollingIntervalMillis"),
        )

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        refreshed = False
        while True:
            headers = await self.credentials.authorization_header()
            try:
                resp = await client.get(url, params=params, headers=headers)
            except httpx.TransportError as exc:
                raise PlatformError(f"{path}: {exc}") from exc

            if resp.status_code == 401 and not refreshed and self.credentials.can_refresh:
                refreshed = True
                logger.info("youtube_token_rejected_refreshing", path=path)
                stale = headers["Authorization"].removeprefix("Bearer ")
                await self.credentials.refresh(stale_access_token=stale)
                continue
            break

        if resp.is_success:
            return resp.json()
        raise error_for_response(resp, path)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def error_for_response(resp: httpx.Response, path: str = "") -> PlatformError:
    """Map a failed API response onto the ``PlatformError`` hierarchy."""
    message = f"HTTP {resp.status_code}"
    reason: str | None = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        err = body["error"]
        message = str(err.get("message") or message)
        details = err.get("errors") or []
        if details and isinstance(details[0], dict):
            reason = details[0].get("reason")

    if path:
        message = f"{path}: {message}"
    status = resp.status_code
    if status == 429 or reason in _RATE_LIMIT_REASONS:
        return PlatformRateLimited(message, status_code=status, reason=reason)
    if status in (401, 403):
        return PlatformAuthError(message, status_code=status, reason=reason)
    if status == 404:
        return PlatformNotFound(message, status_code=status, reason=reason)
    return PlatformError(message, status_code=status, reason=reason)
