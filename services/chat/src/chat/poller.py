"""
Live chat poller for Relaycast.

Once a live chat id is known, fetches the next page of messages on a
fixed period, maps them to ``ChatMessage`` objects and hands the ordered
batch to the session.  A failed fetch is logged and retried on the next
tick; the cursor only moves after a successful fetch.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Protocol

import structlog

from rc_common.clock import SYSTEM_CLOCK, Clock
from rc_common.errors import ChatFetchTransient
from rc_common.metrics import CHAT_FETCH_ERRORS, CHAT_MESSAGES
from rc_common.models.chat import ChatMessage

from chat.youtube_client import PLATFORM_NAME, ChatPage, LiveChatItem

logger = structlog.get_logger()

POLL_INTERVAL_S: float = 5.0

MessagesCallback = Callable[[list[ChatMessage]], Awaitable[None]]


class ChatSource(Protocol):
    async def list_chat_messages(self, live_chat_id: str, page_token: str | None = None) -> ChatPage:
        ...


def to_chat_message(item: LiveChatItem, *, platform: str = PLATFORM_NAME) -> ChatMessage:
    """Map one API chat item to a ``ChatMessage``."""
    return ChatMessage(
        platform=platform,
        user=item.author or "Unknown",
        text=item.display_message or "No message",
        timestamp=item.published_at or datetime.now(timezone.utc),
    )


class ChatPoller:
    """Cursor-driven poller for one live chat.

    Args:
        session_id: Owning session, for logging context.
        client: Anything exposing ``list_chat_messages``.
        live_chat_id: Chat feed to poll.
        on_messages: Async callback receiving each fetched batch.
        interval: Fixed seconds between polls.
        clock: Time source driving the interval.
        platform: Label stamped on emitted messages.
    """

    def __init__(
        self,
        session_id: str,
        client: ChatSource,
        live_chat_id: str,
        *,
        on_messages: MessagesCallback,
        interval: float = POLL_INTERVAL_S,
        clock: Clock = SYSTEM_CLOCK,
        platform: str = PLATFORM_NAME,
    ) -> None:
        self._client = client
        self._on_messages = on_messages
        self._clock = clock
        self.live_chat_id = live_chat_id
        self.interval = interval
        self.platform = platform
        self._cursor: str | None = None
        self._log = logger.bind(session_id=session_id, live_chat_id=live_chat_id)

    @property
    def cursor(self) -> str | None:
        """Page token for the next fetch; ``None`` before the first success."""
        return self._cursor

    async def poll_once(self) -> list[ChatMessage] | None:
        """Fetch, emit and advance the cursor once.

        Returns:
            The emitted batch, or ``None`` if the fetch failed.
        """
        try:
            page = await self._client.list_chat_messages(self.live_chat_id, self._cursor)
        except Exception as exc:  # noqa: BLE001
            CHAT_FETCH_ERRORS.inc()
            transient = ChatFetchTransient(str(exc))
            self._log.warning(
                "chat_fetch_failed",
                error_code=transient.code,
                cause=getattr(exc, "code", type(exc).__name__),
                error=str(exc),
            )
            return None

        messages = [to_chat_message(item, platform=self.platform) for item in page.items]
        if page.next_page_token is not None:
            self._cursor = page.next_page_token

        if messages:
            CHAT_MESSAGES.labels(platform=self.platform).inc(len(messages))
        self._log.debug(
            "chat_messages_fetched",
            count=len(messages),
            cursor=self._cursor,
            suggested_interval_ms=page.polling_interval_ms,
        )
        try:
            await self._on_messages(messages)
        except Exception:  # noqa: BLE001
            self._log.exception("chat_emit_failed", count=len(messages))
        return messages

    async def run(self) -> None:
        """Poll forever on the fixed interval.  Stops when cancelled."""
        self._log.info("chat_polling_started", interval_s=self.interval)
        while True:
            await self._clock.sleep(self.interval)
            await self.poll_once()
