"""
Chat subsystem for one Relaycast session.

Runs the locate → poll state machine in a single asyncio task:

* ``locating``: ``BroadcastLocator`` looks for a live broadcast with
  bounded, fixed-delay retry.
* ``polling``: ``ChatPoller`` fetches and emits messages forever.
* ``exhausted``: terminal; reported once, relay is untouched.

``stop`` cancels the task from any state, so no retry delay or poll
interval can fire after teardown.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from rc_common.clock import SYSTEM_CLOCK, Clock
from rc_common.errors import ChatSubsystemExhausted
from rc_common.models.chat import ChatStatus, PollState

from chat.locator import MAX_ATTEMPTS, RETRY_DELAY_S, BroadcastLocator
from chat.poller import POLL_INTERVAL_S, ChatPoller, MessagesCallback

logger = structlog.get_logger()

StatusCallback = Callable[[ChatStatus], Awaitable[None]]


class ChatSubsystem:
    """Broadcast locator and chat poller pair for one session.

    Args:
        session_id: Owning session.
        client: Platform client exposing ``list_my_broadcasts``,
            ``list_chat_messages`` and ``close``.
        on_messages: Async callback receiving each chat batch.
        on_status: Async callback receiving state transitions.
        max_attempts: Locate attempts before exhaustion.
        retry_delay: Fixed delay between locate attempts.
        poll_interval: Fixed chat polling period.
        clock: Time source for both timers.
        owns_client: Close *client* on ``stop``.
    """

    def __init__(
        self,
        session_id: str,
        client: Any,
        *,
        on_messages: MessagesCallback,
        on_status: StatusCallback | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_S,
        poll_interval: float = POLL_INTERVAL_S,
        clock: Clock = SYSTEM_CLOCK,
        owns_client: bool = True,
    ) -> None:
        self._session_id = session_id
        self._client = client
        self._on_messages = on_messages
        self._on_status = on_status
        self._poll_interval = poll_interval
        self._clock = clock
        self._owns_client = owns_client
        self.locator = BroadcastLocator(
            session_id,
            client,
            max_attempts=max_attempts,
            retry_delay=retry_delay,
            clock=clock,
        )
        self.poller: ChatPoller | None = None
        self._state = PollState.LOCATING
        self._task: asyncio.Task[None] | None = None
        self._stopped = False
        self._log = logger.bind(session_id=session_id)

    # ── public API ──

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def cursor(self) -> str | None:
        return self.poller.cursor if self.poller is not None else None

    @property
    def live_chat_id(self) -> str | None:
        return self.poller.live_chat_id if self.poller is not None else None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start locating.  No-op if already started or stopped."""
        if self._stopped or self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name=f"chat-{self._session_id}")
        self._log.info("chat_subsystem_started")

    async def stop(self) -> None:
        """Cancel timers and release the client.  Safe to repeat."""
        if self._stopped:
            return
        self._stopped = True

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._owns_client:
            await self._client.close()
        self._log.info("chat_subsystem_stopped", state=self._state.value)

    # ── internal ──

    async def _run(self) -> None:
        try:
            await self._report(PollState.LOCATING, "Looking for an active broadcast")
            try:
                broadcast = await self.locator.locate()
            except ChatSubsystemExhausted as exc:
                await self._report(PollState.EXHAUSTED, str(exc), error=exc.code)
                return

            self.poller = ChatPoller(
                self._session_id,
                self._client,
                broadcast.live_chat_id,
                on_messages=self._on_messages,
                interval=self._poll_interval,
                clock=self._clock,
            )
            await self._report(PollState.POLLING, f"Live chat connected: {broadcast.title or broadcast.id}")
            await self.poller.run()
        except asyncio.CancelledError:
            self._log.info("chat_subsystem_cancelled", state=self._state.value)
            raise
        except Exception:
            self._log.exception("chat_subsystem_unexpected_error", state=self._state.value)

    async def _report(self, state: PollState, message: str, *, error: str | None = None) -> None:
        self._state = state
        self._log.info("chat_state_changed", state=state.value, message=message)
        if self._on_status is None:
            return
        try:
            await self._on_status(ChatStatus(state=state, message=message, error=error))
        except Exception:  # noqa: BLE001
            self._log.exception("chat_status_callback_failed", state=state.value)
