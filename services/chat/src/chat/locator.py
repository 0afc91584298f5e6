"""
Broadcast locator for Relaycast.

Finds the operator's currently live broadcast and its live chat id.
Attempts are strictly sequential with a fixed delay between them and a
fixed maximum count; the retry bookkeeping lives in ``LocateRetry`` so
exhaustion can be tested with a fake clock instead of real waits.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

import structlog

from rc_common.clock import SYSTEM_CLOCK, Clock
from rc_common.errors import BroadcastNotFound, ChatSubsystemExhausted
from rc_common.metrics import LOCATE_ATTEMPTS

from chat.youtube_client import Broadcast

logger = structlog.get_logger()

MAX_ATTEMPTS: int = 10
RETRY_DELAY_S: float = 5.0


class BroadcastSource(Protocol):
    async def list_my_broadcasts(self, *, max_results: int = 10) -> list[Broadcast]:
        ...


class LocateRetry:
    """Bounded, fixed-delay retry state.

    Args:
        max_attempts: Total attempts allowed, the first one included.
        delay: Seconds between the end of a failed attempt and the next.
        clock: Time source.
    """

    def __init__(
        self,
        max_attempts: int = MAX_ATTEMPTS,
        delay: float = RETRY_DELAY_S,
        *,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay = delay
        self._clock = clock
        self._attempts = 0
        self._next_attempt_at: float | None = None

    @property
    def attempts(self) -> int:
        """Failed attempts recorded so far."""
        return self._attempts

    @property
    def exhausted(self) -> bool:
        return self._attempts >= self.max_attempts

    @property
    def next_attempt_at(self) -> float | None:
        """Clock time of the next attempt, ``None`` when exhausted or unset."""
        return self._next_attempt_at

    def record_failure(self) -> bool:
        """Count a failed attempt.

        Returns:
            ``True`` if another attempt is allowed.
        """
        self._attempts += 1
        if self.exhausted:
            self._next_attempt_at = None
            return False
        self._next_attempt_at = self._clock.monotonic() + self.delay
        return True

    def seconds_until_next(self) -> float:
        """Remaining wait before the next attempt (0 if due or unset)."""
        if self._next_attempt_at is None:
            return 0.0
        return max(0.0, self._next_attempt_at - self._clock.monotonic())


def select_live_broadcast(broadcasts: Iterable[Broadcast]) -> Broadcast | None:
    """Return the first broadcast that is live with a chat feed."""
    for broadcast in broadcasts:
        if broadcast.is_live:
            return broadcast
    return None


class BroadcastLocator:
    """Locate a session operator's live broadcast with bounded retry.

    Args:
        session_id: Owning session, for logging context.
        client: Anything exposing ``list_my_broadcasts``.
        max_attempts: Total attempts before giving up.
        retry_delay: Fixed delay between attempts.
        clock: Time source driving the retry delay.
    """

    def __init__(
        self,
        session_id: str,
        client: BroadcastSource,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_S,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self._client = client
        self._clock = clock
        self.retry = LocateRetry(max_attempts, retry_delay, clock=clock)
        self._log = logger.bind(session_id=session_id)

    async def locate_once(self) -> Broadcast:
        """Run a single attempt.

        Raises:
            BroadcastNotFound: If no broadcast is currently live.
            RelaycastError: For API or credential failures.
        """
        broadcasts = await self._client.list_my_broadcasts(max_results=10)
        if not broadcasts:
            raise BroadcastNotFound("No broadcasts found in response")
        live = select_live_broadcast(broadcasts)
        if live is None:
            self._log.info(
                "broadcast_none_live",
                broadcasts=[b.id for b in broadcasts],
            )
            raise BroadcastNotFound("No active broadcast with live chat found")
        return live

    async def locate(self) -> Broadcast:
        """Attempt location until success or the attempt budget is spent.

        Raises:
            ChatSubsystemExhausted: After the final failed attempt.
        """
        while True:
            attempt = self.retry.attempts + 1
            self._log.info(
                "broadcast_locate_attempt",
                attempt=attempt,
                max_attempts=self.retry.max_attempts,
            )
            try:
                broadcast = await self.locate_once()
            except Exception as exc:  # noqa: BLE001
                LOCATE_ATTEMPTS.labels(outcome="failure").inc()
                self._log.warning(
                    "broadcast_locate_failed",
                    attempt=attempt,
                    error_code=getattr(exc, "code", type(exc).__name__),
                    error=str(exc),
                )
                if not self.retry.record_failure():
                    self._log.error("broadcast_locate_exhausted", attempts=self.retry.attempts)
                    raise ChatSubsystemExhausted(self.retry.attempts, str(exc)) from exc
                await self._clock.sleep(self.retry.seconds_until_next())
                continue

            LOCATE_ATTEMPTS.labels(outcome="success").inc()
            self._log.info(
                "broadcast_located",
                broadcast_id=broadcast.id,
                live_chat_id=broadcast.live_chat_id,
                attempt=attempt,
            )
            return broadcast
