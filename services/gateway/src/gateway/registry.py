"""
Session registry for the Relaycast gateway.

The only process-wide table of per-session resources: maps a transport
session id to its session record.  Mutations are serialized with an
``asyncio.Lock``; lookups are plain dict reads on the event loop.
"""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

import structlog

from rc_common.metrics import ACTIVE_SESSIONS

logger = structlog.get_logger()

T = TypeVar("T")


class SessionRegistry(Generic[T]):
    """Concurrency-safe ``session_id → record`` mapping."""

    def __init__(self) -> None:
        self._sessions: dict[str, T] = {}
        self._lock = asyncio.Lock()

    def get(self, session_id: str) -> T | None:
        return self._sessions.get(session_id)

    async def put(self, session_id: str, record: T) -> T | None:
        """Register *record*, returning whatever it replaced."""
        async with self._lock:
            previous = self._sessions.get(session_id)
            self._sessions[session_id] = record
            ACTIVE_SESSIONS.set(len(self._sessions))
        logger.debug("session_registered", session_id=session_id, total=len(self._sessions))
        return previous

    async def pop(self, session_id: str) -> T | None:
        """Remove and return the record for *session_id*, if any."""
        async with self._lock:
            record = self._sessions.pop(session_id, None)
            ACTIVE_SESSIONS.set(len(self._sessions))
        if record is not None:
            logger.debug("session_unregistered", session_id=session_id, total=len(self._sessions))
        return record

    async def drain(self) -> list[T]:
        """Remove and return every record."""
        async with self._lock:
            records = list(self._sessions.values())
            self._sessions.clear()
            ACTIVE_SESSIONS.set(0)
        return records

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
