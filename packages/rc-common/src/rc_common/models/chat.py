"""
Chat data models for Relaycast.

Defines the chat subsystem's poll state, the status value it reports,
and the immutable ``ChatMessage`` emitted to the operator's browser.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


class PollState(str, enum.Enum):
    """State of a session's broadcast locator / chat poller pair."""

    LOCATING = "locating"
    POLLING = "polling"
    EXHAUSTED = "exhausted"


class ChatStatus(BaseModel):
    """A chat subsystem state transition.

    Attributes:
        state: The state entered.
        message: Human-readable description.
        error: Error code when the transition was caused by a failure.
    """

    model_config = {"frozen": True}

    state: PollState = Field(..., description="State entered.")
    message: str = Field(default="", description="Operator-facing message.")
    error: str | None = Field(default=None, description="Error code, if any.")

    def to_event(self) -> dict[str, str]:
        """Render the outbound ``chat_status`` payload."""
        payload = {"status": self.state.value, "message": self.message}
        if self.error:
            payload["error"] = self.error
        return payload


class ChatMessage(BaseModel):
    """One viewer chat message.

    Attributes:
        platform: Source platform label, e.g. ``"YouTube"``.
        user: Author display name.
        text: Message body.
        timestamp: Publication time (UTC).
    """

    model_config = {"frozen": True}

    platform: str = Field(..., description="Source platform label.")
    user: str = Field(..., description="Author display name.")
    text: str = Field(..., description="Message body.")
    timestamp: datetime = Field(..., description="Publication time (UTC).")

    @field_validator("timestamp")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_event(self) -> dict[str, str]:
        """Render one ``chat_update`` item as the browser expects it."""
        return {
            "platform": self.platform,
            "user": self.user,
            "message": self.text,
            "timestamp": self.timestamp.strftime("%H:%M:%S"),
        }
