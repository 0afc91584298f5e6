"""
Relay status models for Relaycast.

Defines the lifecycle states of a session's relay subprocess and the
status value the supervisor reports on every transition.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import BaseModel, Field


class RelayState(str, enum.Enum):
    """Lifecycle state of a relay subprocess."""

    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPED = "stopped"
    FAILED = "failed"


def _utc_now() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


class RelayStatus(BaseModel):
    """A single relay state transition.

    Attributes:
        state: The state entered.
        message: Human-readable description for the operator UI.
        error: Error code when the transition was caused by a failure.
        at: UTC time of the transition.
    """

    model_config = {"frozen": True}

    state: RelayState = Field(..., description="State entered.")
    message: str = Field(default="", description="Operator-facing message.")
    error: str | None = Field(default=None, description="Error code, if any.")
    at: datetime = Field(default_factory=_utc_now, description="Transition time (UTC).")

    def to_event(self) -> dict[str, str]:
        """Render the outbound ``stream_status`` payload."""
        payload = {"status": self.state.value, "message": self.message}
        if self.error:
            payload["error"] = self.error
        return payload
