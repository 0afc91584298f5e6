"""
Shared Pydantic data models for Relaycast.

This package contains the cross-package status and chat models used by
the relay, chat and gateway packages.
"""

from rc_common.models.chat import ChatMessage, ChatStatus, PollState
from rc_common.models.relay import RelayState, RelayStatus

__all__ = [
    "ChatMessage",
    "ChatStatus",
    "PollState",
    "RelayState",
    "RelayStatus",
]
