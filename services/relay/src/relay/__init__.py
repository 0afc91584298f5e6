"""
Relaycast relay package.

Validates destination lists, builds the FFmpeg tee fan-out command and
supervises one relay subprocess per session.
"""

from __future__ import annotations

from relay.command import EncoderProfile, TeeSlave, build_relay_command
from relay.destinations import DestinationSpec, parse_destinations
from relay.supervisor import RelaySupervisor

__all__ = [
    "DestinationSpec",
    "EncoderProfile",
    "RelaySupervisor",
    "TeeSlave",
    "build_relay_command",
    "parse_destinations",
]
