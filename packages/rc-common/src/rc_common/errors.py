"""
Error taxonomy shared by the Relaycast packages.

Validation and spawn errors are surfaced synchronously on a session's
status channel.  Broadcast-location and chat-fetch errors are handled
inside the chat package and only surfaced once retries are exhausted.
"""

from __future__ import annotations


class RelaycastError(Exception):
    """Base class for all Relaycast errors.

    Attributes:
        code: Stable identifier sent to clients in the ``error`` field.
    """

    code: str = "RelaycastError"


class InvalidDestinations(RelaycastError):
    """Destination list is empty or contains a malformed URL."""

    code = "InvalidDestinations"


class RelaySpawnFailure(RelaycastError):
    """The relay subprocess could not be created."""

    code = "RelaySpawnFailure"


class RelayRuntimeFailure(RelaycastError):
    """The relay subprocess exited unexpectedly."""

    code = "RelayRuntimeFailure"

    def __init__(self, returncode: int | None) -> None:
        self.returncode = returncode
        super().__init__(f"Relay process exited with code {returncode}")


class BroadcastNotFound(RelaycastError):
    """No live broadcast with a chat feed was found on this attempt."""

    code = "BroadcastNotFound"


class ChatSubsystemExhausted(RelaycastError):
    """Broadcast location gave up after the maximum number of attempts."""

    code = "ChatSubsystemExhausted"

    def __init__(self, attempts: int, last_error: str = "") -> None:
        self.attempts = attempts
        self.last_error = last_error
        message = f"Failed to find active broadcast after {attempts} attempts"
        if last_error:
            message = f"{message}: {last_error}"
        super().__init__(message)


class ChatFetchTransient(RelaycastError):
    """A single chat poll cycle failed."""

    code = "ChatFetchTransient"


class CredentialRefreshError(RelaycastError):
    """The access token could not be refreshed."""

    code = "CredentialRefreshError"
