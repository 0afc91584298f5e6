"""
Destination validation for the Relaycast relay.

A ``DestinationSpec`` is the validated, immutable, ordered list of
RTMP(S) endpoints one session fans out to.  It is built once per
``start`` and handed to the relay supervisor unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, ValidationError, field_validator

from rc_common.errors import InvalidDestinations

ALLOWED_SCHEMES: frozenset[str] = frozenset({"rtmp", "rtmps"})

# Characters with special meaning inside an FFmpeg tee target.
_TEE_METACHARACTERS: frozenset[str] = frozenset("|[];")


def validate_destination_url(url: str) -> str:
    """Return *url* stripped, or raise ``ValueError`` if it is not a streaming URL.

    Args:
        url: Candidate endpoint, e.g. ``rtmp://a.rtmp.youtube.com/live2/key``.

    Raises:
        ValueError: On a non-string, empty, unsupported-scheme, host-less
            or otherwise malformed URL.
    """
    if not isinstance(url, str):
        raise ValueError(f"Destination must be a string, got {type(url).__name__}")
    candidate = url.strip()
    if not candidate:
        raise ValueError("Destination URL is empty")
    if any(ch.isspace() for ch in candidate):
        raise ValueError(f"Destination URL contains whitespace: {candidate!r}")
    bad = sorted(set(candidate) & _TEE_METACHARACTERS)
    if bad:
        raise ValueError(f"Destination URL contains reserved characters {bad}: {candidate!r}")

    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as exc:
        raise ValueError(f"Malformed destination URL {candidate!r}: {exc}") from exc

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise ValueError(
            f"Unsupported scheme {parts.scheme!r} in {candidate!r}; "
            f"expected one of {sorted(ALLOWED_SCHEMES)}"
        )
    if not parts.hostname:
        raise ValueError(f"Destination URL has no host: {candidate!r}")
    if port == 0:
        raise ValueError(f"Destination URL has an invalid port: {candidate!r}")
    return candidate


class DestinationSpec(BaseModel):
    """Validated, immutable list of destination endpoints.

    Attributes:
        urls: Endpoint URLs in the order the operator supplied them.
    """

    model_config = {"frozen": True}

    urls: tuple[str, ...] = Field(..., min_length=1, description="Destination URLs.")

    @field_validator("urls", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: Any) -> Any:
        if isinstance(value, (str, bytes)) or value is None:
            raise ValueError("Destinations must be a list of URLs")
        return tuple(value)

    @field_validator("urls")
    @classmethod
    def _validate_urls(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(validate_destination_url(u) for u in value)


def parse_destinations(raw: Iterable[str] | None) -> DestinationSpec:
    """Build a ``DestinationSpec`` from untrusted transport input.

    Args:
        raw: Whatever the client sent as its destination list.

    Returns:
        The validated spec.

    Raises:
        InvalidDestinations: If *raw* is missing, empty or holds a malformed URL.
    """
    if raw is None:
        raise InvalidDestinations("No destination URLs provided")
    try:
        return DestinationSpec(urls=raw)
    except ValidationError as exc:
        errors = exc.errors()
        if any(err.get("type") == "too_short" for err in errors):
            raise InvalidDestinations("No destination URLs provided") from exc
        detail = "; ".join(str(err.get("msg", "")) for err in errors)
        raise InvalidDestinations(f"Invalid destination URLs: {detail}") from exc
