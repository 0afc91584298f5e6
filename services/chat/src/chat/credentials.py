"""
Credential handling for the Relaycast chat package.

A ``CredentialContext`` holds one set of OAuth tokens for the YouTube
Data API plus an injected refresher capability.  The gateway passes one
in at session start: either the process-wide shared default credential
or a per-session credential built from tokens the browser supplied.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, Field

from rc_common.errors import CredentialRefreshError

logger = structlog.get_logger()

# Refresh slightly before the real expiry to avoid racing it.
EXPIRY_LEEWAY = timedelta(seconds=60)


def _utc_now() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)


class OAuthTokens(BaseModel):
    """Access/refresh token pair.

    Attributes:
        access_token: Bearer token for API calls.
        refresh_token: Long-lived token used to mint new access tokens.
        expires_at: Access token expiry (UTC), if known.
        scope: Granted scopes, space separated.
    """

    model_config = {"frozen": True}

    access_token: str = Field(default="", description="Bearer access token.")
    refresh_token: str | None = Field(default=None, description="Refresh token.")
    expires_at: datetime | None = Field(default=None, description="Expiry (UTC).")
    scope: str | None = Field(default=None, description="Granted scopes.")

    @classmethod
    def from_token_response(
        cls, data: dict[str, Any], *, now: datetime | None = None,
    ) -> OAuthTokens:
        """Build tokens from an OAuth token-endpoint JSON body."""
        expires_at = None
        expires_in = data.get("expires_in")
        if expires_in is not None:
            expires_at = (now or _utc_now()) + timedelta(seconds=int(expires_in))
        return cls(
            access_token=data.get("access_token", ""),
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            scope=data.get("scope"),
        )

    def is_expired(self, *, now: datetime | None = None) -> bool:
        """``True`` if the access token is missing or past (leeway-adjusted) expiry."""
        if not self.access_token:
            return True
        if self.expires_at is None:
            return False
        return (now or _utc_now()) >= self.expires_at - EXPIRY_LEEWAY


class TokenRefresher(Protocol):
    """Capability that exchanges a refresh token for fresh tokens."""

    async def refresh(self, refresh_token: str) -> OAuthTokens:
        ...


class CredentialContext:
    """Tokens for one caller plus the ability to refresh them.

    Refreshes are serialized so concurrent callers sharing a context
    (the shared default credential) trigger a single token request.

    Args:
        tokens: Initial tokens.
        refresher: Refresh capability; ``None`` disables refreshing.
        shared: ``True`` for the process-wide default credential.
        label: Name used in logs (never the token itself).
    """

    def __init__(
        self,
        tokens: OAuthTokens,
        *,
        refresher: TokenRefresher | None = None,
        shared: bool = False,
        label: str = "session",
    ) -> None:
        self._tokens = tokens
        self._refresher = refresher
        self._lock = asyncio.Lock()
        self.shared = shared
        self.label = label

    @classmethod
    def from_tokens(
        cls,
        access_token: str | None,
        refresh_token: str | None = None,
        *,
        refresher: TokenRefresher | None = None,
        shared: bool = False,
        label: str = "session",
    ) -> CredentialContext:
        """Convenience constructor from raw token strings."""
        tokens = OAuthTokens(access_token=access_token or "", refresh_token=refresh_token or None)
        return cls(tokens, refresher=refresher, shared=shared, label=label)

    @property
    def tokens(self) -> OAuthTokens:
        return self._tokens

    @property
    def access_token(self) -> str:
        return self._tokens.access_token

    @property
    def can_refresh(self) -> bool:
        """``True`` when both a refresher and a refresh token are available."""
        return self._refresher is not None and bool(self._tokens.refresh_token)

    async def authorization_header(self) -> dict[str, str]:
        """Return the ``Authorization`` header, refreshing first if expired."""
        if self._tokens.is_expired() and self.can_refresh:
            await self.refresh(stale_access_token=self._tokens.access_token)
        return {"Authorization": f"Bearer {self._tokens.access_token}"}

    async def refresh(self, *, stale_access_token: str | None = None) -> OAuthTokens:
        """Exchange the refresh token for a new access token.

        Args:
            stale_access_token: The token the caller found unusable.  If
                another caller already replaced it, no request is made.

        Raises:
            CredentialRefreshError: If refreshing is impossible or fails.
        """
        async with self._lock:
            if stale_access_token is not None and self._tokens.access_token != stale_access_token:
                return self._tokens
            if not self.can_refresh:
                raise CredentialRefreshError(f"Credential {self.label!r} cannot be refreshed")

            assert self._refresher is not None
            assert self._tokens.refresh_token is not None
            fresh = await self._refresher.refresh(self._tokens.refresh_token)
            self._tokens = fresh.model_copy(
                update={"refresh_token": fresh.refresh_token or self._tokens.refresh_token},
            )
            logger.info(
                "credentials_refreshed",
                label=self.label,
                shared=self.shared,
                refresh_token_rotated=fresh.refresh_token is not None,
                expires_at=self._tokens.expires_at.isoformat() if self._tokens.expires_at else None,
            )
            return self._tokens
