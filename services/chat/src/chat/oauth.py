"""
Google OAuth client for Relaycast.

Builds the consent URL for the operator's YouTube account, exchanges
authorization codes for tokens, and refreshes access tokens.  Token
endpoint calls go through :mod:`httpx` with :mod:`tenacity` retries on
transport errors and 5xx responses.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from rc_common.config import Settings
from rc_common.errors import CredentialRefreshError

from chat.credentials import OAuthTokens

logger = structlog.get_logger()

YOUTUBE_READONLY_SCOPE = "https://www.googleapis.com/auth/youtube.readonly"

_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_TIMEOUT_S = 10.0


class _TokenServerError(Exception):
    """Token endpoint answered with a 5xx; worth retrying."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"Token endpoint returned {response.status_code}")


class GoogleOAuthClient:
    """OAuth 2.0 web-server flow against Google's endpoints.

    Implements the ``TokenRefresher`` capability consumed by
    ``CredentialContext``.

    Args:
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        redirect_uri: Registered redirect URI (the gateway's callback).
        auth_url: Consent screen URL.
        token_url: Token endpoint URL.
        timeout: Per-request timeout in seconds.
        max_attempts: Token request attempts on retryable failures.
        backoff: Exponential back-off multiplier in seconds.
        http_client: Optional pre-built ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        auth_url: str = "https://accounts.google.com/o/oauth2/v2/auth",
        token_url: str = "https://oauth2.googleapis.com/token",
        timeout: float = _DEFAULT_TIMEOUT_S,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        backoff: float = 0.5,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.auth_url = auth_url
        self.token_url = token_url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> GoogleOAuthClient:
        return cls(
            settings.youtube_client_id,
            settings.youtube_client_secret,
            settings.youtube_redirect_uri,
            auth_url=settings.oauth_auth_url,
            token_url=settings.oauth_token_url,
            timeout=settings.http_timeout_s,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Return (and lazily create) the shared ``httpx.AsyncClient``."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def authorization_url(self, *, scopes: tuple[str, ...] = (YOUTUBE_READONLY_SCOPE,)) -> str:
        """Return the consent URL requesting offline access."""
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": " ".join(scopes),
                "access_type": "offline",
                "prompt": "consent",
            }
        )
        return f"{self.auth_url}?{query}"

    async def exchange_code(self, code: str) -> OAuthTokens:
        """Exchange an authorization *code* for tokens.

        Raises:
            CredentialRefreshError: If the token endpoint rejects the code.
        """
        tokens = await self._request_tokens(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        logger.info("oauth_code_exchanged", has_refresh_token=tokens.refresh_token is not None)
        return tokens

    async def refresh(self, refresh_token: str) -> OAuthTokens:
        """Exchange *refresh_token* for a new access token."""
        return await self._request_tokens(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
        )

    async def _post_with_retry(self, form: dict[str, str]) -> httpx.Response:
        """POST *form* to the token endpoint with retry.

        The retry decorator is built per call so ``max_attempts`` and
        ``backoff`` can be set at construction time.
        """

        @retry(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff, max=5),
            retry=retry_if_exception_type((_TokenServerError, httpx.TransportError)),
            reraise=True,
        )
        async def _inner() -> httpx.Response:
            client = await self._get_client()
            resp = await client.post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    **form,
                },
                headers={"Accept": "application/json"},
            )
            if resp.status_code >= 500:
                raise _TokenServerError(resp)
            return resp

        return await _inner()

    async def _request_tokens(self, form: dict[str, str]) -> OAuthTokens:
        grant = form.get("grant_type", "")
        log = logger.bind(grant_type=grant)
        try:
            resp = await self._post_with_retry(form)
        except (_TokenServerError, httpx.TransportError) as exc:
            log.error("oauth_token_request_failed", error=str(exc))
            raise CredentialRefreshError(f"Token request failed: {exc}") from exc

        if not resp.is_success:
            detail = _error_detail(resp)
            log.error("oauth_token_rejected", status=resp.status_code, error=detail)
            raise CredentialRefreshError(
                f"Token endpoint returned {resp.status_code}: {detail}"
            )
        return OAuthTokens.from_token_response(resp.json())

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _error_detail(resp: httpx.Response) -> str:
    try:
        body: Any = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        return str(body.get("error_description") or body.get("error") or body)
    return str(body)
