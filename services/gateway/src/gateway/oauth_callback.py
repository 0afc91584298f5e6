"""
OAuth redirect handler for the Relaycast gateway.

The operator opens the consent URL logged at startup; Google redirects
back here with an authorization code, which is exchanged for tokens.
The tokens are written to the log so the operator can copy them into
``RC_YOUTUBE_ACCESS_TOKEN`` / ``RC_YOUTUBE_REFRESH_TOKEN``.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from rc_common.errors import CredentialRefreshError

logger = structlog.get_logger()

router = APIRouter(tags=["oauth"])

SUCCESS_MESSAGE = "Authorization successful! Check server logs for tokens."


@router.get("/oauth2callback", response_class=PlainTextResponse)
async def oauth2callback(
    request: Request,
    code: str | None = Query(default=None),
    error: str | None = Query(default=None),
) -> str:
    """Exchange the authorization *code* and log the resulting tokens."""
    if error:
        logger.warning("oauth_consent_denied", error=error)
        raise HTTPException(status_code=400, detail=f"OAuth failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    oauth_client = getattr(request.app.state, "oauth_client", None)
    if oauth_client is None:
        raise HTTPException(status_code=503, detail="OAuth client not configured")

    try:
        tokens = await oauth_client.exchange_code(code)
    except CredentialRefreshError as exc:
        logger.error("oauth_exchange_failed", error=str(exc))
        raise HTTPException(status_code=500, detail="OAuth failed") from exc

    # Operator-facing: these are the values to persist in the environment.
    logger.warning(
        "oauth_tokens_issued",
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=tokens.expires_at.isoformat() if tokens.expires_at else None,
    )
    return SUCCESS_MESSAGE
