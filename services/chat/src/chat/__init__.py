"""
Relaycast chat package.

Locates the operator's live YouTube broadcast and polls its live chat,
holding and refreshing the OAuth credentials it needs to do so.
"""

from __future__ import annotations

from chat.credentials import CredentialContext, OAuthTokens
from chat.locator import BroadcastLocator, LocateRetry
from chat.oauth import GoogleOAuthClient
from chat.poller import ChatPoller
from chat.subsystem import ChatSubsystem
from chat.youtube_client import (
    PlatformAuthError,
    PlatformError,
    PlatformNotFound,
    PlatformRateLimited,
    YouTubeClient,
)

__all__ = [
    "BroadcastLocator",
    "ChatPoller",
    "ChatSubsystem",
    "CredentialContext",
    "GoogleOAuthClient",
    "LocateRetry",
    "OAuthTokens",
    "PlatformAuthError",
    "PlatformError",
    "PlatformNotFound",
    "PlatformRateLimited",
    "YouTubeClient",
]
