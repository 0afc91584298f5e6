"""
Tests for the YouTube Data API client.

Validates request shapes, response parsing, the one-shot refresh on 401
and the mapping of HTTP failures onto the ``PlatformError`` hierarchy.
"""

from __future__ import annotations

import httpx
import pytest

from chat.credentials import CredentialContext
from chat.youtube_client import (
    Broadcast,
    PlatformAuthError,
    PlatformError,
    PlatformNotFound,
    PlatformRateLimited,
    YouTubeClient,
    error_for_response,
)

_BASE = "https://yt.test/youtube/v3"


def _error_body(reason: str, message: str = "nope") -> dict:
    return {"error": {"code": 403, "message": message, "errors": [{"reason": reason}]}}


class TestListMyBroadcasts:

    @pytest.mark.asyncio
    async def test_request_and_parsing(self, credentials, mock_http, live_broadcast_item, ended_broadcast_item) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": [ended_broadcast_item, live_broadcast_item]})

        client = YouTubeClient(credentials, base_url=_BASE, http_client=mock_http(handler))
        broadcasts = await client.list_my_broadcasts()

        req = seen[0]
        assert req.url.path == "/youtube/v3/liveBroadcasts"
        assert req.url.params["part"] == "id,snippet"
        assert req.url.params["mine"] == "true"
        assert req.url.params["maxResults"] == "10"
        assert req.headers["Authorization"] == "Bearer stale-token"
        assert [b.id for b in broadcasts] == ["bc-old", "bc-live"]
        assert broadcasts[1].is_live is True
        assert broadcasts[0].is_live is False
        await client.close()

    @pytest.mark.asyncio
    async def test_missing_items(self, credentials, mock_http) -> None:
        client = YouTubeClient(
            credentials, base_url=_BASE, http_client=mock_http(lambda r: httpx.Response(200, json={})),
        )
        assert await client.list_my_broadcasts() == []
        await client.close()


class TestListChatMessages:

    @pytest.mark.asyncio
    async def test_page_token_forwarded(self, credentials, mock_http, chat_item) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "items": [chat_item("alice", "hi"), chat_item("bob", "yo")],
                    "nextPageToken": "page-2",
                    "pollingIntervalMillis": 3000,
                },
            )

        client = YouTubeClient(credentials, base_url=_BASE, http_client=mock_http(handler))
        page = await client.list_chat_messages("chat-123", "page-1")

        assert seen[0].url.params["liveChatId"] == "chat-123"
        assert seen[0].url.params["pageToken"] == "page-1"
        assert seen[0].url.params["part"] == "snippet,authorDetails"
        assert [i.author for i in page.items] == ["alice", "bob"]
        assert page.next_page_token == "page-2"
        assert page.polling_interval_ms == 3000
        await client.close()

    @pytest.mark.asyncio
    async def test_first_page_has_no_token(self, credentials, mock_http) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": []})

        client = YouTubeClient(credentials, base_url=_BASE, http_client=mock_http(handler))
        page = await client.list_chat_messages("chat-123")
        assert "pageToken" not in seen[0].url.params
        assert page.next_page_token is None
        await client.close()


class TestTokenRefreshOn401:

    @pytest.mark.asyncio
    async def test_refreshes_once_and_retries(self, credentials, refresher, mock_http) -> None:
        auth_headers: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            auth_headers.append(request.headers["Authorization"])
            if request.headers["Authorization"] == "Bearer stale-token":
                return httpx.Response(401, json=_error_body("authError"))
            return httpx.Response(200, json={"items": []})

        client = YouTubeClient(credentials, base_url=_BASE, http_client=mock_http(handler))
        assert await client.list_my_broadcasts() == []
        assert auth_headers == ["Bearer stale-token", "Bearer fresh-token"]
        assert refresher.calls == ["refresh-1"]
        await client.close()

    @pytest.mark.asyncio
    async def test_second_401_raises_auth_error(self, credentials, refresher, mock_http) -> None:
        client = YouTubeClient(
            credentials,
            base_url=_BASE,
            http_client=mock_http(lambda r: httpx.Response(401, json=_error_body("authError"))),
        )
        with pytest.raises(PlatformAuthError):
            await client.list_my_broadcasts()
        assert len(refresher.calls) == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_no_refresh_without_refresh_token(self, mock_http) -> None:
        creds = CredentialContext.from_tokens("at", None)
        client = YouTubeClient(
            creds, base_url=_BASE, http_client=mock_http(lambda r: httpx.Response(401)),
        )
        with pytest.raises(PlatformAuthError):
            await client.list_my_broadcasts()
        await client.close()


class TestErrorMapping:

    def _resp(self, status: int, json=None) -> httpx.Response:
        return httpx.Response(status, json=json, request=httpx.Request("GET", _BASE))

    def test_429(self) -> None:
        assert isinstance(error_for_response(self._resp(429)), PlatformRateLimited)

    def test_quota_reason_on_403(self) -> None:
        err = error_for_response(self._resp(403, _error_body("quotaExceeded", "Quota")))
        assert isinstance(err, PlatformRateLimited)
        assert err.reason == "quotaExceeded"
        assert err.status_code == 403

    def test_forbidden(self) -> None:
        err = error_for_response(self._resp(403, _error_body("insufficientPermissions")))
        assert isinstance(err, PlatformAuthError)

    def test_not_found(self) -> None:
        err = error_for_response(self._resp(404, _error_body("liveChatNotFound", "gone")), "/liveChat/messages")
        assert isinstance(err, PlatformNotFound)
        assert str(err) == "/liveChat/messages: gone"

    def test_server_error(self) -> None:
        err = error_for_response(self._resp(500))
        assert type(err) is PlatformError
        assert err.code == "PlatformError"

    def test_non_json_body(self) -> None:
        resp = httpx.Response(502, text="<html>bad gateway</html>", request=httpx.Request("GET", _BASE))
        assert str(error_for_response(resp)) == "HTTP 502"

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, credentials, mock_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        client = YouTubeClient(credentials, base_url=_BASE, http_client=mock_http(handler))
        with pytest.raises(PlatformError) as exc_info:
            await client.list_my_broadcasts()
        assert exc_info.value.status_code is None
        await client.close()


class TestBroadcast:

    def test_without_chat_is_not_live(self) -> None:
        b = Broadcast.from_api({"id": "x", "snippet": {"actualStartTime": "2024-05-01T18:00:00Z"}})
        assert b.is_live is False

    def test_not_started_is_not_live(self) -> None:
        b = Broadcast.from_api({"id": "x", "snippet": {"liveChatId": "c"}})
        assert b.is_live is False
