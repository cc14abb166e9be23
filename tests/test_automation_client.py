"""Tests for AutomationClient: Pipedream Connect REST calls."""

import base64
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from flowdeploy.errors import AutomationError
from flowdeploy.workflows.client import AutomationClient, endpoint_url

API = "https://api.pipedream.com/v1"


def _response(status: int, json_body=None, method: str = "POST", url: str = API, **kwargs):
    return httpx.Response(
        status_code=status,
        json=json_body,
        request=httpx.Request(method, url),
        **kwargs,
    )


def _mock_httpx_client(mock_client_cls: MagicMock, *responses: httpx.Response) -> AsyncMock:
    """Wire up an AsyncClient mock: the first response answers the token request."""
    mock_client = AsyncMock()
    mock_client.post.return_value = responses[0]
    mock_client.request.side_effect = list(responses[1:])
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


def _client() -> AutomationClient:
    return AutomationClient(
        client_id="cid",
        client_secret="secret",
        project_id="proj_1",
        environment="development",
        api_url=API,
    )


TOKEN = {"access_token": "tok", "expires_in": 3600}


# -- endpoint_url --------------------------------------------------------------


def test_endpoint_url() -> None:
    assert endpoint_url("https://x.m.pipedream.net") == "https://x.m.pipedream.net"
    assert endpoint_url("en123") == "https://en123.m.pipedream.net"


# -- invoke_workflow -----------------------------------------------------------


async def test_invoke_workflow() -> None:
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        mock = _mock_httpx_client(mock_cls, _response(200, TOKEN), _response(200, {"ran": True}))
        result = await _client().invoke_workflow("user-1", "en123")

    assert result == {"ran": True}
    token_call = mock.post.await_args
    assert token_call.args[0] == f"{API}/oauth/token"
    assert token_call.kwargs["json"]["grant_type"] == "client_credentials"

    method, url = mock.request.await_args.args
    assert method == "POST"
    assert url == "https://en123.m.pipedream.net"
    headers = mock.request.await_args.kwargs["headers"]
    assert headers["Authorization"] == "Bearer tok"
    assert headers["x-pd-external-user-id"] == "user-1"
    assert headers["x-pd-environment"] == "development"


async def test_token_is_cached() -> None:
    client = _client()
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        mock = _mock_httpx_client(
            mock_cls, _response(200, TOKEN), _response(200, {}), _response(200, {})
        )
        await client.invoke_workflow("user-1", "en123")
        await client.invoke_workflow("user-1", "en123")

    assert mock.post.await_count == 1
    assert mock.request.await_count == 2


async def test_error_status_raises_with_header_message() -> None:
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(
            mock_cls,
            _response(200, TOKEN),
            _response(404, {"message": "ignored"}, headers={"x-pd-error": "No such endpoint"}),
        )
        with pytest.raises(AutomationError) as exc_info:
            await _client().invoke_workflow("user-1", "en123")

    assert exc_info.value.status_code == 404
    assert "No such endpoint" in exc_info.value.message


async def test_token_failure_raises() -> None:
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        _mock_httpx_client(mock_cls, _response(401, {"error": "invalid_client"}))
        with pytest.raises(AutomationError) as exc_info:
            await _client().invoke_workflow("user-1", "en123")

    assert exc_info.value.status_code == 401
    assert "invalid_client" in exc_info.value.message


async def test_missing_credentials() -> None:
    client = _client()
    client._client_id = ""
    with pytest.raises(AutomationError):
        await client.invoke_workflow("user-1", "en123")


async def test_missing_endpoint() -> None:
    with pytest.raises(AutomationError):
        await _client().invoke_workflow("user-1", "")


async def test_network_error_wrapped() -> None:
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        mock = _mock_httpx_client(mock_cls, _response(200, TOKEN))
        mock.request.side_effect = httpx.ConnectError("unreachable")
        with pytest.raises(AutomationError):
            await _client().invoke_workflow("user-1", "en123")


# -- proxy ---------------------------------------------------------------------


async def test_proxy_get() -> None:
    target = "https://gmail.googleapis.com/gmail/v1/users/me/messages"
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        mock = _mock_httpx_client(
            mock_cls, _response(200, TOKEN), _response(200, {"messages": []}, method="GET")
        )
        result = await _client().proxy_get("user-1", "apn_gmail", target)

    assert result == {"messages": []}
    method, url = mock.request.await_args.args
    assert method == "GET"
    encoded = url.rsplit("/", 1)[1]
    padded = encoded + "=" * (-len(encoded) % 4)
    assert base64.urlsafe_b64decode(padded).decode() == target
    assert url.startswith(f"{API}/connect/proj_1/proxy/")
    assert mock.request.await_args.kwargs["params"] == {
        "external_user_id": "user-1",
        "account_id": "apn_gmail",
    }


async def test_proxy_post_sends_body() -> None:
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        mock = _mock_httpx_client(mock_cls, _response(200, TOKEN), _response(200, {"ok": True}))
        result = await _client().proxy_post(
            "user-1", "apn_slack", "https://slack.com/api/chat.postMessage", {"text": "hi"}
        )

    assert result == {"ok": True}
    assert mock.request.await_args.kwargs["json"] == {"text": "hi"}


# -- token refresh -------------------------------------------------------------


async def test_rejected_token_is_refreshed_once() -> None:
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        mock = _mock_httpx_client(
            mock_cls,
            _response(200, TOKEN),
            _response(401, {"error": "token expired"}),
            _response(200, {"ok": True}),
        )
        result = await _client().invoke_workflow("user-1", "en123")

    assert result == {"ok": True}
    assert mock.post.await_count == 2
    assert mock.request.await_count == 2


async def test_second_rejection_raises() -> None:
    with patch("flowdeploy.workflows.client.httpx.AsyncClient") as mock_cls:
        mock = _mock_httpx_client(
            mock_cls,
            _response(200, TOKEN),
            _response(401, {"error": "nope"}),
            _response(401, {"error": "still nope"}),
        )
        with pytest.raises(AutomationError) as exc_info:
            await _client().invoke_workflow("user-1", "en123")

    assert exc_info.value.status_code == 401
    assert mock.request.await_count == 2
