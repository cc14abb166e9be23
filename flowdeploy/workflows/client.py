"""AutomationClient: Pipedream Connect REST client using httpx.

Covers the three calls the deployment subsystem needs: an OAuth
client-credentials token, invoking a workflow on behalf of an external user,
and proxying requests to a user's connected app account.
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

import httpx

from flowdeploy.config import settings
from flowdeploy.errors import AutomationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
# Refresh tokens a little before they actually expire
TOKEN_EXPIRY_MARGIN = 60


def _error_message(resp: httpx.Response) -> str:
    """Best-effort extraction of the platform's error text."""
    header = resp.headers.get("x-pd-error")
    if header:
        return header
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:300] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)[:300]
    return str(body)[:300]


def endpoint_url(endpoint: str) -> str:
    """Turn a workflow ``run_url`` into an invocable HTTP URL.

    Full URLs are used as-is. Bare endpoint ids (``en123abc``) map onto the
    platform's ``m.pipedream.net`` host.
    """
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    return f"https://{endpoint}.m.pipedream.net"


class AutomationClient:
    """Server-side client for the automation platform.

    Args:
        client_id: OAuth client id (default from settings).
        client_secret: OAuth client secret (default from settings).
        project_id: Connect project id (default from settings).
        environment: Project environment, ``development`` or ``production``.
        api_url: Base REST URL.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        project_id: str | None = None,
        environment: str | None = None,
        api_url: str | None = None,
    ) -> None:
        self._client_id = client_id or settings.pipedream_client_id
        self._client_secret = client_secret or settings.pipedream_client_secret
        self._project_id = project_id or settings.pipedream_project_id
        self._environment = environment or settings.pipedream_environment
        self._api_url = (api_url or settings.pipedream_api_url).rstrip("/")
        self._token: str | None = None
        self._token_expires_at = 0.0

    # -- Auth ------------------------------------------------------------------

    async def _access_token(self) -> str:
        """Return a cached OAuth token, fetching a new one when expired."""
        if self._token and time.time() < self._token_expires_at:
            return self._token

        if not self._client_id or not self._client_secret:
            msg = "Automation platform credentials are not configured"
            raise AutomationError(msg)

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            resp = await client.post(
                f"{self._api_url}/oauth/token",
                json={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                },
            )
        if resp.status_code != 200:
            msg = f"Token request failed ({resp.status_code}): {_error_message(resp)}"
            raise AutomationError(msg, resp.status_code)

        data = resp.json()
        self._token = data["access_token"]
        self._token_expires_at = time.time() + int(data.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN
        logger.debug("Fetched automation platform access token")
        return self._token

    async def _headers(self, external_user_id: str | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {await self._access_token()}",
            "x-pd-environment": self._environment,
        }
        if external_user_id:
            headers["x-pd-external-user-id"] = external_user_id
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                resp = await client.request(method, url, headers=headers, params=params, json=json)
        except httpx.HTTPError as exc:
            msg = f"Automation platform request failed: {exc}"
            raise AutomationError(msg) from exc

        if resp.status_code >= 400:
            msg = f"Automation platform returned {resp.status_code}: {_error_message(resp)}"
            raise AutomationError(msg, resp.status_code)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            return {"body": resp.text}

    async def _send(
        self,
        method: str,
        url: str,
        *,
        external_user_id: str | None = None,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> Any:
        """Authorized request. A rejected token is refreshed and the call retried once."""
        headers = await self._headers(external_user_id)
        try:
            return await self._request(method, url, headers=headers, params=params, json=json)
        except AutomationError as exc:
            if exc.status_code != 401:
                raise
        logger.info("Access token rejected, fetching a new one")
        self._token = None
        headers = await self._headers(external_user_id)
        return await self._request(method, url, headers=headers, params=params, json=json)

    # -- Workflows -------------------------------------------------------------

    async def invoke_workflow(
        self,
        external_user_id: str,
        endpoint: str,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Trigger a workflow's HTTP endpoint on behalf of *external_user_id*."""
        if not endpoint:
            msg = "Workflow has no invocation endpoint"
            raise AutomationError(msg)
        url = endpoint_url(endpoint)
        logger.info("Invoking workflow endpoint %s for user %s", url, external_user_id)
        return await self._send("POST", url, external_user_id=external_user_id, json=body or {})

    # -- Connected-account proxy -----------------------------------------------

    def _proxy_url(self, target_url: str) -> str:
        encoded = base64.urlsafe_b64encode(target_url.encode()).decode().rstrip("=")
        return f"{self._api_url}/connect/{self._project_id}/proxy/{encoded}"

    async def proxy_get(self, external_user_id: str, account_id: str, url: str) -> Any:
        """GET *url* through the user's connected account."""
        return await self._send(
            "GET",
            self._proxy_url(url),
            params={"external_user_id": external_user_id, "account_id": account_id},
        )

    async def proxy_post(
        self,
        external_user_id: str,
        account_id: str,
        url: str,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """POST *body* to *url* through the user's connected account."""
        return await self._send(
            "POST",
            self._proxy_url(url),
            params={"external_user_id": external_user_id, "account_id": account_id},
            json=body or {},
        )
