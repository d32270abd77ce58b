"""
Shared httpx transport for the Atlassian REST gateways.

Handles authentication (basic auth: account email + API token), JSON
encoding, and the conversion of every failure into
:class:`~academichain.core.exceptions.RemoteCallError`:

  - non-2xx response  → RemoteCallError(status=<code>, body=<response text>)
  - transport failure → RemoteCallError(status=None, body=<error text>)
  - 2xx body not JSON → RemoteCallError(status=<code>, body=<response text>)

No retries and no caching. Each call is independent; idempotency is the
caller's concern.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from academichain.core.constants import DEFAULT_REQUEST_TIMEOUT_SECONDS
from academichain.core.exceptions import RemoteCallError

logger = structlog.get_logger()

_ACCEPT = "application/json"


class RestGateway:
    """
    Async JSON-over-HTTP client base.

    Use as an async context manager::

        async with IssueGateway.from_config(cfg) as jira:
            await jira.get_issue("CS101-7")

    Parameters
    ----------
    base_url:
        Site root, e.g. ``https://myuni.atlassian.net``.
    email, api_token:
        Basic-auth credentials. Both empty disables auth (tests, proxies).
    transport:
        Optional httpx transport; tests pass an ``httpx.MockTransport``.
    """

    service = "rest"

    def __init__(
        self,
        base_url: str,
        *,
        email: str = "",
        api_token: str = "",
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(email, api_token) if email or api_token else None
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> RestGateway:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Accept": _ACCEPT},
            auth=self._auth,
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *_: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def _post(self, path: str, json: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", path, json=json)

    async def _put(self, path: str, json: dict[str, Any] | None = None) -> Any:
        return await self._request("PUT", path, json=json)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        if self._client is None:
            raise RuntimeError(f"{type(self).__name__} used outside 'async with'")
        try:
            resp = await self._client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            logger.warning(
                "remote_call_transport_error",
                service=self.service,
                method=method,
                path=path,
                error=str(exc),
            )
            raise RemoteCallError(
                f"{self.service} {method} {path} failed: {exc}", body=str(exc)
            ) from exc

        if not resp.is_success:
            logger.warning(
                "remote_call_failed",
                service=self.service,
                method=method,
                path=path,
                status=resp.status_code,
            )
            raise RemoteCallError(
                f"{self.service} {method} {path} was rejected",
                status=resp.status_code,
                body=resp.text,
            )

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            # A login or proxy page can come back as 200 HTML
            logger.warning(
                "remote_call_undecodable",
                service=self.service,
                method=method,
                path=path,
                status=resp.status_code,
                content_type=resp.headers.get("content-type", ""),
            )
            raise RemoteCallError(
                f"{self.service} {method} {path} returned a body that is not JSON",
                status=resp.status_code,
                body=resp.text,
            ) from exc
