"""
Knowledge-base gateway (Confluence REST).

Space, template and page provisioning plus page updates. Page updates use
optimistic versioning: the caller passes the page as last read and the
gateway submits ``version.number + 1``. A concurrent edit makes the service
reject the write with 409, surfaced as :class:`RemoteCallError`.
"""

from __future__ import annotations

from typing import Any

import httpx

from academichain.core.config import AcademicConfig
from academichain.core.constants import CONFLUENCE_API, STORAGE_REPRESENTATION
from academichain.gateways.base import RestGateway


def _storage(body: str) -> dict[str, Any]:
    return {"storage": {"value": body, "representation": STORAGE_REPRESENTATION}}


class KnowledgeBaseGateway(RestGateway):
    """Async façade over the wiki REST surface."""

    service = "confluence"

    @classmethod
    def from_config(
        cls, config: AcademicConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> KnowledgeBaseGateway:
        site = config.require_atlassian()
        return cls(
            site.site_url,
            email=site.email,
            api_token=site.api_token.get_secret_value(),
            timeout=site.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> KnowledgeBaseGateway:
        await super().__aenter__()
        return self

    async def create_space(self, key: str, name: str, description: str = "") -> dict[str, Any]:
        return await self._post(
            f"{CONFLUENCE_API}/space",
            json={
                "key": key,
                "name": name,
                "description": {"plain": {"value": description, "representation": "plain"}},
                "type": "global",
            },
        )

    async def create_template(
        self, space_key: str, name: str, description: str, body: str
    ) -> dict[str, Any]:
        """Create a page template. Bodies may use ``{{placeholder}}`` and ``{{#each}}`` blocks."""
        return await self._post(
            f"{CONFLUENCE_API}/template",
            json={
                "name": name,
                "description": description,
                "templateType": "page",
                "body": _storage(body),
                "space": {"key": space_key},
            },
        )

    async def create_page(
        self,
        space_key: str,
        title: str,
        body: str,
        parent_id: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "page",
            "title": title,
            "space": {"key": space_key},
            "body": _storage(body),
        }
        if parent_id:
            payload["ancestors"] = [{"id": parent_id}]
        return await self._post(f"{CONFLUENCE_API}/content", json=payload)

    async def get_page(self, page_id: str) -> dict[str, Any]:
        return await self._get(
            f"{CONFLUENCE_API}/content/{page_id}",
            params={"expand": "body.storage,version,space"},
        )

    async def update_page(self, page: dict[str, Any], body: str) -> dict[str, Any]:
        """Replace the storage body of *page* (as returned by :meth:`get_page`)."""
        page_id = page["id"]
        return await self._put(
            f"{CONFLUENCE_API}/content/{page_id}",
            json={
                "id": page_id,
                "type": "page",
                "title": page["title"],
                "space": {"key": (page.get("space") or {}).get("key")},
                "body": _storage(body),
                "version": {"number": page["version"]["number"] + 1},
            },
        )
