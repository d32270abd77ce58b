"""
Issue-tracker gateway (Jira Cloud REST v3).

One method per logical operation, one HTTP call per method. Methods return
the decoded JSON payload or raise :class:`RemoteCallError`. The only
multi-call helper is :meth:`IssueGateway.search_all`, which pages through a
search until the result set is exhausted.

Custom-field ids never appear here as literals; callers pass payloads built
through :class:`~academichain.core.fields.FieldMap`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from academichain.core.config import AcademicConfig
from academichain.core.constants import (
    DEFAULT_MAX_SEARCH_PAGES,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_SEARCH_PAGE_SIZE,
    JIRA_API,
)
from academichain.core.exceptions import RemoteCallError
from academichain.core.fields import adf_document
from academichain.core.models import AutomationRule, SearchResult
from academichain.gateways.base import RestGateway

logger = structlog.get_logger()

_BARE_VALUE = re.compile(r"^[A-Za-z0-9_\-]+$")


# ---------------------------------------------------------------------------
# JQL helpers
# ---------------------------------------------------------------------------


def jql_quote(value: str) -> str:
    """Quote a JQL field name or value unless it is a bare identifier."""
    if _BARE_VALUE.match(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def jql_equals(field: str, value: str) -> str:
    return f"{jql_quote(field)} = {jql_quote(value)}"


def jql_in(field: str, values: Iterable[str]) -> str:
    joined = ", ".join(jql_quote(v) for v in values)
    return f"{jql_quote(field)} IN ({joined})"


def jql_and(*clauses: str) -> str:
    return " AND ".join(c for c in clauses if c)


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------


class IssueGateway(RestGateway):
    """Async façade over the issue-tracking REST surface."""

    service = "jira"

    def __init__(
        self,
        base_url: str,
        *,
        email: str = "",
        api_token: str = "",
        timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        page_size: int = DEFAULT_SEARCH_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_SEARCH_PAGES,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url, email=email, api_token=api_token, timeout=timeout, transport=transport
        )
        self._page_size = page_size
        self._max_pages = max_pages

    @classmethod
    def from_config(
        cls, config: AcademicConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> IssueGateway:
        site = config.require_atlassian()
        return cls(
            site.site_url,
            email=site.email,
            api_token=site.api_token.get_secret_value(),
            timeout=site.request_timeout_seconds,
            page_size=config.workflow.search_page_size,
            max_pages=config.workflow.max_search_pages,
            transport=transport,
        )

    async def __aenter__(self) -> IssueGateway:
        await super().__aenter__()
        return self

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    async def create_project(
        self, key: str, name: str, lead: str, description: str = ""
    ) -> dict[str, Any]:
        """Create a kanban-style software project for a course."""
        return await self._post(
            f"{JIRA_API}/project",
            json={
                "key": key,
                "name": name,
                "projectTypeKey": "software",
                "projectTemplateKey": "com.pyxis.greenhopper.jira:gh-simplified-agility-kanban",
                "description": description,
                "leadAccountId": lead,
                "assigneeType": "PROJECT_LEAD",
            },
        )

    async def create_issue_type(self, name: str, description: str) -> dict[str, Any]:
        return await self._post(
            f"{JIRA_API}/issuetype",
            json={"name": name, "description": description, "type": "standard"},
        )

    async def create_custom_field(
        self, name: str, description: str, field_type: str, searcher_key: str
    ) -> dict[str, Any]:
        return await self._post(
            f"{JIRA_API}/field",
            json={
                "name": name,
                "description": description,
                "type": field_type,
                "searcherKey": searcher_key,
            },
        )

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    async def create_issue(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Create an issue; returns ``{"id", "key", "self"}``."""
        return await self._post(f"{JIRA_API}/issue", json={"fields": fields})

    async def get_issue(self, issue_key: str) -> dict[str, Any]:
        return await self._get(f"{JIRA_API}/issue/{issue_key}")

    async def update_issue(self, issue_key: str, fields: dict[str, Any]) -> None:
        await self._put(f"{JIRA_API}/issue/{issue_key}", json={"fields": fields})

    async def transition_issue(
        self,
        issue_key: str,
        transition_id: str,
        fields: dict[str, Any] | None = None,
    ) -> None:
        """Run a workflow transition, optionally setting fields in the same call."""
        payload: dict[str, Any] = {"transition": {"id": transition_id}}
        if fields:
            payload["fields"] = fields
        await self._post(f"{JIRA_API}/issue/{issue_key}/transitions", json=payload)

    async def add_comment(self, issue_key: str, body: str) -> dict[str, Any]:
        return await self._post(
            f"{JIRA_API}/issue/{issue_key}/comment",
            json={"body": adf_document(body)},
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        jql: str,
        *,
        start_at: int = 0,
        max_results: int | None = None,
        fields: list[str] | None = None,
    ) -> SearchResult:
        """Run one search page. ``max_results=0`` returns only the total."""
        params: dict[str, Any] = {
            "jql": jql,
            "startAt": start_at,
            "maxResults": self._page_size if max_results is None else max_results,
        }
        if fields:
            params["fields"] = ",".join(fields)
        data = await self._get(f"{JIRA_API}/search", params=params) or {}
        if not isinstance(data, dict):
            raise RemoteCallError(
                f"jira search returned {type(data).__name__}, expected an object",
                body=str(data)[:500],
            )
        return SearchResult(total=data.get("total", 0), items=data.get("issues") or [])

    async def search_all(self, jql: str, *, fields: list[str] | None = None) -> SearchResult:
        """
        Fetch every page of a search.

        Advances ``startAt`` by the size of each returned page until the
        server-reported total is reached or a page comes back empty. Stops
        after ``max_pages`` pages; the returned ``total`` is always the
        server-reported one, so a truncated fetch is visible to the caller.
        """
        items: list[dict[str, Any]] = []
        total = 0
        start_at = 0
        for _ in range(self._max_pages):
            result = await self.search(jql, start_at=start_at, fields=fields)
            total = result.total
            if not result.items:
                break
            items.extend(result.items)
            start_at += len(result.items)
            if start_at >= total:
                break
        else:
            logger.warning(
                "search_page_cap_reached",
                jql=jql,
                pages=self._max_pages,
                fetched=len(items),
                total=total,
            )
        return SearchResult(total=total, items=items)

    # ------------------------------------------------------------------
    # Automation
    # ------------------------------------------------------------------

    async def create_automation_rule(self, rule: AutomationRule) -> dict[str, Any] | None:
        return await self._post(f"{JIRA_API}/automation/rule", json=rule.to_payload())

    async def get_rule_executions(self, rule_id: str) -> list[dict[str, Any]]:
        data = await self._get(f"{JIRA_API}/automation/rule/{rule_id}/executions") or {}
        return data.get("values") or []
