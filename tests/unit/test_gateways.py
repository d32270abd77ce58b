"""Unit tests for academichain.gateways: REST façades over httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest
from atlassian_fake import SITE_URL, FakeAtlassian

from academichain.automation.rules import build_submission_rule
from academichain.core.config import AcademicConfig
from academichain.core.exceptions import ConfigError, RemoteCallError
from academichain.gateways.issues import IssueGateway, jql_and, jql_equals, jql_in, jql_quote
from academichain.gateways.knowledge import KnowledgeBaseGateway


def _issues(site: FakeAtlassian, **kwargs: int) -> IssueGateway:
    return IssueGateway(
        SITE_URL, email="a@b.c", api_token="t", transport=site.transport(), **kwargs
    )


# ---------------------------------------------------------------------------
# JQL helpers
# ---------------------------------------------------------------------------


class TestJql:
    def test_bare_identifier_unquoted(self) -> None:
        assert jql_quote("CS101") == "CS101"

    def test_spaces_quoted(self) -> None:
        assert jql_quote("Project Proposal") == '"Project Proposal"'

    def test_embedded_quotes_escaped(self) -> None:
        assert jql_quote('say "hi"') == '"say \\"hi\\""'

    def test_composition(self) -> None:
        jql = jql_and(
            jql_equals("project", "CS101"),
            jql_in("Approval Status", ["Submitted", "HOD Approval"]),
        )
        assert jql == 'project = CS101 AND "Approval Status" IN (Submitted, "HOD Approval")'


# ---------------------------------------------------------------------------
# Transport behaviour
# ---------------------------------------------------------------------------


class TestRestGateway:
    @pytest.mark.asyncio
    async def test_basic_auth_and_accept_header(self, fake_site: FakeAtlassian) -> None:
        key = fake_site.add_issue("CS101", "Assignment")
        async with _issues(fake_site) as jira:
            await jira.get_issue(key)
        request = fake_site.requests[-1]
        assert request.headers["Accept"] == "application/json"
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_non_success_raises_with_status_and_body(self, fake_site: FakeAtlassian) -> None:
        async with _issues(fake_site) as jira:
            with pytest.raises(RemoteCallError) as excinfo:
                await jira.get_issue("CS101-404")
        assert excinfo.value.status == 404
        assert "Issue does not exist" in excinfo.value.body
        assert "(HTTP 404)" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_transport_error_converted(self) -> None:
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = IssueGateway(SITE_URL, transport=httpx.MockTransport(boom))
        async with gateway as jira:
            with pytest.raises(RemoteCallError) as excinfo:
                await jira.get_issue("CS101-1")
        assert excinfo.value.status is None
        assert "connection refused" in excinfo.value.body

    @pytest.mark.asyncio
    async def test_html_success_body_raises(self) -> None:
        def login_page(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, text="<html>login</html>", headers={"content-type": "text/html"}
            )

        async with IssueGateway(SITE_URL, transport=httpx.MockTransport(login_page)) as jira:
            with pytest.raises(RemoteCallError) as excinfo:
                await jira.search("project = CS101")
        assert excinfo.value.status == 200
        assert excinfo.value.body == "<html>login</html>"

    @pytest.mark.asyncio
    async def test_search_rejects_non_object_payload(self) -> None:
        def listing(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["CS101-1"])

        async with IssueGateway(SITE_URL, transport=httpx.MockTransport(listing)) as jira:
            with pytest.raises(RemoteCallError):
                await jira.search("project = CS101")

    @pytest.mark.asyncio
    async def test_use_outside_context_manager(self, fake_site: FakeAtlassian) -> None:
        with pytest.raises(RuntimeError, match="async with"):
            await _issues(fake_site).get_issue("CS101-1")

    def test_from_config_requires_atlassian_section(self) -> None:
        with pytest.raises(ConfigError):
            IssueGateway.from_config(AcademicConfig())


# ---------------------------------------------------------------------------
# IssueGateway
# ---------------------------------------------------------------------------


class TestIssueGateway:
    @pytest.mark.asyncio
    async def test_transition_sends_fields(self, fake_site: FakeAtlassian) -> None:
        key = fake_site.add_issue("CS101", "Assignment")
        async with _issues(fake_site) as jira:
            await jira.transition_issue(key, "submit", fields={"customfield_10006": "notes"})
        request = fake_site.calls("POST", f"/rest/api/3/issue/{key}/transitions")[0]
        sent = json.loads(request.content)
        assert sent == {"transition": {"id": "submit"}, "fields": {"customfield_10006": "notes"}}

    @pytest.mark.asyncio
    async def test_comment_body_is_adf(self, fake_site: FakeAtlassian) -> None:
        key = fake_site.add_issue("CS101", "Assignment")
        async with _issues(fake_site) as jira:
            await jira.add_comment(key, "hello")
        body = fake_site.comments[key][0]["body"]
        assert body["type"] == "doc"
        assert body["content"][0]["content"][0]["text"] == "hello"

    @pytest.mark.asyncio
    async def test_search_passes_paging_params(self, fake_site: FakeAtlassian) -> None:
        async with _issues(fake_site, page_size=25) as jira:
            result = await jira.search("project = CS101", start_at=50)
        params = fake_site.requests[-1].url.params
        assert params["startAt"] == "50"
        assert params["maxResults"] == "25"
        assert result.total == 0 and result.items == []

    @pytest.mark.asyncio
    async def test_search_all_fetches_every_page(self, fake_site: FakeAtlassian) -> None:
        for _ in range(7):
            fake_site.add_issue("CS101", "Assignment")
        async with _issues(fake_site, page_size=3) as jira:
            result = await jira.search_all("project = CS101 AND issuetype = Assignment")
        assert result.total == 7
        assert len(result.items) == 7
        assert len({i["key"] for i in result.items}) == 7
        assert len(fake_site.calls("GET", "/rest/api/3/search")) == 3

    @pytest.mark.asyncio
    async def test_search_all_respects_page_cap(self, fake_site: FakeAtlassian) -> None:
        for _ in range(10):
            fake_site.add_issue("CS101", "Assignment")
        async with _issues(fake_site, page_size=2, max_pages=2) as jira:
            result = await jira.search_all("project = CS101")
        assert result.total == 10
        assert len(result.items) == 4

    @pytest.mark.asyncio
    async def test_automation_rule_posted_as_payload(self, fake_site: FakeAtlassian) -> None:
        rule = build_submission_rule("CS101")
        async with _issues(fake_site) as jira:
            data = await jira.create_automation_rule(rule)
        assert fake_site.rules[data["id"]] == rule.to_payload()

    @pytest.mark.asyncio
    async def test_rule_executions(self, fake_site: FakeAtlassian) -> None:
        fake_site.executions["9"] = [{"id": "e1", "status": "SUCCESS"}]
        async with _issues(fake_site) as jira:
            values = await jira.get_rule_executions("9")
        assert values == [{"id": "e1", "status": "SUCCESS"}]


# ---------------------------------------------------------------------------
# KnowledgeBaseGateway
# ---------------------------------------------------------------------------


class TestKnowledgeBaseGateway:
    @pytest.mark.asyncio
    async def test_create_page_with_parent(self, fake_site: FakeAtlassian) -> None:
        async with KnowledgeBaseGateway(SITE_URL, transport=fake_site.transport()) as wiki:
            await wiki.create_page("CS101", "Notes", "<p>x</p>", parent_id="77")
        sent = json.loads(fake_site.calls("POST", "/wiki/rest/api/content")[0].content)
        assert sent["ancestors"] == [{"id": "77"}]
        assert sent["body"]["storage"]["representation"] == "storage"

    @pytest.mark.asyncio
    async def test_update_page_bumps_version(self, fake_site: FakeAtlassian) -> None:
        page_id = fake_site.add_page("CS101", "Feedback", "<p>old</p>", version=3)
        async with KnowledgeBaseGateway(SITE_URL, transport=fake_site.transport()) as wiki:
            page = await wiki.get_page(page_id)
            await wiki.update_page(page, "<p>new</p>")
        assert fake_site.pages[page_id]["version"]["number"] == 4
        assert fake_site.pages[page_id]["body"]["storage"]["value"] == "<p>new</p>"

    @pytest.mark.asyncio
    async def test_stale_version_conflict(self, fake_site: FakeAtlassian) -> None:
        page_id = fake_site.add_page("CS101", "Feedback", "<p>old</p>", version=3)
        async with KnowledgeBaseGateway(SITE_URL, transport=fake_site.transport()) as wiki:
            page = await wiki.get_page(page_id)
            fake_site.pages[page_id]["version"]["number"] = 5
            with pytest.raises(RemoteCallError) as excinfo:
                await wiki.update_page(page, "<p>new</p>")
        assert excinfo.value.status == 409
