"""In-memory Jira/Confluence site served through httpx.MockTransport."""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from itertools import count
from typing import Any

import httpx

from academichain.core.fields import DEFAULT_FIELD_IDS, AcademicField

SITE_URL = "https://uni.example.net"

_ISSUE = re.compile(r"^/rest/api/3/issue/([^/]+)$")
_TRANSITIONS = re.compile(r"^/rest/api/3/issue/([^/]+)/transitions$")
_COMMENT = re.compile(r"^/rest/api/3/issue/([^/]+)/comment$")
_EXECUTIONS = re.compile(r"^/rest/api/3/automation/rule/([^/]+)/executions$")
_CONTENT = re.compile(r"^/wiki/rest/api/content/([^/]+)$")

_JQL_PROJECT = re.compile(r'project = "?([A-Za-z0-9_\-]+)"?')
_JQL_TYPE = re.compile(r'issuetype = (?:"([^"]+)"|([A-Za-z0-9_\-]+))')
_JQL_IN = re.compile(r'"Approval Status" IN \(([^)]*)\)')


def _select_value(raw: Any) -> Any:
    return raw.get("value") if isinstance(raw, dict) else raw


class FakeAtlassian:
    """
    Minimal stateful Jira + Confluence double.

    Understands the JQL shapes the engine emits (project, issuetype and
    approval-status IN clauses). ``fail_on`` makes matching requests return
    an error status instead.
    """

    def __init__(self) -> None:
        self.issues: dict[str, dict[str, Any]] = {}
        self.comments: dict[str, list[dict[str, Any]]] = {}
        self.pages: dict[str, dict[str, Any]] = {}
        self.rules: dict[str, dict[str, Any]] = {}
        self.executions: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self._failures: list[tuple[str, str, int]] = []
        self._ids = count(1)
        self._project_seq: dict[str, count] = {}

    # ------------------------------------------------------------------
    # Test setup helpers
    # ------------------------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def fail_on(self, method: str, path_prefix: str, status: int = 500) -> None:
        self._failures.append((method, path_prefix, status))

    def add_issue(
        self,
        project: str,
        issue_type: str,
        custom: dict[AcademicField, Any] | None = None,
        **fields: Any,
    ) -> str:
        key = self._next_key(project)
        stored: dict[str, Any] = {
            "project": {"key": project},
            "issuetype": {"name": issue_type},
            "summary": fields.pop("summary", f"{issue_type} {key}"),
            "created": datetime.now(UTC).isoformat(),
        }
        stored.update(fields)
        for field, value in (custom or {}).items():
            stored[DEFAULT_FIELD_IDS[field]] = value
        self.issues[key] = {"id": str(next(self._ids)), "key": key, "fields": stored}
        return key

    def add_page(self, space: str, title: str, body: str, version: int = 1) -> str:
        page_id = str(next(self._ids))
        self.pages[page_id] = {
            "id": page_id,
            "type": "page",
            "title": title,
            "space": {"key": space},
            "body": {"storage": {"value": body, "representation": "storage"}},
            "version": {"number": version},
        }
        return page_id

    def field(self, key: str, field: AcademicField) -> Any:
        return self.issues[key]["fields"].get(DEFAULT_FIELD_IDS[field])

    def calls(self, method: str, path_prefix: str = "") -> list[httpx.Request]:
        return [
            r for r in self.requests if r.method == method and r.url.path.startswith(path_prefix)
        ]

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def _next_key(self, project: str) -> str:
        seq = self._project_seq.setdefault(project, count(1))
        return f"{project}-{next(seq)}"

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method, path = request.method, request.url.path
        for m, prefix, status in self._failures:
            if m == method and path.startswith(prefix):
                return httpx.Response(status, text=f"{method} {path} refused")
        body = json.loads(request.content) if request.content else {}

        if path.startswith("/wiki/"):
            return self._confluence(method, path, body)
        return self._jira(method, path, body, request)

    def _jira(
        self, method: str, path: str, body: dict[str, Any], request: httpx.Request
    ) -> httpx.Response:
        if method == "POST" and path == "/rest/api/3/issue":
            fields = dict(body["fields"])
            project = fields["project"]["key"]
            key = self._next_key(project)
            fields.setdefault("created", datetime.now(UTC).isoformat())
            issue_id = str(next(self._ids))
            self.issues[key] = {"id": issue_id, "key": key, "fields": fields}
            return httpx.Response(
                201, json={"id": issue_id, "key": key, "self": f"{SITE_URL}/issue/{key}"}
            )

        if m := _TRANSITIONS.match(path):
            issue = self.issues.get(m.group(1))
            if issue is None:
                return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})
            issue["fields"].update(body.get("fields") or {})
            issue["fields"]["status"] = {"name": body["transition"]["id"]}
            return httpx.Response(204)

        if m := _COMMENT.match(path):
            if m.group(1) not in self.issues:
                return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})
            comment = {"id": str(next(self._ids)), "body": body["body"]}
            self.comments.setdefault(m.group(1), []).append(comment)
            return httpx.Response(201, json=comment)

        if m := _ISSUE.match(path):
            issue = self.issues.get(m.group(1))
            if issue is None:
                return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})
            if method == "GET":
                return httpx.Response(200, json=issue)
            if method == "PUT":
                issue["fields"].update(body.get("fields") or {})
                return httpx.Response(204)

        if method == "GET" and path == "/rest/api/3/search":
            return self._search(request.url.params)

        if method == "POST" and path == "/rest/api/3/automation/rule":
            rule_id = str(next(self._ids))
            self.rules[rule_id] = body
            return httpx.Response(201, json={"id": rule_id})

        if m := _EXECUTIONS.match(path):
            return httpx.Response(200, json={"values": self.executions.get(m.group(1), [])})

        if method == "POST" and path == "/rest/api/3/field":
            return httpx.Response(201, json={"id": f"customfield_2{next(self._ids):04d}"})

        if method == "POST" and path in ("/rest/api/3/project", "/rest/api/3/issuetype"):
            return httpx.Response(201, json={"id": str(next(self._ids)), **body})

        return httpx.Response(404, text=f"no route for {method} {path}")

    def _search(self, params: httpx.QueryParams) -> httpx.Response:
        jql = params.get("jql", "")
        start = int(params.get("startAt", 0))
        limit = int(params.get("maxResults", 50))
        status_id = DEFAULT_FIELD_IDS[AcademicField.APPROVAL_STATUS]

        matches = list(self.issues.values())
        if m := _JQL_PROJECT.search(jql):
            matches = [i for i in matches if i["fields"]["project"]["key"] == m.group(1)]
        if m := _JQL_TYPE.search(jql):
            wanted = m.group(1) or m.group(2)
            matches = [i for i in matches if i["fields"]["issuetype"]["name"] == wanted]
        if m := _JQL_IN.search(jql):
            wanted = {v.strip().strip('"') for v in m.group(1).split(",")}
            matches = [
                i for i in matches if _select_value(i["fields"].get(status_id)) in wanted
            ]
        return httpx.Response(
            200,
            json={
                "startAt": start,
                "maxResults": limit,
                "total": len(matches),
                "issues": matches[start : start + limit],
            },
        )

    def _confluence(self, method: str, path: str, body: dict[str, Any]) -> httpx.Response:
        if method == "POST" and path == "/wiki/rest/api/space":
            return httpx.Response(200, json={"id": str(next(self._ids)), "key": body["key"]})

        if method == "POST" and path == "/wiki/rest/api/template":
            return httpx.Response(200, json={"templateId": str(next(self._ids)), **body})

        if method == "POST" and path == "/wiki/rest/api/content":
            page_id = self.add_page(
                body["space"]["key"], body["title"], body["body"]["storage"]["value"]
            )
            return httpx.Response(200, json=self.pages[page_id])

        if m := _CONTENT.match(path):
            page = self.pages.get(m.group(1))
            if page is None:
                return httpx.Response(404, json={"message": "No content found"})
            if method == "GET":
                return httpx.Response(200, json=page)
            if method == "PUT":
                if body["version"]["number"] != page["version"]["number"] + 1:
                    return httpx.Response(409, json={"message": "Version conflict"})
                page["version"] = body["version"]
                page["body"] = body["body"]
                return httpx.Response(200, json=page)

        return httpx.Response(404, text=f"no route for {method} {path}")
