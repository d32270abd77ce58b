"""Unit tests for academichain.dashboard.aggregator: concurrent per-project statistics."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from academichain.core.exceptions import RemoteCallError
from academichain.core.fields import AcademicField, FieldMap
from academichain.core.models import SearchResult
from academichain.dashboard.aggregator import (
    DashboardAggregator,
    assignment_jql,
    pending_approvals_jql,
)

STATUS_ID = FieldMap().id_for(AcademicField.SUBMISSION_STATUS)


def _assignments(*statuses: str | None) -> list[dict]:
    items = []
    for n, status in enumerate(statuses):
        fields = {"summary": f"A{n}"}
        if status is not None:
            fields[STATUS_ID] = {"value": status}
        items.append({"key": f"X-{n}", "fields": fields})
    return items


def _gateway(per_project: dict[str, SearchResult | Exception], approvals: int = 0) -> AsyncMock:
    issues = AsyncMock()

    async def search_all(jql: str, **_: object) -> SearchResult:
        for key, outcome in per_project.items():
            if jql == assignment_jql(key):
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        raise AssertionError(f"unexpected query {jql}")

    issues.search_all.side_effect = search_all
    issues.search.return_value = SearchResult(total=approvals, items=[])
    return issues


class TestJqlShapes:
    def test_assignment_query(self) -> None:
        assert assignment_jql("CS101") == "project = CS101 AND issuetype = Assignment"

    def test_pending_approvals_query(self) -> None:
        assert pending_approvals_jql() == (
            'issuetype = "Project Proposal" AND "Approval Status" IN '
            '(Submitted, "Faculty Review", "HOD Approval")'
        )


class TestComputeStats:
    @pytest.mark.asyncio
    async def test_sums_across_projects(self) -> None:
        issues = _gateway(
            {
                "CS101": SearchResult(
                    total=4, items=_assignments("Submitted", "Graded", "Graded", "In Progress")
                ),
                "CS102": SearchResult(total=2, items=_assignments("Submitted", None)),
            },
            approvals=3,
        )

        stats = await DashboardAggregator(issues).compute_stats(["CS101", "CS102"])

        assert stats.total_assignments == 6
        assert stats.pending_submissions == 2
        assert stats.graded_assignments == 2
        assert stats.active_projects == 2
        assert stats.pending_approvals == 3
        assert stats.failed_projects == []

    @pytest.mark.asyncio
    async def test_approval_count_uses_total_only(self) -> None:
        issues = _gateway({}, approvals=9)
        stats = await DashboardAggregator(issues).compute_stats([])
        assert stats.pending_approvals == 9
        assert issues.search.await_args.kwargs["max_results"] == 0

    @pytest.mark.asyncio
    async def test_failed_project_contributes_zero(self) -> None:
        issues = _gateway(
            {
                "CS101": SearchResult(total=1, items=_assignments("Graded")),
                "CS102": RemoteCallError("down", status=503),
            }
        )

        stats = await DashboardAggregator(issues).compute_stats(["CS101", "CS102"])

        assert stats.active_projects == 2
        assert stats.total_assignments == 1
        assert stats.graded_assignments == 1
        assert stats.failed_projects == ["CS102"]

    @pytest.mark.asyncio
    async def test_failed_approval_query_is_zero(self) -> None:
        issues = _gateway({"CS101": SearchResult(total=0, items=[])})
        issues.search.side_effect = RemoteCallError("down", status=500)
        stats = await DashboardAggregator(issues).compute_stats(["CS101"])
        assert stats.pending_approvals == 0

    @pytest.mark.asyncio
    async def test_total_never_below_fetched_items(self) -> None:
        issues = _gateway({"CS101": SearchResult(total=1, items=_assignments("Graded", "Graded"))})
        stats = await DashboardAggregator(issues).compute_stats(["CS101"])
        assert stats.total_assignments == 2
        assert stats.graded_assignments <= stats.total_assignments

    @pytest.mark.asyncio
    async def test_programming_errors_propagate(self) -> None:
        issues = _gateway({"CS101": TypeError("bug")})
        with pytest.raises(TypeError):
            await DashboardAggregator(issues).compute_stats(["CS101"])
