"""
Semester dashboard statistics.

Per-project assignment queries run concurrently; one global query counts
proposals still in the approval pipeline. A failed query degrades to a zero
contribution and is logged, so the dashboard always renders.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from academichain.core.constants import ISSUE_TYPE_ASSIGNMENT, ISSUE_TYPE_PROPOSAL
from academichain.core.exceptions import RemoteCallError
from academichain.core.fields import FIELD_NAMES, AcademicField, FieldMap
from academichain.core.models import (
    PENDING_APPROVAL_STATUSES,
    DashboardStats,
    SubmissionStatus,
)
from academichain.gateways.issues import IssueGateway, jql_and, jql_equals, jql_in

logger = structlog.get_logger()


@dataclass
class _ProjectCounts:
    total: int = 0
    pending: int = 0
    graded: int = 0


def assignment_jql(project_key: str) -> str:
    return jql_and(
        jql_equals("project", project_key),
        jql_equals("issuetype", ISSUE_TYPE_ASSIGNMENT),
    )


def pending_approvals_jql() -> str:
    return jql_and(
        jql_equals("issuetype", ISSUE_TYPE_PROPOSAL),
        jql_in(
            FIELD_NAMES[AcademicField.APPROVAL_STATUS],
            [s.value for s in PENDING_APPROVAL_STATUSES],
        ),
    )


class DashboardAggregator:
    """Computes :class:`DashboardStats` across course projects."""

    def __init__(self, issues: IssueGateway, *, fields: FieldMap | None = None) -> None:
        self._issues = issues
        self._fields = fields or FieldMap()

    async def compute_stats(self, project_keys: Sequence[str]) -> DashboardStats:
        keys = list(project_keys)
        results = await asyncio.gather(
            *(self._project_counts(k) for k in keys),
            return_exceptions=True,
        )

        stats = DashboardStats(active_projects=len(keys))
        for key, outcome in zip(keys, results, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, RemoteCallError):
                    raise outcome
                logger.warning(
                    "dashboard_project_query_failed",
                    project_key=key,
                    error=str(outcome),
                )
                stats.failed_projects.append(key)
                continue
            stats.total_assignments += outcome.total
            stats.pending_submissions += outcome.pending
            stats.graded_assignments += outcome.graded

        stats.pending_approvals = await self._pending_approvals()
        logger.debug(
            "dashboard_stats_computed",
            projects=len(keys),
            failed=len(stats.failed_projects),
            total_assignments=stats.total_assignments,
        )
        return stats

    async def _project_counts(self, project_key: str) -> _ProjectCounts:
        status_id = self._fields.id_for(AcademicField.SUBMISSION_STATUS)
        result = await self._issues.search_all(
            assignment_jql(project_key), fields=["summary", "status", status_id]
        )
        counts = _ProjectCounts()
        for issue in result.items:
            decoded = self._fields.from_remote(issue.get("fields") or {})
            status = decoded.get(AcademicField.SUBMISSION_STATUS)
            if status == SubmissionStatus.SUBMITTED:
                counts.pending += 1
            elif status == SubmissionStatus.GRADED:
                counts.graded += 1
        # The reported total can lag behind a page that was already returned
        counts.total = max(result.total, len(result.items))
        return counts

    async def _pending_approvals(self) -> int:
        try:
            result = await self._issues.search(pending_approvals_jql(), max_results=0)
        except RemoteCallError as exc:
            logger.warning("dashboard_approval_query_failed", error=str(exc))
            return 0
        return result.total
