"""
Assignment workflow executor.

Drives the assignment lifecycle across the issue tracker and the knowledge
base:

  create   → Assignment issue + feedback page
  submit   → transition (status Submitted, submission notes) + audit comment
  grade    → single field update (status Graded, grade, feedback)
  publish  → patch the feedback page with grade and comments
  lecture  → lecture page rendered from the lecture template

Steps within one workflow run strictly in order. A failed step stops the
workflow; steps already committed stay committed (there is no rollback).
Gateway failures are logged and reported through the return value. Only
:meth:`WorkflowExecutor.list_assignments` lets them propagate.
"""

from __future__ import annotations

from typing import Any

import structlog

from academichain.core.constants import DEFAULT_SUBMIT_TRANSITION_ID, ISSUE_TYPE_ASSIGNMENT
from academichain.core.exceptions import RemoteCallError
from academichain.core.fields import AcademicField, FieldMap
from academichain.core.models import AssignmentRecord, SubmissionStatus, WorkflowResult
from academichain.gateways.issues import IssueGateway, jql_and, jql_equals
from academichain.gateways.knowledge import KnowledgeBaseGateway
from academichain.knowledge.templates import (
    LECTURE,
    feedback_page_body,
    feedback_page_title,
    lecture_page_title,
    patch_feedback_body,
)

logger = structlog.get_logger()

STEP_TRANSITION = "transition"
STEP_COMMENT = "comment"
STEP_CREATE_ISSUE = "create_issue"
STEP_CREATE_PAGE = "create_feedback_page"
STEP_CREATE_LECTURE = "create_lecture_page"


class WorkflowExecutor:
    """
    Runs assignment workflows against the remote systems.

    Usage::

        async with IssueGateway.from_config(cfg) as jira:
            executor = WorkflowExecutor(jira, fields=cfg.field_map())
            ok = await executor.execute_submission("CS101-7", {"submissionNotes": "v2"})
    """

    def __init__(
        self,
        issues: IssueGateway,
        knowledge: KnowledgeBaseGateway | None = None,
        *,
        fields: FieldMap | None = None,
        submit_transition_id: str = DEFAULT_SUBMIT_TRANSITION_ID,
    ) -> None:
        self._issues = issues
        self._knowledge = knowledge
        self._fields = fields or FieldMap()
        self._submit_transition_id = submit_transition_id

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, issue_key: str, submission_notes: str) -> WorkflowResult:
        """Detailed form of :meth:`execute_submission`."""
        result = WorkflowResult(issue_key=issue_key)
        transition_fields = self._fields.to_remote(
            {
                AcademicField.SUBMISSION_STATUS: SubmissionStatus.SUBMITTED,
                AcademicField.SUBMISSION_NOTES: submission_notes,
            }
        )

        try:
            await self._issues.transition_issue(
                issue_key, self._submit_transition_id, fields=transition_fields
            )
        except RemoteCallError as exc:
            logger.error(
                "submission_transition_failed",
                issue_key=issue_key,
                transition_id=self._submit_transition_id,
                status=exc.status,
                body=exc.body,
            )
            result.error = str(exc)
            return result
        result.steps_completed.append(STEP_TRANSITION)

        try:
            await self._issues.add_comment(
                issue_key, f"Assignment submitted with notes: {submission_notes}"
            )
        except RemoteCallError as exc:
            # The transition has already committed; the issue is Submitted without its audit trail
            logger.error(
                "submission_comment_failed",
                issue_key=issue_key,
                status=exc.status,
                body=exc.body,
            )
            result.error = str(exc)
            return result
        result.steps_completed.append(STEP_COMMENT)

        result.success = True
        logger.info("assignment_submitted", issue_key=issue_key)
        return result

    async def execute_submission(self, issue_key: str, submission_data: dict[str, Any]) -> bool:
        """Move an assignment to Submitted and record the notes. True only if both calls succeed."""
        notes = submission_data.get("submissionNotes") or submission_data.get(
            "submission_notes", ""
        )
        result = await self.submit(issue_key, notes)
        return result.success

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------

    async def grade_assignment(self, issue_key: str, grade: float, feedback: str) -> bool:
        """Set status Graded, grade and feedback in one update. The caller checks the range."""
        fields = self._fields.to_remote(
            {
                AcademicField.SUBMISSION_STATUS: SubmissionStatus.GRADED,
                AcademicField.GRADE: grade,
                AcademicField.FEEDBACK: feedback,
            }
        )
        try:
            await self._issues.update_issue(issue_key, fields)
        except RemoteCallError as exc:
            logger.error("grading_failed", issue_key=issue_key, status=exc.status, body=exc.body)
            return False
        logger.info("assignment_graded", issue_key=issue_key, grade=grade)
        return True

    async def get_assignment(self, issue_key: str) -> AssignmentRecord | None:
        try:
            issue = await self._issues.get_issue(issue_key)
        except RemoteCallError as exc:
            logger.warning("assignment_fetch_failed", issue_key=issue_key, status=exc.status)
            return None
        return self._fields.assignment_from_issue(issue)

    # ------------------------------------------------------------------
    # Creation and feedback
    # ------------------------------------------------------------------

    async def create_assignment(
        self, project_key: str, assignment: AssignmentRecord
    ) -> WorkflowResult:
        """
        Create the Assignment issue and its feedback page.

        The course space shares the project key. If the page cannot be
        created the issue is kept and the result carries the error.
        """
        result = WorkflowResult()
        try:
            created = await self._issues.create_issue(
                self._fields.assignment_to_fields(assignment, project_key)
            )
        except RemoteCallError as exc:
            logger.error(
                "assignment_create_failed",
                project_key=project_key,
                status=exc.status,
                body=exc.body,
            )
            result.error = str(exc)
            return result

        issue_key = created.get("key")
        result.issue_key = issue_key
        result.steps_completed.append(STEP_CREATE_ISSUE)
        result.data["issue"] = created
        logger.info("assignment_created", project_key=project_key, issue_key=issue_key)

        if self._knowledge is None:
            result.success = True
            return result

        try:
            page = await self._knowledge.create_page(
                project_key,
                feedback_page_title(issue_key),
                feedback_page_body(issue_key, assignment.assignee),
            )
        except RemoteCallError as exc:
            logger.warning(
                "feedback_page_create_failed",
                issue_key=issue_key,
                space_key=project_key,
                status=exc.status,
            )
            result.error = f"Assignment {issue_key} created but feedback page failed: {exc}"
            return result

        result.steps_completed.append(STEP_CREATE_PAGE)
        result.data["feedbackPageId"] = page.get("id") if isinstance(page, dict) else None
        result.success = True
        return result

    async def publish_feedback(
        self, page_id: str, grade: float, total_marks: float, feedback: str
    ) -> bool:
        """Write the grade and feedback into an existing feedback page."""
        if self._knowledge is None:
            logger.error("publish_feedback_without_knowledge_base", page_id=page_id)
            return False
        try:
            page = await self._knowledge.get_page(page_id)
            body = page["body"]["storage"]["value"]
            await self._knowledge.update_page(
                page, patch_feedback_body(body, grade, total_marks, feedback)
            )
        except RemoteCallError as exc:
            logger.error("feedback_publish_failed", page_id=page_id, status=exc.status)
            return False
        except (KeyError, TypeError) as exc:
            logger.error("feedback_page_malformed", page_id=page_id, error=str(exc))
            return False
        logger.info("feedback_published", page_id=page_id, grade=grade)
        return True

    # ------------------------------------------------------------------
    # Lectures
    # ------------------------------------------------------------------

    async def create_lecture(
        self,
        space_key: str,
        number: int,
        title: str,
        values: dict[str, object],
        parent_id: str | None = None,
    ) -> WorkflowResult:
        """Create a lecture page in *space_key* rendered from the lecture template."""
        result = WorkflowResult()
        if self._knowledge is None:
            result.error = "No knowledge base configured"
            return result
        missing = LECTURE.missing(values)
        if missing:
            result.error = f"Missing lecture fields: {', '.join(missing)}"
            return result

        page_title = lecture_page_title(number, title)
        try:
            page = await self._knowledge.create_page(
                space_key, page_title, LECTURE.render(values), parent_id=parent_id
            )
        except RemoteCallError as exc:
            logger.error(
                "lecture_create_failed", space_key=space_key, title=page_title, status=exc.status
            )
            result.error = str(exc)
            return result

        result.steps_completed.append(STEP_CREATE_LECTURE)
        result.data["pageId"] = page.get("id") if isinstance(page, dict) else None
        result.data["title"] = page_title
        result.success = True
        logger.info("lecture_created", space_key=space_key, title=page_title)
        return result

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_assignments(self, project_key: str) -> list[AssignmentRecord]:
        """Every Assignment issue in *project_key*. Raises :class:`RemoteCallError`."""
        result = await self._issues.search_all(
            jql_and(
                jql_equals("project", project_key),
                jql_equals("issuetype", ISSUE_TYPE_ASSIGNMENT),
            )
        )
        return [self._fields.assignment_from_issue(issue) for issue in result.items]
