"""
AcademiChain data model.

Typed, request-scoped views of records owned by the external issue tracker.
Nothing here is persisted by the engine; records are decoded from and encoded
to the remote representation by :mod:`academichain.core.fields`.

Models accept snake_case or camelCase input and serialize to camelCase with
``model_dump(by_alias=True)`` at the resolver boundary.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SubmissionStatus(StrEnum):
    """Assignment submission status; values are the remote select-option labels."""

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    SUBMITTED = "Submitted"
    GRADED = "Graded"

    @property
    def rank(self) -> int:
        return _SUBMISSION_ORDER[self]

    def can_advance_to(self, other: SubmissionStatus) -> bool:
        """Submission status only moves forward."""
        return other.rank > self.rank


_SUBMISSION_ORDER = {
    SubmissionStatus.NOT_STARTED: 0,
    SubmissionStatus.IN_PROGRESS: 1,
    SubmissionStatus.SUBMITTED: 2,
    SubmissionStatus.GRADED: 3,
}


class ApprovalStatus(StrEnum):
    SUBMITTED = "Submitted"
    FACULTY_REVIEW = "Faculty Review"
    HOD_APPROVAL = "HOD Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED)


PENDING_APPROVAL_STATUSES = (
    ApprovalStatus.SUBMITTED,
    ApprovalStatus.FACULTY_REVIEW,
    ApprovalStatus.HOD_APPROVAL,
)


class ActorRole(StrEnum):
    """Verified role of the caller. Authentication happens outside the engine."""

    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"


class ApprovalAction(StrEnum):
    APPROVE = "approve"
    REJECT = "reject"


# ---------------------------------------------------------------------------
# Automation rules
# ---------------------------------------------------------------------------


class RuleComponent(BaseModel):
    """A trigger, condition or action: a type tag plus free-form configuration."""

    model_config = ConfigDict(frozen=True)

    type: str
    configuration: dict[str, Any] = Field(default_factory=dict)


class AutomationRule(BaseModel):
    """Declarative automation rule (trigger + conditions + actions)."""

    model_config = ConfigDict(frozen=True)

    name: str
    trigger: RuleComponent
    conditions: tuple[RuleComponent, ...] = ()
    actions: tuple[RuleComponent, ...] = ()

    def project_scope(self) -> str | None:
        """Return the project key this rule is filtered to, if any."""
        for cond in self.conditions:
            if cond.type == "issue.field.equals" and cond.configuration.get("field") == "project":
                return cond.configuration.get("value")
        return None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class RuleHandle(_CamelModel):
    """A rule accepted by the issue tracker."""

    rule_id: str | None = None
    name: str
    project_key: str
    rule: AutomationRule


class RuleExecution(_CamelModel):
    """One execution-log entry of a registered rule."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    id: str = ""
    status: str = ""
    started: str | None = None
    message: str | None = None


# ---------------------------------------------------------------------------
# Academic records
# ---------------------------------------------------------------------------


class AssignmentRecord(_CamelModel):
    issue_key: str | None = None
    summary: str
    description: str = ""
    assignee: str | None = None
    reporter: str | None = None
    deadline: date | None = None
    total_marks: float = Field(default=0, ge=0)
    course_code: str = ""
    allow_file_upload: bool = True
    submission_status: SubmissionStatus = SubmissionStatus.NOT_STARTED
    grade: float | None = None
    feedback: str | None = None

    @model_validator(mode="after")
    def grade_within_total(self) -> AssignmentRecord:
        if self.grade is not None and self.total_marks and not (
            0 <= self.grade <= self.total_marks
        ):
            raise ValueError(f"grade {self.grade} outside [0, {self.total_marks}]")
        return self


class TeamMember(_CamelModel):
    account_id: str = ""
    name: str
    role: str = ""


class ProposalRecord(_CamelModel):
    id: str | None = None
    title: str
    problem_statement: str = ""
    proposed_technology: list[str] = Field(default_factory=list)
    team_members: list[TeamMember] = Field(default_factory=list)
    submission_date: datetime | None = None
    approval_status: ApprovalStatus = ApprovalStatus.SUBMITTED
    assigned_guide: str | None = None
    comments: str | None = None


# ---------------------------------------------------------------------------
# Search and dashboard
# ---------------------------------------------------------------------------


class SearchResult(BaseModel):
    """One search response: server-reported total plus the fetched issues."""

    total: int = 0
    items: list[dict[str, Any]] = Field(default_factory=list)


class DashboardStats(_CamelModel):
    total_assignments: int = 0
    pending_submissions: int = 0
    graded_assignments: int = 0
    active_projects: int = 0
    pending_approvals: int = 0
    failed_projects: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Workflow outcomes
# ---------------------------------------------------------------------------


class WorkflowResult(_CamelModel):
    """Outcome of a multi-step workflow, including which steps committed."""

    success: bool = False
    issue_key: str | None = None
    steps_completed: list[str] = Field(default_factory=list)
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
