"""
Presentation-boundary resolver.

A registry of named operations invoked with a JSON-compatible payload. Each
invocation returns a JSON-compatible dict; failures come back as
``{"error": message}`` and never as exceptions.

Usage::

    resolver = build_resolver(load_config())
    await resolver.invoke("gradeAssignment", {"issueKey": "CS101-7", "grade": 87,
                                              "feedback": "Great work"})
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, TypeVar

import httpx
import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from academichain.automation.rules import register_course_rules
from academichain.core.config import AcademicConfig
from academichain.core.exceptions import AcademiChainError, RemoteCallError, ValidationError
from academichain.core.models import (
    ActorRole,
    ApprovalAction,
    AssignmentRecord,
    ProposalRecord,
    RuleExecution,
    SubmissionStatus,
)
from academichain.dashboard.aggregator import DashboardAggregator
from academichain.gateways.issues import IssueGateway
from academichain.gateways.knowledge import KnowledgeBaseGateway
from academichain.provisioning import CourseSetup, provision_course
from academichain.workflow.approval import ApprovalService
from academichain.workflow.executor import WorkflowExecutor

logger = structlog.get_logger()

Handler = Callable[[dict[str, Any]], Awaitable[Any]]
_M = TypeVar("_M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DashboardPayload(_Payload):
    project_keys: list[str] | None = None


class IssueKeyPayload(_Payload):
    issue_key: str = Field(min_length=1)


class SubmissionData(_Payload):
    submission_notes: str = ""


class SubmitPayload(IssueKeyPayload):
    submission_data: SubmissionData = Field(default_factory=SubmissionData)


class GradePayload(IssueKeyPayload):
    grade: float = Field(ge=0)
    feedback: str = ""
    total_marks: float | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def grade_within_total(self) -> GradePayload:
        if self.total_marks is not None and self.grade > self.total_marks:
            raise ValueError(f"grade {self.grade} exceeds total marks {self.total_marks}")
        return self


class ProjectKeyPayload(_Payload):
    project_key: str = Field(min_length=1)


class OptionalProjectPayload(_Payload):
    project_key: str | None = None


class PublishFeedbackPayload(_Payload):
    page_id: str = Field(min_length=1)
    grade: float = Field(ge=0)
    total_marks: float = Field(ge=0)
    feedback: str = ""


class ApprovalPayload(_Payload):
    proposal_id: str = Field(min_length=1)
    action: ApprovalAction
    role: ActorRole
    comments: str | None = None
    project_key: str | None = None


class RuleLogsPayload(_Payload):
    rule_id: str = Field(min_length=1)


class LecturePayload(ProjectKeyPayload):
    lecture_number: int = Field(ge=1)
    lecture_title: str = Field(min_length=1)
    lecture_date: date
    learning_objectives: str = ""
    agenda: str = ""
    key_concepts: str = ""
    examples: str = ""
    next_lecture: str = ""
    parent_id: str | None = None

    def template_values(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"project_key", "parent_id"})


def parse_payload(model: type[_M], payload: Any) -> _M:
    """Validate *payload* against *model*, raising :class:`ValidationError` on failure."""
    try:
        return model.model_validate(payload if payload is not None else {})
    except pydantic.ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(f"Invalid payload: {problems}") from exc


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class Resolver:
    """Named-operation registry with error-envelope semantics."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def define(self, name: str) -> Callable[[Handler], Handler]:
        def decorator(fn: Handler) -> Handler:
            if name in self._handlers:
                raise ValueError(f"Operation {name!r} is already defined")
            self._handlers[name] = fn
            return fn

        return decorator

    @property
    def operations(self) -> list[str]:
        return sorted(self._handlers)

    async def invoke(self, name: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        handler = self._handlers.get(name)
        if handler is None:
            return {"error": f"Unknown operation: {name}"}
        log = logger.bind(operation=name)
        try:
            result = await handler(payload if payload is not None else {})
        except AcademiChainError as exc:
            log.warning("operation_failed", error=str(exc), error_type=type(exc).__name__)
            return {"error": str(exc)}
        except Exception:
            log.exception("operation_crashed")
            return {"error": f"Operation {name} failed unexpectedly"}
        log.debug("operation_completed")
        return result if isinstance(result, dict) else {"result": result}


# ---------------------------------------------------------------------------
# Default operation set
# ---------------------------------------------------------------------------


class GatewayFactory:
    """Opens fresh gateways per invocation from the loaded config."""

    def __init__(
        self, config: AcademicConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.config = config
        self._transport = transport

    @asynccontextmanager
    async def open(self) -> AsyncIterator[tuple[IssueGateway, KnowledgeBaseGateway]]:
        issues = IssueGateway.from_config(self.config, self._transport)
        knowledge = KnowledgeBaseGateway.from_config(self.config, self._transport)
        async with issues, knowledge:
            yield issues, knowledge


def build_resolver(
    config: AcademicConfig, *, transport: httpx.AsyncBaseTransport | None = None
) -> Resolver:
    """Resolver with every academic operation bound to *config*."""
    resolver = Resolver()
    gateways = GatewayFactory(config, transport)
    fields = config.field_map()
    departments = {
        key: dept.name for dept in reversed(config.departments) for key in dept.project_keys
    }

    def executor(issues: IssueGateway, knowledge: KnowledgeBaseGateway) -> WorkflowExecutor:
        return WorkflowExecutor(
            issues,
            knowledge,
            fields=fields,
            submit_transition_id=config.workflow.submit_transition_id,
        )

    @resolver.define("getAcademicConfig")
    async def get_academic_config(payload: dict[str, Any]) -> dict[str, Any]:
        return config.public_view()

    @resolver.define("getDashboardStats")
    async def get_dashboard_stats(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(DashboardPayload, payload)
        keys = req.project_keys if req.project_keys is not None else config.project_keys
        async with gateways.open() as (issues, _):
            stats = await DashboardAggregator(issues, fields=fields).compute_stats(keys)
        return _dump(stats)

    @resolver.define("getAssignmentData")
    async def get_assignment_data(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(IssueKeyPayload, payload)
        async with gateways.open() as (issues, knowledge):
            record = await executor(issues, knowledge).get_assignment(req.issue_key)
        if record is None:
            return {"error": f"Assignment not found: {req.issue_key}"}
        return _dump(record)

    @resolver.define("submitAssignment")
    async def submit_assignment(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(SubmitPayload, payload)
        async with gateways.open() as (issues, knowledge):
            ok = await executor(issues, knowledge).execute_submission(
                req.issue_key, {"submissionNotes": req.submission_data.submission_notes}
            )
        return {"success": ok}

    @resolver.define("gradeAssignment")
    async def grade_assignment(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(GradePayload, payload)
        async with gateways.open() as (issues, knowledge):
            ok = await executor(issues, knowledge).grade_assignment(
                req.issue_key, req.grade, req.feedback
            )
        return {"success": ok}

    @resolver.define("createAssignment")
    async def create_assignment(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(ProjectKeyPayload, payload)
        assignment = parse_payload(AssignmentRecord, payload)
        async with gateways.open() as (issues, knowledge):
            result = await executor(issues, knowledge).create_assignment(
                req.project_key, assignment
            )
        return _dump(result)

    @resolver.define("publishFeedback")
    async def publish_feedback(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(PublishFeedbackPayload, payload)
        async with gateways.open() as (issues, knowledge):
            ok = await executor(issues, knowledge).publish_feedback(
                req.page_id, req.grade, req.total_marks, req.feedback
            )
        return {"success": ok}

    @resolver.define("createLecture")
    async def create_lecture(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(LecturePayload, payload)
        async with gateways.open() as (issues, knowledge):
            result = await executor(issues, knowledge).create_lecture(
                req.project_key,
                req.lecture_number,
                req.lecture_title,
                req.template_values(),
                parent_id=req.parent_id,
            )
        return _dump(result)

    @resolver.define("getSemesterData")
    async def get_semester_data(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(DashboardPayload, payload)
        keys = req.project_keys if req.project_keys is not None else config.project_keys
        courses: list[dict[str, Any]] = []
        failed: list[str] = []
        async with gateways.open() as (issues, knowledge):
            runner = executor(issues, knowledge)
            for key in keys:
                try:
                    assignments = await runner.list_assignments(key)
                except RemoteCallError as exc:
                    logger.warning("semester_project_query_failed", project_key=key, error=str(exc))
                    failed.append(key)
                    continue
                handed_in = sum(
                    1
                    for a in assignments
                    if a.submission_status in (SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED)
                )
                courses.append(
                    {
                        "projectKey": key,
                        "department": departments.get(key),
                        "assignments": [_dump(a) for a in assignments],
                        "submissions": handed_in,
                    }
                )
        return {
            "institutionName": config.institution_name,
            "courses": courses,
            "failedProjects": failed,
        }

    @resolver.define("getProjectProposals")
    async def get_project_proposals(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(OptionalProjectPayload, payload)
        async with gateways.open() as (issues, _):
            proposals = await ApprovalService(issues, fields=fields).list_proposals(
                req.project_key
            )
        return {"proposals": [_dump(p) for p in proposals]}

    @resolver.define("submitProjectProposal")
    async def submit_project_proposal(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(ProjectKeyPayload, payload)
        proposal = parse_payload(ProposalRecord, payload)
        async with gateways.open() as (issues, _):
            created = await ApprovalService(issues, fields=fields).submit_proposal(
                req.project_key, proposal
            )
        return {"success": True, "proposal": _dump(created)}

    @resolver.define("processProposalApproval")
    async def process_proposal_approval(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(ApprovalPayload, payload)
        async with gateways.open() as (issues, _):
            proposals = await ApprovalService(issues, fields=fields).process_approval(
                req.proposal_id, req.action, req.role, req.comments, req.project_key
            )
        return {"success": True, "proposals": [_dump(p) for p in proposals]}

    @resolver.define("registerAutomationRules")
    async def register_automation_rules(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(ProjectKeyPayload, payload)
        async with gateways.open() as (issues, _):
            handles, failures = await register_course_rules(issues, req.project_key, fields)
        return {
            "rules": [_dump(h) for h in handles],
            "failures": [
                {"name": f.rule_name, "status": f.status, "body": f.body} for f in failures
            ],
        }

    @resolver.define("getAutomationLogs")
    async def get_automation_logs(payload: dict[str, Any]) -> dict[str, Any]:
        req = parse_payload(RuleLogsPayload, payload)
        async with gateways.open() as (issues, _):
            values = await issues.get_rule_executions(req.rule_id)
        executions = [RuleExecution.model_validate(v) for v in values if isinstance(v, dict)]
        return {"executions": [_dump(e) for e in executions]}

    @resolver.define("provisionCourse")
    async def provision_course_op(payload: dict[str, Any]) -> dict[str, Any]:
        setup = parse_payload(CourseSetup, payload)
        async with gateways.open() as (issues, knowledge):
            report = await provision_course(issues, knowledge, setup, fields)
        return report.to_dict()

    return resolver
