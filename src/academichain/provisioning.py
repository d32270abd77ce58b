"""
Course provisioning.

Sets up everything a semester course needs in the two remote systems:

1. Issue tracker: project, academic issue types, custom fields, automation rules.
2. Knowledge base: course space, page templates, initial landing pages.

Project and space creation are prerequisites: when either fails, the steps
that depend on it are skipped. Every other item is independent; a failure is
logged and recorded in the report, and provisioning moves on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

import structlog
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from academichain.automation.rules import register_course_rules
from academichain.core.constants import (
    ISSUE_TYPE_ASSIGNMENT,
    ISSUE_TYPE_PROPOSAL,
    ISSUE_TYPE_SEMESTER_TASK,
)
from academichain.core.exceptions import RemoteCallError
from academichain.core.fields import FIELD_NAMES, AcademicField, FieldMap
from academichain.gateways.issues import IssueGateway
from academichain.gateways.knowledge import KnowledgeBaseGateway
from academichain.knowledge.templates import COURSE_TEMPLATES, SemesterInfo, initial_pages

logger = structlog.get_logger()

_CF = "com.atlassian.jira.plugin.system.customfieldtypes"

ISSUE_TYPES: tuple[tuple[str, str], ...] = (
    (ISSUE_TYPE_ASSIGNMENT, "Academic assignment with submission tracking"),
    (ISSUE_TYPE_PROPOSAL, "Student project proposal for approval"),
    (ISSUE_TYPE_SEMESTER_TASK, "General semester management task"),
)


@dataclass(frozen=True)
class CustomFieldSpec:
    field: AcademicField
    description: str
    type: str
    searcher_key: str

    @property
    def name(self) -> str:
        return FIELD_NAMES[self.field]


_TEXT = (f"{_CF}:textfield", f"{_CF}:textsearcher")
_TEXTAREA = (f"{_CF}:textarea", f"{_CF}:textsearcher")
_FLOAT = (f"{_CF}:float", f"{_CF}:numbersearcher")
_SELECT = (f"{_CF}:select", f"{_CF}:multiselectsearcher")
_MULTISELECT = (f"{_CF}:multiselect", f"{_CF}:multiselectsearcher")

# Allow File Upload is bound to a site-defined checkbox field through [field_ids]
CUSTOM_FIELDS: tuple[CustomFieldSpec, ...] = (
    CustomFieldSpec(AcademicField.COURSE_CODE, "Course identifier code", *_TEXT),
    CustomFieldSpec(AcademicField.TOTAL_MARKS, "Maximum marks for assignment", *_FLOAT),
    CustomFieldSpec(AcademicField.SUBMISSION_STATUS, "Current submission status", *_SELECT),
    CustomFieldSpec(AcademicField.GRADE, "Assignment grade", *_FLOAT),
    CustomFieldSpec(AcademicField.FEEDBACK, "Grader feedback for the student", *_TEXTAREA),
    CustomFieldSpec(AcademicField.SUBMISSION_NOTES, "Notes attached on submission", *_TEXTAREA),
    CustomFieldSpec(
        AcademicField.PROBLEM_STATEMENT, "Project problem statement", *_TEXTAREA
    ),
    CustomFieldSpec(
        AcademicField.PROPOSED_TECHNOLOGY, "Technologies to be used", *_MULTISELECT
    ),
    CustomFieldSpec(AcademicField.TEAM_MEMBERS, "Project team members", *_TEXTAREA),
    CustomFieldSpec(AcademicField.APPROVAL_STATUS, "Project approval status", *_SELECT),
    CustomFieldSpec(AcademicField.ASSIGNED_GUIDE, "Faculty guide for the project", *_TEXT),
    CustomFieldSpec(
        AcademicField.PROPOSAL_COMMENTS, "Reviewer comments on the proposal", *_TEXTAREA
    ),
)


class CourseSetup(BaseModel):
    """Input for :func:`provision_course`. Project key and space key are the same."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_key: str
    name: str
    lead: str
    description: str = ""
    semester_name: str
    start_date: date | None = None
    end_date: date | None = None
    create_project: bool = True
    register_rules: bool = True

    @field_validator("project_key")
    @classmethod
    def validate_project_key(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalnum() or not v[:1].isalpha():
            raise ValueError("project_key must be alphanumeric and start with a letter")
        return v


@dataclass
class ProvisioningReport:
    project_key: str
    completed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    field_ids: dict[str, str] = field(default_factory=dict)
    rule_ids: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def record(self, step: str, exc: Exception | None = None) -> None:
        if exc is None:
            self.completed.append(step)
            return
        self.failed[step] = str(exc)
        logger.warning("provisioning_step_failed", project_key=self.project_key, step=step,
                       error=str(exc))

    def to_dict(self) -> dict[str, object]:
        return {
            "projectKey": self.project_key,
            "ok": self.ok,
            "completed": list(self.completed),
            "failed": dict(self.failed),
            "fieldIds": dict(self.field_ids),
            "ruleIds": list(self.rule_ids),
        }


# ---------------------------------------------------------------------------
# Issue tracker
# ---------------------------------------------------------------------------


async def provision_issue_tracker(
    issues: IssueGateway,
    setup: CourseSetup,
    report: ProvisioningReport,
    fields: FieldMap | None = None,
) -> None:
    if setup.create_project:
        try:
            await issues.create_project(setup.project_key, setup.name, setup.lead,
                                        setup.description)
        except RemoteCallError as exc:
            report.record("project", exc)
            return
        report.record("project")

    for name, description in ISSUE_TYPES:
        step = f"issue_type:{name}"
        try:
            await issues.create_issue_type(name, description)
        except RemoteCallError as exc:
            report.record(step, exc)
            continue
        report.record(step)

    for field_spec in CUSTOM_FIELDS:
        step = f"field:{field_spec.name}"
        try:
            created = await issues.create_custom_field(
                field_spec.name, field_spec.description, field_spec.type, field_spec.searcher_key
            )
        except RemoteCallError as exc:
            report.record(step, exc)
            continue
        report.record(step)
        if isinstance(created, dict) and created.get("id"):
            report.field_ids[field_spec.field.value] = created["id"]

    if setup.register_rules:
        # Rules reference custom-field ids, so prefer the ones just created
        rule_fields = FieldMap({**_field_overrides(fields), **report.field_ids})
        handles, failures = await register_course_rules(issues, setup.project_key, rule_fields)
        for handle in handles:
            report.record(f"rule:{handle.name}")
            if handle.rule_id:
                report.rule_ids.append(handle.rule_id)
        for failure in failures:
            report.failed[f"rule:{failure.rule_name}"] = str(failure)


def _field_overrides(fields: FieldMap | None) -> dict[str, str]:
    if fields is None:
        return {}
    return {f.value: fields.id_for(f) for f in AcademicField}


# ---------------------------------------------------------------------------
# Knowledge base
# ---------------------------------------------------------------------------


async def provision_knowledge_base(
    knowledge: KnowledgeBaseGateway, setup: CourseSetup, report: ProvisioningReport
) -> None:
    try:
        space = await knowledge.create_space(
            setup.project_key,
            f"{setup.semester_name} - {setup.project_key}",
            f"Academic space for {setup.semester_name}",
        )
    except RemoteCallError as exc:
        report.record("space", exc)
        return
    report.record("space")
    space_key = (space or {}).get("key") or setup.project_key

    for template in COURSE_TEMPLATES:
        step = f"template:{template.key}"
        try:
            await knowledge.create_template(
                space_key, template.name, template.description, template.body
            )
        except RemoteCallError as exc:
            report.record(step, exc)
            continue
        report.record(step)

    info = SemesterInfo(
        space_key=space_key,
        semester_name=setup.semester_name,
        start_date=setup.start_date,
        end_date=setup.end_date,
    )
    for page in initial_pages(info):
        step = f"page:{page.title}"
        try:
            await knowledge.create_page(space_key, page.title, page.body)
        except RemoteCallError as exc:
            report.record(step, exc)
            continue
        report.record(step)


async def provision_course(
    issues: IssueGateway,
    knowledge: KnowledgeBaseGateway,
    setup: CourseSetup,
    fields: FieldMap | None = None,
) -> ProvisioningReport:
    report = ProvisioningReport(project_key=setup.project_key)
    logger.info("provisioning_started", project_key=setup.project_key)
    await provision_issue_tracker(issues, setup, report, fields)
    await provision_knowledge_base(knowledge, setup, report)
    logger.info(
        "provisioning_finished",
        project_key=setup.project_key,
        completed=len(report.completed),
        failed=len(report.failed),
    )
    return report
