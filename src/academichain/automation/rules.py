"""
Automation-rule descriptors for recurring academic events.

Builders are pure: same project key and field map, same rule. Every rule is
scoped to one project by an ``issue.field.equals`` condition on ``project``,
which is always the first condition.

Rules are evaluated by the issue tracker's own automation engine once
registered; :func:`register_rule` is the only function here that does I/O.
"""

from __future__ import annotations

import structlog

from academichain.core.constants import ISSUE_TYPE_ASSIGNMENT, ISSUE_TYPE_PROPOSAL
from academichain.core.exceptions import RegistrationError, RemoteCallError
from academichain.core.fields import AcademicField, FieldMap
from academichain.core.models import (
    ApprovalStatus,
    AutomationRule,
    RuleComponent,
    RuleHandle,
    SubmissionStatus,
)
from academichain.gateways.issues import IssueGateway

logger = structlog.get_logger()

SUBMISSION_RULE_NAME = "Assignment Submission Notification"
DEADLINE_RULE_NAME = "Assignment Deadline Reminder"
GRADING_RULE_NAME = "Assignment Grading Notification"
PROPOSAL_INTAKE_RULE_NAME = "Project Proposal Intake"

REVIEW_STATUS = "Under Review"
REMINDER_WINDOW = "2d"
REMINDER_TIME = "09:00"
FACULTY_GROUP = "faculty"


def _project_condition(project_key: str) -> RuleComponent:
    return RuleComponent(
        type="issue.field.equals",
        configuration={"field": "project", "value": project_key},
    )


def _issue_type_condition(issue_type: str) -> RuleComponent:
    return RuleComponent(
        type="issue.field.equals",
        configuration={"field": "issuetype", "value": issue_type},
    )


def _notify(recipients: list[str], subject: str, body: str) -> RuleComponent:
    return RuleComponent(
        type="send.notification",
        configuration={"recipients": recipients, "subject": subject, "body": body},
    )


def _transition(to_status: str) -> RuleComponent:
    return RuleComponent(type="transition.issue", configuration={"toStatus": to_status})


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_submission_rule(project_key: str, fields: FieldMap | None = None) -> AutomationRule:
    """Notify the reporter and move the issue to review when an assignment is submitted."""
    return AutomationRule(
        name=SUBMISSION_RULE_NAME,
        trigger=RuleComponent(
            type="issue.transitioned",
            configuration={
                "toStatus": SubmissionStatus.SUBMITTED.value,
                "issueType": ISSUE_TYPE_ASSIGNMENT,
            },
        ),
        conditions=(_project_condition(project_key),),
        actions=(
            _notify(
                ["reporter"],
                "Assignment Submitted: {{issue.summary}}",
                "Student {{issue.assignee.displayName}} has submitted assignment "
                "{{issue.summary}}. Please review and provide feedback.",
            ),
            _transition(REVIEW_STATUS),
        ),
    )


def build_deadline_reminder_rule(
    project_key: str, fields: FieldMap | None = None
) -> AutomationRule:
    """Daily reminder to assignees of unsubmitted assignments due within two days."""
    return AutomationRule(
        name=DEADLINE_RULE_NAME,
        trigger=RuleComponent(
            type="scheduled",
            configuration={"schedule": "daily", "time": REMINDER_TIME},
        ),
        conditions=(
            _project_condition(project_key),
            _issue_type_condition(ISSUE_TYPE_ASSIGNMENT),
            RuleComponent(
                type="issue.field.not.equals",
                configuration={"field": "status", "value": SubmissionStatus.SUBMITTED.value},
            ),
            RuleComponent(
                type="date.comparison",
                configuration={"field": "duedate", "operator": "within", "value": REMINDER_WINDOW},
            ),
        ),
        actions=(
            _notify(
                ["assignee"],
                "Assignment Deadline Approaching: {{issue.summary}}",
                "Reminder: Your assignment {{issue.summary}} is due on {{issue.duedate}}. "
                "Please submit before the deadline.",
            ),
        ),
    )


def build_grading_rule(project_key: str, fields: FieldMap | None = None) -> AutomationRule:
    """Mark an assignment Graded and notify the student once a grade is entered."""
    fields = fields or FieldMap()
    grade_id = fields.id_for(AcademicField.GRADE)
    feedback_id = fields.id_for(AcademicField.FEEDBACK)
    return AutomationRule(
        name=GRADING_RULE_NAME,
        trigger=RuleComponent(
            type="issue.updated",
            configuration={"fields": [grade_id, feedback_id]},
        ),
        conditions=(
            _project_condition(project_key),
            _issue_type_condition(ISSUE_TYPE_ASSIGNMENT),
            RuleComponent(type="issue.field.not.empty", configuration={"field": grade_id}),
        ),
        actions=(
            _transition(SubmissionStatus.GRADED.value),
            _notify(
                ["assignee"],
                "Assignment Graded: {{issue.summary}}",
                f"Your assignment {{{{issue.summary}}}} has been graded. "
                f"Grade: {{{{issue.{grade_id}}}}}. Feedback: {{{{issue.{feedback_id}}}}}",
            ),
        ),
    )


def build_proposal_intake_rule(
    project_key: str, fields: FieldMap | None = None
) -> AutomationRule:
    """Route a newly created proposal into faculty review."""
    fields = fields or FieldMap()
    return AutomationRule(
        name=PROPOSAL_INTAKE_RULE_NAME,
        trigger=RuleComponent(
            type="issue.created",
            configuration={"issueType": ISSUE_TYPE_PROPOSAL},
        ),
        conditions=(_project_condition(project_key),),
        actions=(
            RuleComponent(
                type="issue.field.set",
                configuration={
                    "field": fields.id_for(AcademicField.APPROVAL_STATUS),
                    "value": ApprovalStatus.FACULTY_REVIEW.value,
                },
            ),
            _notify(
                [f"group:{FACULTY_GROUP}"],
                "New Project Proposal: {{issue.summary}}",
                "A project proposal {{issue.summary}} is awaiting faculty review.",
            ),
        ),
    )


_BUILDERS = (
    build_submission_rule,
    build_deadline_reminder_rule,
    build_grading_rule,
    build_proposal_intake_rule,
)


def build_course_rules(project_key: str, fields: FieldMap | None = None) -> list[AutomationRule]:
    return [builder(project_key, fields) for builder in _BUILDERS]


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_rule(
    gateway: IssueGateway, rule: AutomationRule, project_key: str
) -> RuleHandle:
    """
    Submit *rule* to the issue tracker.

    Raises :class:`RegistrationError` carrying the status and raw response
    body when the tracker does not accept the rule. Not retried.
    """
    try:
        data = await gateway.create_automation_rule(rule)
    except RemoteCallError as exc:
        logger.error(
            "rule_registration_failed",
            rule=rule.name,
            project_key=project_key,
            status=exc.status,
        )
        raise RegistrationError(
            f"Failed to register automation rule {rule.name!r} for {project_key}",
            rule_name=rule.name,
            status=exc.status,
            body=exc.body,
        ) from exc

    rule_id = None
    if isinstance(data, dict):
        raw_id = data.get("id") or data.get("ruleId")
        rule_id = str(raw_id) if raw_id is not None else None
    logger.info("rule_registered", rule=rule.name, project_key=project_key, rule_id=rule_id)
    return RuleHandle(rule_id=rule_id, name=rule.name, project_key=project_key, rule=rule)


async def register_course_rules(
    gateway: IssueGateway, project_key: str, fields: FieldMap | None = None
) -> tuple[list[RuleHandle], list[RegistrationError]]:
    """Register every course rule; a rejected rule does not stop the rest."""
    handles: list[RuleHandle] = []
    failures: list[RegistrationError] = []
    for rule in build_course_rules(project_key, fields):
        try:
            handles.append(await register_rule(gateway, rule, project_key))
        except RegistrationError as exc:
            failures.append(exc)
    return handles, failures
