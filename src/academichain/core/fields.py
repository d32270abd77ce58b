"""
Mapping between typed academic fields and the issue tracker's custom-field ids.

The tracker identifies custom fields by opaque ids (``customfield_10003``)
that differ per site. Everything above the gateway works with
:class:`AcademicField`; :class:`FieldMap` is the only place that knows the
remote ids and how each field kind is encoded:

  text / number  : plain JSON value
  select          ``{"value": label}`` on write; label or ``{"value": ...}`` on read
  multiselect     list of ``{"value": label}``
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from academichain.core.models import (
    ApprovalStatus,
    AssignmentRecord,
    ProposalRecord,
    SubmissionStatus,
    TeamMember,
)


class AcademicField(StrEnum):
    TOTAL_MARKS = "total_marks"
    COURSE_CODE = "course_code"
    SUBMISSION_STATUS = "submission_status"
    GRADE = "grade"
    FEEDBACK = "feedback"
    SUBMISSION_NOTES = "submission_notes"
    ALLOW_FILE_UPLOAD = "allow_file_upload"
    PROBLEM_STATEMENT = "problem_statement"
    PROPOSED_TECHNOLOGY = "proposed_technology"
    TEAM_MEMBERS = "team_members"
    APPROVAL_STATUS = "approval_status"
    ASSIGNED_GUIDE = "assigned_guide"
    PROPOSAL_COMMENTS = "proposal_comments"


DEFAULT_FIELD_IDS: dict[AcademicField, str] = {
    AcademicField.TOTAL_MARKS: "customfield_10001",
    AcademicField.COURSE_CODE: "customfield_10002",
    AcademicField.SUBMISSION_STATUS: "customfield_10003",
    AcademicField.GRADE: "customfield_10004",
    AcademicField.FEEDBACK: "customfield_10005",
    AcademicField.SUBMISSION_NOTES: "customfield_10006",
    AcademicField.ALLOW_FILE_UPLOAD: "customfield_10007",
    AcademicField.PROBLEM_STATEMENT: "customfield_10008",
    AcademicField.PROPOSED_TECHNOLOGY: "customfield_10009",
    AcademicField.TEAM_MEMBERS: "customfield_10010",
    AcademicField.APPROVAL_STATUS: "customfield_10011",
    AcademicField.ASSIGNED_GUIDE: "customfield_10012",
    AcademicField.PROPOSAL_COMMENTS: "customfield_10013",
}

_SELECT_FIELDS = frozenset(
    {AcademicField.SUBMISSION_STATUS, AcademicField.APPROVAL_STATUS}
)
_MULTISELECT_FIELDS = frozenset({AcademicField.PROPOSED_TECHNOLOGY})

# Display names used when provisioning fields and in JQL clauses
FIELD_NAMES: dict[AcademicField, str] = {
    AcademicField.TOTAL_MARKS: "Total Marks",
    AcademicField.COURSE_CODE: "Course Code",
    AcademicField.SUBMISSION_STATUS: "Submission Status",
    AcademicField.GRADE: "Grade",
    AcademicField.FEEDBACK: "Feedback",
    AcademicField.SUBMISSION_NOTES: "Submission Notes",
    AcademicField.ALLOW_FILE_UPLOAD: "Allow File Upload",
    AcademicField.PROBLEM_STATEMENT: "Problem Statement",
    AcademicField.PROPOSED_TECHNOLOGY: "Proposed Technology",
    AcademicField.TEAM_MEMBERS: "Team Members",
    AcademicField.APPROVAL_STATUS: "Approval Status",
    AcademicField.ASSIGNED_GUIDE: "Assigned Guide",
    AcademicField.PROPOSAL_COMMENTS: "Review Comments",
}


class FieldMap:
    """Translate typed academic field values to and from remote field ids."""

    def __init__(self, ids: Mapping[AcademicField | str, str] | None = None) -> None:
        merged: dict[AcademicField, str] = dict(DEFAULT_FIELD_IDS)
        for key, value in (ids or {}).items():
            merged[AcademicField(key)] = value
        self._ids = merged
        self._reverse = {v: k for k, v in merged.items()}

    def id_for(self, field: AcademicField) -> str:
        return self._ids[field]

    def field_for(self, remote_id: str) -> AcademicField | None:
        return self._reverse.get(remote_id)

    # ------------------------------------------------------------------
    # Raw value encoding
    # ------------------------------------------------------------------

    def to_remote(self, values: Mapping[AcademicField, Any]) -> dict[str, Any]:
        """Encode ``{AcademicField: value}`` into a remote ``fields`` payload."""
        out: dict[str, Any] = {}
        for field, value in values.items():
            out[self._ids[field]] = _encode(field, value)
        return out

    def from_remote(self, fields: Mapping[str, Any]) -> dict[AcademicField, Any]:
        """Decode known custom fields from a remote ``fields`` payload; unknown ids are dropped."""
        out: dict[AcademicField, Any] = {}
        for remote_id, raw in fields.items():
            field = self._reverse.get(remote_id)
            if field is not None:
                out[field] = _decode(field, raw)
        return out

    # ------------------------------------------------------------------
    # Record mapping
    # ------------------------------------------------------------------

    def assignment_from_issue(self, issue: Mapping[str, Any]) -> AssignmentRecord:
        fields = issue.get("fields") or {}
        custom = self.from_remote(fields)
        status = custom.get(AcademicField.SUBMISSION_STATUS) or SubmissionStatus.NOT_STARTED
        allow_upload = custom.get(AcademicField.ALLOW_FILE_UPLOAD)
        return AssignmentRecord(
            issue_key=issue.get("key"),
            summary=fields.get("summary") or "",
            description=_plain_text(fields.get("description")),
            assignee=_account_id(fields.get("assignee")),
            reporter=_account_id(fields.get("reporter")),
            deadline=_parse_date(fields.get("duedate")),
            total_marks=custom.get(AcademicField.TOTAL_MARKS) or 0,
            course_code=custom.get(AcademicField.COURSE_CODE) or "",
            allow_file_upload=True if allow_upload is None else bool(allow_upload),
            submission_status=SubmissionStatus(status),
            grade=custom.get(AcademicField.GRADE),
            feedback=custom.get(AcademicField.FEEDBACK),
        )

    def assignment_to_fields(self, record: AssignmentRecord, project_key: str) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "project": {"key": project_key},
            "issuetype": {"name": "Assignment"},
            "summary": record.summary,
            "description": adf_document(record.description),
        }
        if record.assignee:
            fields["assignee"] = {"accountId": record.assignee}
        if record.reporter:
            fields["reporter"] = {"accountId": record.reporter}
        if record.deadline:
            fields["duedate"] = record.deadline.isoformat()
        fields.update(
            self.to_remote(
                {
                    AcademicField.TOTAL_MARKS: record.total_marks,
                    AcademicField.COURSE_CODE: record.course_code or project_key,
                    AcademicField.ALLOW_FILE_UPLOAD: record.allow_file_upload,
                    AcademicField.SUBMISSION_STATUS: record.submission_status,
                }
            )
        )
        return fields

    def proposal_from_issue(self, issue: Mapping[str, Any]) -> ProposalRecord:
        fields = issue.get("fields") or {}
        custom = self.from_remote(fields)
        status = custom.get(AcademicField.APPROVAL_STATUS) or ApprovalStatus.SUBMITTED
        return ProposalRecord(
            id=issue.get("key"),
            title=fields.get("summary") or "",
            problem_statement=custom.get(AcademicField.PROBLEM_STATEMENT) or "",
            proposed_technology=custom.get(AcademicField.PROPOSED_TECHNOLOGY) or [],
            team_members=custom.get(AcademicField.TEAM_MEMBERS) or [],
            submission_date=_parse_datetime(fields.get("created")),
            approval_status=ApprovalStatus(status),
            assigned_guide=custom.get(AcademicField.ASSIGNED_GUIDE),
            comments=custom.get(AcademicField.PROPOSAL_COMMENTS),
        )

    def proposal_to_fields(self, record: ProposalRecord, project_key: str) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "project": {"key": project_key},
            "issuetype": {"name": "Project Proposal"},
            "summary": record.title,
            "description": adf_document(record.problem_statement),
        }
        values: dict[AcademicField, Any] = {
            AcademicField.PROBLEM_STATEMENT: record.problem_statement,
            AcademicField.PROPOSED_TECHNOLOGY: record.proposed_technology,
            AcademicField.TEAM_MEMBERS: record.team_members,
            AcademicField.APPROVAL_STATUS: record.approval_status,
        }
        if record.assigned_guide:
            values[AcademicField.ASSIGNED_GUIDE] = record.assigned_guide
        fields.update(self.to_remote(values))
        return fields


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def adf_document(text: str) -> dict[str, Any]:
    """Wrap plain text in a minimal Atlassian Document Format body (REST v3 rich text)."""
    paragraphs = [
        {"type": "paragraph", "content": [{"type": "text", "text": line}]}
        for line in text.splitlines()
        if line.strip()
    ]
    return {"type": "doc", "version": 1, "content": paragraphs}


def _encode(field: AcademicField, value: Any) -> Any:
    if value is None:
        return None
    if field in _SELECT_FIELDS:
        return {"value": str(value)}
    if field in _MULTISELECT_FIELDS:
        return [{"value": str(v)} for v in value]
    if field is AcademicField.TEAM_MEMBERS:
        return _format_team(value)
    if isinstance(value, StrEnum):
        return value.value
    return value


def _decode(field: AcademicField, raw: Any) -> Any:
    if raw is None:
        return None
    if field in _SELECT_FIELDS:
        return raw.get("value") if isinstance(raw, Mapping) else raw
    if field in _MULTISELECT_FIELDS:
        if isinstance(raw, str):
            return [t.strip() for t in raw.split(",") if t.strip()]
        return [v.get("value") if isinstance(v, Mapping) else v for v in raw]
    if field is AcademicField.TEAM_MEMBERS:
        return _parse_team(raw)
    return raw


def _format_team(members: Any) -> str:
    """Team members live in a textarea: one ``name (role)`` per line."""
    lines = []
    for m in members:
        if isinstance(m, TeamMember):
            lines.append(f"{m.name} ({m.role})" if m.role else m.name)
        else:
            lines.append(str(m))
    return "\n".join(lines)


def _parse_team(raw: Any) -> list[TeamMember]:
    if isinstance(raw, list):
        return [TeamMember.model_validate(m) if isinstance(m, Mapping) else TeamMember(name=str(m))
                for m in raw]
    members = []
    for line in str(raw).splitlines():
        line = line.strip()
        if not line:
            continue
        if line.endswith(")") and " (" in line:
            name, role = line[:-1].split(" (", 1)
            members.append(TeamMember(name=name.strip(), role=role.strip()))
        else:
            members.append(TeamMember(name=line))
    return members


def _account_id(user: Any) -> str | None:
    if isinstance(user, Mapping):
        return user.get("accountId")
    return user


def _plain_text(description: Any) -> str:
    """Flatten an Atlassian Document Format body to text; pass strings through."""
    if description is None:
        return ""
    if isinstance(description, str):
        return description
    parts: list[str] = []

    def walk(node: Any) -> None:
        if isinstance(node, Mapping):
            if node.get("type") == "text":
                parts.append(node.get("text", ""))
            for child in node.get("content", []) or []:
                walk(child)
            if node.get("type") == "paragraph":
                parts.append("\n")

    walk(description)
    return "".join(parts).strip()


def _parse_datetime(raw: Any) -> datetime | None:
    if not raw:
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        return None


def _parse_date(raw: Any) -> date | None:
    if not raw:
        return None
    if isinstance(raw, date):
        return raw
    try:
        return datetime.fromisoformat(str(raw)).date()
    except ValueError:
        return None
