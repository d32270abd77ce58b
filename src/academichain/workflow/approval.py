"""
Project-proposal approval workflow.

  Submitted ──(intake rule)──▶ Faculty Review ──approve/faculty──▶ HOD Approval
                                    │                                  │
                              reject/faculty                approve/admin │ reject/admin
                                    ▼                                  ▼
                                 Rejected                    Approved / Rejected

Rules:
  - Every edge is gated by the actor's role; anything not in TRANSITIONS is refused.
  - Approved and Rejected are terminal.
  - Submitted has no outgoing edge here. New proposals are moved into
    Faculty Review by the project's intake automation rule.
  - A refused transition never reaches the issue tracker.
"""

from __future__ import annotations

import structlog

from academichain.core.constants import ISSUE_TYPE_PROPOSAL
from academichain.core.exceptions import InvalidTransitionError
from academichain.core.fields import AcademicField, FieldMap
from academichain.core.models import (
    ActorRole,
    ApprovalAction,
    ApprovalStatus,
    ProposalRecord,
)
from academichain.gateways.issues import IssueGateway, jql_and, jql_equals

logger = structlog.get_logger()

TRANSITIONS: dict[tuple[ApprovalStatus, ApprovalAction, ActorRole], ApprovalStatus] = {
    (ApprovalStatus.FACULTY_REVIEW, ApprovalAction.APPROVE, ActorRole.FACULTY): (
        ApprovalStatus.HOD_APPROVAL
    ),
    (ApprovalStatus.FACULTY_REVIEW, ApprovalAction.REJECT, ActorRole.FACULTY): (
        ApprovalStatus.REJECTED
    ),
    (ApprovalStatus.HOD_APPROVAL, ApprovalAction.APPROVE, ActorRole.ADMIN): (
        ApprovalStatus.APPROVED
    ),
    (ApprovalStatus.HOD_APPROVAL, ApprovalAction.REJECT, ActorRole.ADMIN): (
        ApprovalStatus.REJECTED
    ),
}

TERMINAL_STATES = frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED})

_PAST_TENSE = {ApprovalAction.APPROVE: "approved", ApprovalAction.REJECT: "rejected"}


class ApprovalStateMachine:
    """Stateless evaluator over :data:`TRANSITIONS`."""

    @staticmethod
    def next_status(
        current: ApprovalStatus, action: ApprovalAction, role: ActorRole
    ) -> ApprovalStatus:
        target = TRANSITIONS.get((current, action, role))
        if target is None:
            raise InvalidTransitionError(current, action, role)
        return target

    @classmethod
    def apply(
        cls, proposal: ProposalRecord, action: ApprovalAction, role: ActorRole
    ) -> ProposalRecord:
        """Return a copy of *proposal* in its next state. The input is left untouched."""
        target = cls.next_status(proposal.approval_status, action, role)
        return proposal.model_copy(update={"approval_status": target})

    @staticmethod
    def allowed_actions(
        current: ApprovalStatus, role: ActorRole
    ) -> list[ApprovalAction]:
        return [a for (s, a, r) in TRANSITIONS if s == current and r == role]


class ApprovalService:
    """
    Approval workflow backed by the issue tracker.

    Remote failures propagate as :class:`RemoteCallError`; a refused
    transition raises :class:`InvalidTransitionError` before any write.
    """

    def __init__(self, issues: IssueGateway, *, fields: FieldMap | None = None) -> None:
        self._issues = issues
        self._fields = fields or FieldMap()

    async def list_proposals(self, project_key: str | None = None) -> list[ProposalRecord]:
        clauses = [jql_equals("issuetype", ISSUE_TYPE_PROPOSAL)]
        if project_key:
            clauses.insert(0, jql_equals("project", project_key))
        result = await self._issues.search_all(jql_and(*clauses) + " ORDER BY created DESC")
        return [self._fields.proposal_from_issue(issue) for issue in result.items]

    async def submit_proposal(self, project_key: str, proposal: ProposalRecord) -> ProposalRecord:
        """Create the proposal issue. New proposals always start at Submitted."""
        record = proposal.model_copy(update={"approval_status": ApprovalStatus.SUBMITTED})
        created = await self._issues.create_issue(
            self._fields.proposal_to_fields(record, project_key)
        )
        key = created.get("key")
        logger.info("proposal_submitted", project_key=project_key, proposal_id=key)
        return record.model_copy(update={"id": key})

    async def get_proposal(self, proposal_id: str) -> ProposalRecord:
        issue = await self._issues.get_issue(proposal_id)
        return self._fields.proposal_from_issue(issue)

    async def process_approval(
        self,
        proposal_id: str,
        action: ApprovalAction,
        role: ActorRole,
        comments: str | None = None,
        project_key: str | None = None,
    ) -> list[ProposalRecord]:
        """
        Apply *action* by *role* to a proposal and return the refreshed collection.

        The new status is computed locally first; an invalid transition is
        refused without touching the issue tracker.
        """
        current = await self.get_proposal(proposal_id)
        try:
            updated = ApprovalStateMachine.apply(current, action, role)
        except InvalidTransitionError:
            logger.warning(
                "approval_transition_refused",
                proposal_id=proposal_id,
                status=current.approval_status.value,
                action=action.value,
                role=role.value,
            )
            raise

        values: dict[AcademicField, object] = {
            AcademicField.APPROVAL_STATUS: updated.approval_status
        }
        if comments:
            values[AcademicField.PROPOSAL_COMMENTS] = comments
        await self._issues.update_issue(proposal_id, self._fields.to_remote(values))

        note = (
            f"Proposal {_PAST_TENSE[action]} by {role.value}: "
            f"{current.approval_status.value} → {updated.approval_status.value}"
        )
        if comments:
            note += f"\n{comments}"
        await self._issues.add_comment(proposal_id, note)

        logger.info(
            "approval_processed",
            proposal_id=proposal_id,
            from_status=current.approval_status.value,
            to_status=updated.approval_status.value,
            role=role.value,
        )
        return await self.list_proposals(project_key)
