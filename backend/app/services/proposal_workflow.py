"""Thesis proposal approval by two supervisors.

Status model::

    submitted <-> revision        (supervisor requests revision / student updates)
    submitted -> approved         (both supervisor flags set)
    submitted | revision -> rejected
    approved -> submitted         (student replaces a supervisor)

``status == approved`` holds exactly when both approval flags are set. Flags
are set through ``PersistenceGateway.conditional_update`` so the decision to
move to ``approved`` is made against the row the write lands on.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ConflictError,
    InvalidStateError,
    PermissionDeniedError,
    ValidationError,
)
from app.models.history import HistorySubject
from app.models.notification import NotificationType
from app.models.proposal import ProposalStatus, ThesisProposal
from app.models.sempro import ReviewerRole, SemproRegistration, SemproStatus
from app.services.roles import Capability, Identity, require_capability, supervisor_role
from app.services.workflow_base import WorkflowService, normalize_text, require_text, workflow_operation

logger = logging.getLogger(__name__)

APPROVAL_FLAGS: dict[ReviewerRole, str] = {
    ReviewerRole.supervisor1: "approve_supervisor1",
    ReviewerRole.supervisor2: "approve_supervisor2",
}
SUPERVISOR_LABELS: dict[ReviewerRole, str] = {
    ReviewerRole.supervisor1: "Supervisor 1",
    ReviewerRole.supervisor2: "Supervisor 2",
}
OPEN_STATUSES = (ProposalStatus.submitted, ProposalStatus.revision)
# A seminar in any other status still relies on the current supervisors.
CLOSED_SEMPRO_STATUSES = (SemproStatus.rejected, SemproStatus.approved)


def _other_flag(proposal: ThesisProposal, slot: ReviewerRole) -> bool:
    if slot == ReviewerRole.supervisor1:
        return proposal.approve_supervisor2
    return proposal.approve_supervisor1


class ProposalWorkflow(WorkflowService):
    subject_type = HistorySubject.proposal

    def _load(self, proposal_id: str) -> ThesisProposal:
        return self.gateway.get(ThesisProposal, proposal_id, label="Thesis proposal")

    def _require_supervisor(self, proposal: ThesisProposal, actor: Identity, action: str) -> ReviewerRole:
        slot = supervisor_role(proposal, actor.id)
        if slot is None:
            raise PermissionDeniedError(f"Only the proposal's supervisors can {action} it")
        return slot

    def _find_by_idempotency_key(self, student_id: str, key: str) -> ThesisProposal | None:
        return self.db.execute(
            select(ThesisProposal).where(
                ThesisProposal.student_id == student_id,
                ThesisProposal.idempotency_key == key,
            )
        ).scalar_one_or_none()

    def _load_visible(self, proposal_id: str, actor: Identity) -> ThesisProposal:
        proposal = self._load(proposal_id)
        if not actor.is_admin and actor.id != proposal.student_id and supervisor_role(proposal, actor.id) is None:
            raise PermissionDeniedError("Only the proposal's student and supervisors can view it")
        return proposal

    def _open_sempro(self, proposal_id: str):
        return self.db.execute(
            select(SemproRegistration.id, SemproRegistration.status).where(
                SemproRegistration.proposal_id == proposal_id,
                SemproRegistration.status.not_in(CLOSED_SEMPRO_STATUSES),
            )
        ).first()

    @workflow_operation("proposal.get", write=False)
    def get(self, proposal_id: str, actor: Identity) -> ThesisProposal:
        return self._load_visible(proposal_id, actor)

    @workflow_operation("proposal.list", write=False)
    def list_for(self, actor: Identity) -> list[ThesisProposal]:
        query = select(ThesisProposal).order_by(ThesisProposal.created_at.desc())
        if not actor.is_admin:
            query = query.where(
                or_(
                    ThesisProposal.student_id == actor.id,
                    ThesisProposal.supervisor1_id == actor.id,
                    ThesisProposal.supervisor2_id == actor.id,
                )
            )
        return list(self.db.execute(query).scalars())

    @workflow_operation("proposal.history", write=False)
    def history(self, proposal_id: str, actor: Identity):
        self._load_visible(proposal_id, actor)
        return self.subject_history(proposal_id)

    @workflow_operation("proposal.submit")
    def submit(
        self,
        actor: Identity,
        *,
        title: str,
        research_field: str,
        supervisor1_id: str,
        supervisor2_id: str,
        idempotency_key: str | None = None,
    ) -> ThesisProposal:
        require_capability(actor, Capability.student, message="Only students can submit a thesis proposal")
        title = require_text(title, "Title")
        research_field = require_text(research_field, "Research field")
        if not supervisor1_id or not supervisor2_id:
            raise ValidationError("Both supervisors must be selected")
        if supervisor1_id == supervisor2_id:
            raise ValidationError("Supervisor 1 and supervisor 2 must be different lecturers")
        self.ensure_active_lecturers(supervisor1_id, supervisor2_id)

        key = normalize_text(idempotency_key)
        if key is not None:
            existing = self._find_by_idempotency_key(actor.id, key)
            if existing is not None:
                logger.info("Replayed proposal submission %s for student %s", key, actor.id)
                return existing

        try:
            proposal = self.gateway.insert(
                ThesisProposal,
                title=title,
                research_field=research_field,
                student_id=actor.id,
                supervisor1_id=supervisor1_id,
                supervisor2_id=supervisor2_id,
                status=ProposalStatus.submitted,
                approve_supervisor1=False,
                approve_supervisor2=False,
                idempotency_key=key,
            )
        except IntegrityError:
            existing = self._find_by_idempotency_key(actor.id, key) if key else None
            if existing is None:
                raise
            return existing

        self.record_created(proposal, actor=actor, action="proposal.submit", note="Thesis proposal submitted")
        for slot, supervisor_id in ((ReviewerRole.supervisor1, supervisor1_id), (ReviewerRole.supervisor2, supervisor2_id)):
            self.dispatcher.send(
                actor.id,
                supervisor_id,
                "Thesis Proposal Approval Request",
                f'A student submitted "{title}" and requests your approval as {SUPERVISOR_LABELS[slot]}.',
                notification_type=NotificationType.proposal,
                subject_id=proposal.id,
            )
        return proposal

    @workflow_operation("proposal.approve")
    def approve(self, proposal_id: str, actor: Identity) -> ThesisProposal:
        slot = self._require_supervisor(self._load(proposal_id), actor, "approve")
        flag = APPROVAL_FLAGS[slot]

        def mutator(current: ThesisProposal) -> dict | None:
            if supervisor_role(current, actor.id) != slot:
                raise ConflictError("Supervisor assignment changed; reload the proposal")
            if getattr(current, flag):
                return None
            if current.status != ProposalStatus.submitted:
                raise InvalidStateError(current.status.value, "approve")
            changes: dict = {flag: True}
            if _other_flag(current, slot):
                changes["status"] = ProposalStatus.approved
            return changes

        outcome = self.gateway.conditional_update(ThesisProposal, proposal_id, mutator, label="Thesis proposal")
        proposal = outcome.record
        if not outcome.changed:
            return proposal

        label = SUPERVISOR_LABELS[slot]
        self.record_transition(outcome, actor=actor, action="proposal.approve", note=f"Approved by {label}")
        if proposal.status == ProposalStatus.approved:
            self.dispatcher.send(
                actor.id,
                proposal.student_id,
                "Thesis Proposal Approved",
                f'"{proposal.title}" has been approved by both supervisors.',
                notification_type=NotificationType.proposal,
                subject_id=proposal.id,
            )
        else:
            self.dispatcher.send(
                actor.id,
                proposal.student_id,
                "Thesis Proposal Partially Approved",
                f'"{proposal.title}" was approved by {label}. Waiting for the other supervisor.',
                notification_type=NotificationType.proposal,
                subject_id=proposal.id,
            )
        return proposal

    @workflow_operation("proposal.reject")
    def reject(self, proposal_id: str, actor: Identity, reason: str) -> ThesisProposal:
        reason = require_text(reason, "Rejection reason")
        self._require_supervisor(self._load(proposal_id), actor, "reject")

        def mutator(current: ThesisProposal) -> dict:
            if supervisor_role(current, actor.id) is None:
                raise ConflictError("Supervisor assignment changed; reload the proposal")
            if current.status not in OPEN_STATUSES:
                raise InvalidStateError(current.status.value, "reject")
            return {"status": ProposalStatus.rejected}

        outcome = self.gateway.conditional_update(ThesisProposal, proposal_id, mutator, label="Thesis proposal")
        proposal = outcome.record
        self.record_transition(outcome, actor=actor, action="proposal.reject", note=reason)
        self.dispatcher.send(
            actor.id,
            proposal.student_id,
            "Thesis Proposal Rejected",
            f'"{proposal.title}" was rejected. Reason: {reason}',
            notification_type=NotificationType.proposal,
            subject_id=proposal.id,
        )
        return proposal

    @workflow_operation("proposal.request_revision")
    def request_revision(self, proposal_id: str, actor: Identity, notes: str) -> ThesisProposal:
        notes = require_text(notes, "Revision notes")
        self._require_supervisor(self._load(proposal_id), actor, "request a revision of")

        def mutator(current: ThesisProposal) -> dict:
            if supervisor_role(current, actor.id) is None:
                raise ConflictError("Supervisor assignment changed; reload the proposal")
            if current.status != ProposalStatus.submitted:
                raise InvalidStateError(current.status.value, "request revision")
            return {"status": ProposalStatus.revision}

        outcome = self.gateway.conditional_update(ThesisProposal, proposal_id, mutator, label="Thesis proposal")
        proposal = outcome.record
        self.record_transition(outcome, actor=actor, action="proposal.request_revision", note=notes)
        self.dispatcher.send(
            actor.id,
            proposal.student_id,
            "Thesis Proposal Needs Revision",
            f'Your supervisor requested changes to "{proposal.title}": {notes}',
            notification_type=NotificationType.proposal,
            subject_id=proposal.id,
        )
        return proposal

    @workflow_operation("proposal.update")
    def update(
        self,
        proposal_id: str,
        actor: Identity,
        *,
        title: str | None = None,
        research_field: str | None = None,
        supervisor1_id: str | None = None,
        supervisor2_id: str | None = None,
    ) -> ThesisProposal:
        proposal = self._load(proposal_id)
        if proposal.student_id != actor.id:
            raise PermissionDeniedError("Only the owning student can update this proposal")
        if title is not None:
            title = require_text(title, "Title")
        if research_field is not None:
            research_field = require_text(research_field, "Research field")
        requested_supervisors = [item for item in (supervisor1_id, supervisor2_id) if item]
        if requested_supervisors:
            self.ensure_active_lecturers(*requested_supervisors)

        def mutator(current: ThesisProposal) -> dict | None:
            if current.status in (ProposalStatus.rejected, ProposalStatus.completed):
                raise InvalidStateError(current.status.value, "update")

            changes: dict = {}
            if title is not None and title != current.title:
                changes["title"] = title
            if research_field is not None and research_field != current.research_field:
                changes["research_field"] = research_field
            new_supervisor1 = supervisor1_id or current.supervisor1_id
            new_supervisor2 = supervisor2_id or current.supervisor2_id
            if new_supervisor1 == new_supervisor2:
                raise ValidationError("Supervisor 1 and supervisor 2 must be different lecturers")
            if new_supervisor1 != current.supervisor1_id:
                changes["supervisor1_id"] = new_supervisor1
                changes["approve_supervisor1"] = False
            if new_supervisor2 != current.supervisor2_id:
                changes["supervisor2_id"] = new_supervisor2
                changes["approve_supervisor2"] = False
            supervisor_changed = "supervisor1_id" in changes or "supervisor2_id" in changes
            if supervisor_changed:
                open_sempro = self._open_sempro(current.id)
                if open_sempro is not None:
                    raise InvalidStateError(
                        current.status.value,
                        "replace a supervisor during an open seminar proposal",
                        details={"sempro_id": open_sempro.id, "sempro_status": open_sempro.status.value},
                    )

            if current.status == ProposalStatus.approved:
                if not supervisor_changed:
                    raise ConflictError(
                        "An approved proposal can only be changed by replacing a supervisor",
                        details={"current": current.status.value},
                    )
                changes["status"] = ProposalStatus.submitted
            elif current.status == ProposalStatus.revision and changes:
                changes["status"] = ProposalStatus.submitted

            return changes or None

        outcome = self.gateway.conditional_update(ThesisProposal, proposal_id, mutator, label="Thesis proposal")
        proposal = outcome.record
        if not outcome.changed:
            return proposal

        replaced = {
            slot: proposal.supervisor1_id if slot == ReviewerRole.supervisor1 else proposal.supervisor2_id
            for slot, column in ((ReviewerRole.supervisor1, "supervisor1_id"), (ReviewerRole.supervisor2, "supervisor2_id"))
            if column in outcome.previous
        }
        note = "Thesis proposal updated"
        if replaced:
            note += "; replaced " + ", ".join(SUPERVISOR_LABELS[slot] for slot in replaced)
        self.record_transition(outcome, actor=actor, action="proposal.update", note=note)

        for slot, supervisor_id in replaced.items():
            self.dispatcher.send(
                actor.id,
                supervisor_id,
                "Thesis Proposal Approval Request",
                f'A student assigned you as {SUPERVISOR_LABELS[slot]} on "{proposal.title}" and requests your approval.',
                notification_type=NotificationType.proposal,
                subject_id=proposal.id,
            )
        if outcome.previous_value("status") == ProposalStatus.revision:
            unchanged = [
                supervisor_id
                for slot, supervisor_id in (
                    (ReviewerRole.supervisor1, proposal.supervisor1_id),
                    (ReviewerRole.supervisor2, proposal.supervisor2_id),
                )
                if slot not in replaced
            ]
            self.dispatcher.send_many(
                actor.id,
                unchanged,
                "Thesis Proposal Revised",
                f'"{proposal.title}" was revised and is awaiting your review again.',
                notification_type=NotificationType.proposal,
                subject_id=proposal.id,
            )
        return proposal
