from __future__ import annotations

from datetime import date
import logging

from sqlalchemy import or_, select

from app.core.exceptions import ConflictError, InvalidStateError, PermissionDeniedError, ValidationError
from app.models.consultation import Consultation, ConsultationStatus
from app.models.history import HistorySubject
from app.models.notification import NotificationType
from app.models.proposal import ProposalStatus, ThesisProposal
from app.services.roles import Identity
from app.services.workflow_base import WorkflowService, normalize_text, require_text, workflow_operation

logger = logging.getLogger(__name__)


class ConsultationWorkflow(WorkflowService):
    """Supervision sessions logged by a student and decided by one supervisor."""

    subject_type = HistorySubject.consultation

    def _load(self, consultation_id: str) -> Consultation:
        return self.gateway.get(Consultation, consultation_id, label="Consultation")

    def _approved_proposal(self, proposal_id: str, supervisor_id: str) -> ThesisProposal:
        proposal = self.gateway.get(ThesisProposal, proposal_id, label="Thesis proposal")
        if proposal.status != ProposalStatus.approved:
            raise ValidationError(
                "Consultations can only be logged against an approved thesis proposal",
                details={"proposal_status": proposal.status.value},
            )
        if supervisor_id not in proposal.supervisor_ids():
            raise ValidationError(
                "The selected lecturer does not supervise this thesis proposal",
                details={"supervisor_id": supervisor_id},
            )
        return proposal

    def _load_visible(self, consultation_id: str, actor: Identity) -> Consultation:
        consultation = self._load(consultation_id)
        if not actor.is_admin and actor.id not in (consultation.student_id, consultation.supervisor_id):
            raise PermissionDeniedError("Only the consultation's student and supervisor can view it")
        return consultation

    @workflow_operation("consultation.get", write=False)
    def get(self, consultation_id: str, actor: Identity) -> Consultation:
        return self._load_visible(consultation_id, actor)

    @workflow_operation("consultation.list", write=False)
    def list_for(self, actor: Identity, proposal_id: str | None = None) -> list[Consultation]:
        query = select(Consultation).order_by(Consultation.session_date.desc(), Consultation.created_at.desc())
        if proposal_id is not None:
            query = query.where(Consultation.proposal_id == proposal_id)
        if not actor.is_admin:
            query = query.where(or_(Consultation.student_id == actor.id, Consultation.supervisor_id == actor.id))
        return list(self.db.execute(query).scalars())

    @workflow_operation("consultation.history", write=False)
    def history(self, consultation_id: str, actor: Identity):
        self._load_visible(consultation_id, actor)
        return self.subject_history(consultation_id)

    @workflow_operation("consultation.log")
    def log(
        self,
        actor: Identity,
        *,
        proposal_id: str,
        supervisor_id: str,
        session_date: date,
        description: str,
        outcome: str,
    ) -> Consultation:
        proposal = self.gateway.get(ThesisProposal, proposal_id, label="Thesis proposal")
        if proposal.student_id != actor.id:
            raise PermissionDeniedError("Only the proposal's student can log a consultation")
        self._approved_proposal(proposal_id, supervisor_id)
        description = require_text(description, "Description")
        outcome = require_text(outcome, "Outcome")
        if session_date is None:
            raise ValidationError("Session date is required", details={"field": "session_date"})

        consultation = self.gateway.insert(
            Consultation,
            student_id=actor.id,
            supervisor_id=supervisor_id,
            proposal_id=proposal_id,
            session_date=session_date,
            description=description,
            outcome=outcome,
            status=ConsultationStatus.pending,
        )
        self.record_created(consultation, actor=actor, action="consultation.log", note="Consultation logged")
        self.dispatcher.send(
            actor.id,
            supervisor_id,
            "Consultation Approval Request",
            f"A consultation on {session_date.isoformat()} for \"{proposal.title}\" is waiting for your approval.",
            notification_type=NotificationType.consultation,
            subject_id=consultation.id,
        )
        return consultation

    @workflow_operation("consultation.decide")
    def decide(self, consultation_id: str, actor: Identity, approved: bool, note: str | None = None) -> Consultation:
        consultation = self._load(consultation_id)
        if consultation.supervisor_id != actor.id:
            raise PermissionDeniedError("Only the assigned supervisor can decide on this consultation")
        if consultation.status != ConsultationStatus.pending:
            raise PermissionDeniedError(
                "This consultation has already been decided",
                details={"status": consultation.status.value},
            )
        note = normalize_text(note)
        target = ConsultationStatus.approved if approved else ConsultationStatus.rejected

        def mutator(current: Consultation) -> dict:
            if current.supervisor_id != actor.id:
                raise ConflictError("The consultation was reassigned; reload and retry")
            if current.status != ConsultationStatus.pending:
                raise PermissionDeniedError(
                    "This consultation has already been decided",
                    details={"status": current.status.value},
                )
            return {"status": target, "decision_note": note}

        outcome = self.gateway.conditional_update(Consultation, consultation_id, mutator, label="Consultation")
        consultation = outcome.record
        self.record_transition(outcome, actor=actor, action="consultation.decide", note=note)

        verdict = "approved" if approved else "rejected"
        body = f"Your consultation on {consultation.session_date.isoformat()} was {verdict}."
        if note:
            body += f" Note: {note}"
        self.dispatcher.send(
            actor.id,
            consultation.student_id,
            f"Consultation {verdict.capitalize()}",
            body,
            notification_type=NotificationType.consultation,
            subject_id=consultation.id,
        )
        return consultation

    @workflow_operation("consultation.edit")
    def edit(
        self,
        consultation_id: str,
        actor: Identity,
        *,
        session_date: date | None = None,
        description: str | None = None,
        outcome: str | None = None,
        supervisor_id: str | None = None,
    ) -> Consultation:
        consultation = self._load(consultation_id)
        if consultation.student_id != actor.id:
            raise PermissionDeniedError("Only the owning student can edit this consultation")
        if consultation.status != ConsultationStatus.pending:
            raise InvalidStateError(consultation.status.value, "edit")
        if description is not None:
            description = require_text(description, "Description")
        if outcome is not None:
            outcome = require_text(outcome, "Outcome")
        if supervisor_id:
            self._approved_proposal(consultation.proposal_id, supervisor_id)

        requested = {
            "session_date": session_date,
            "description": description,
            "outcome": outcome,
            "supervisor_id": supervisor_id or None,
        }

        def mutator(current: Consultation) -> dict | None:
            if current.status != ConsultationStatus.pending:
                raise InvalidStateError(current.status.value, "edit")
            changes = {
                column: value
                for column, value in requested.items()
                if value is not None and value != getattr(current, column)
            }
            return changes or None

        result = self.gateway.conditional_update(Consultation, consultation_id, mutator, label="Consultation")
        consultation = result.record
        if not result.changed:
            return consultation

        self.record_transition(result, actor=actor, action="consultation.edit", note="Consultation edited")
        self.dispatcher.send(
            actor.id,
            consultation.supervisor_id,
            "Consultation Updated",
            f"The consultation on {consultation.session_date.isoformat()} was updated and awaits your approval.",
            notification_type=NotificationType.consultation,
            subject_id=consultation.id,
        )
        return consultation
