"""Seminar proposal (sempro) registration, scheduling, evaluation and approval.

Status model::

    registered -> verified -> scheduled -> completed -> approved
    registered | verified -> rejected
    registered | verified -> revision_required      (admin, before scheduling)
    completed -> revision_required                  (reviewer, major revision)
    revision_required -> registered                 (student resubmits documents)

Every transition goes through ``PersistenceGateway.conditional_update`` on the
registration row. Schedule, evaluation and revision-note writes that belong to
a transition happen after that update, while the registration version is held
by the current unit of work.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, time
import logging
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ConflictError,
    InvalidStateError,
    PermissionDeniedError,
    PreconditionError,
    ValidationError,
)
from app.models.history import HistorySubject
from app.models.notification import NotificationType
from app.models.proposal import ProposalStatus, ThesisProposal
from app.models.sempro import (
    DOCUMENT_COLUMNS,
    EVALUATOR_ROLES,
    DocumentKind,
    ReviewerRole,
    SemproEvaluation,
    SemproRegistration,
    SemproRevisionNote,
    SemproSchedule,
    SemproStatus,
    SeminarPeriod,
)
from app.services.proposal_workflow import APPROVAL_FLAGS, SUPERVISOR_LABELS
from app.services.roles import (
    Capability,
    Identity,
    require_capability,
    reviewer_role,
    supervisor_role,
)
from app.services.workflow_base import WorkflowService, normalize_text, require_text, workflow_operation

logger = logging.getLogger(__name__)

SCORE_FIELDS = (
    "presentation_media",
    "communication",
    "subject_mastery",
    "report_content",
    "writing_structure",
)
MIN_SCORE = 0.0
MAX_SCORE = 100.0
REQUIRED_DOCUMENT_FIELDS = ("url", "name")
ALL_DOCUMENTS: tuple[DocumentKind, ...] = tuple(DocumentKind)
DOCUMENT_LABELS: dict[DocumentKind, str] = {
    DocumentKind.form: "registration form",
    DocumentKind.plagiarism: "plagiarism check",
    DocumentKind.draft: "proposal draft",
}
REVIEWER_LABELS: dict[ReviewerRole, str] = {
    **SUPERVISOR_LABELS,
    ReviewerRole.examiner1: "Examiner 1",
    ReviewerRole.examiner2: "Examiner 2",
    ReviewerRole.admin: "Administrator",
}
PRE_SCHEDULE_STATUSES = (SemproStatus.registered, SemproStatus.verified)
EVALUATION_STATUSES = (SemproStatus.scheduled, SemproStatus.completed)


def _document_kind(value: Any) -> DocumentKind:
    try:
        return DocumentKind(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(
            f"Unknown document type '{value}'",
            details={"allowed": [kind.value for kind in ALL_DOCUMENTS]},
        ) from None


def normalize_documents(
    documents: Mapping[Any, Any] | None,
    *,
    required: Iterable[DocumentKind] = ALL_DOCUMENTS,
) -> dict[DocumentKind, dict]:
    normalized: dict[DocumentKind, dict] = {}
    for key, value in (documents or {}).items():
        kind = _document_kind(key)
        if value is None:
            continue
        if not isinstance(value, Mapping):
            raise ValidationError(f"The {DOCUMENT_LABELS[kind]} document is malformed", details={"document": kind.value})
        metadata = dict(value)
        missing = [name for name in REQUIRED_DOCUMENT_FIELDS if normalize_text(str(metadata.get(name) or "")) is None]
        if missing:
            raise ValidationError(
                f"The {DOCUMENT_LABELS[kind]} document is missing {', '.join(missing)}",
                details={"document": kind.value, "missing_fields": missing},
            )
        normalized[kind] = metadata

    absent = [kind.value for kind in required if kind not in normalized]
    if absent:
        raise ValidationError("All required documents must be uploaded", details={"missing_documents": absent})
    return normalized


def flagged_documents(documents: Iterable[Any] | None) -> list[str]:
    """Document kinds to flag for revision, in canonical order. Defaults to all of them."""
    if documents is None:
        return [kind.value for kind in ALL_DOCUMENTS]
    requested = {_document_kind(item) for item in documents}
    if not requested:
        raise ValidationError("At least one document must be flagged for revision")
    return [kind.value for kind in ALL_DOCUMENTS if kind in requested]


def validate_scores(scores: Mapping[str, Any] | None) -> dict[str, float]:
    scores = scores or {}
    missing = [name for name in SCORE_FIELDS if scores.get(name) is None]
    if missing:
        raise ValidationError("All five evaluation scores are required", details={"missing_scores": missing})
    values: dict[str, float] = {}
    for name in SCORE_FIELDS:
        raw = scores[name]
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValidationError(f"Score '{name}' must be a number", details={"field": name})
        value = float(raw)
        if not MIN_SCORE <= value <= MAX_SCORE:
            raise ValidationError(
                f"Score '{name}' must be between {MIN_SCORE:g} and {MAX_SCORE:g}",
                details={"field": name, "value": value},
            )
        values[name] = value
    return values


class SemproWorkflow(WorkflowService):
    subject_type = HistorySubject.sempro

    def _load(self, sempro_id: str) -> SemproRegistration:
        return self.gateway.get(SemproRegistration, sempro_id, label="Sempro registration")

    def _proposal(self, registration: SemproRegistration) -> ThesisProposal:
        return self.gateway.get(ThesisProposal, registration.proposal_id, label="Thesis proposal")

    def _find_schedule(self, sempro_id: str) -> SemproSchedule | None:
        return self.db.execute(
            select(SemproSchedule)
            .where(SemproSchedule.sempro_id == sempro_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _require_schedule(self, sempro_id: str) -> SemproSchedule:
        schedule = self._find_schedule(sempro_id)
        if schedule is None:
            raise PreconditionError("The seminar has not been scheduled yet", details={"sempro_id": sempro_id})
        return schedule

    def _round_evaluations(self, sempro_id: str, review_round: int) -> list[SemproEvaluation]:
        return list(
            self.db.execute(
                select(SemproEvaluation).where(
                    SemproEvaluation.sempro_id == sempro_id,
                    SemproEvaluation.review_round == review_round,
                )
            ).scalars()
        )

    def _find_by_idempotency_key(self, student_id: str, key: str) -> SemproRegistration | None:
        return self.db.execute(
            select(SemproRegistration).where(
                SemproRegistration.student_id == student_id,
                SemproRegistration.idempotency_key == key,
            )
        ).scalar_one_or_none()

    def _current_period(self) -> SeminarPeriod | None:
        return self.db.execute(
            select(SeminarPeriod).where(SeminarPeriod.is_active.is_(True)).order_by(SeminarPeriod.starts_on.desc())
        ).scalars().first()

    def _append_revision_note(
        self,
        registration: SemproRegistration,
        *,
        role: ReviewerRole,
        actor: Identity,
        note: str,
        is_major: bool,
        documents: list[str],
        sequence: int,
    ) -> SemproRevisionNote:
        return self.gateway.insert(
            SemproRevisionNote,
            sempro_id=registration.id,
            reviewer_role=role,
            author_id=actor.id,
            note=note,
            is_major=is_major,
            documents=documents,
            review_round=registration.review_round,
            sequence=sequence,
        )

    def _notify_student(self, actor: Identity, registration: SemproRegistration, title: str, body: str) -> None:
        self.dispatcher.send(
            actor.id,
            registration.student_id,
            title,
            body,
            notification_type=NotificationType.sempro,
            subject_id=registration.id,
        )

    def _announce_schedule(
        self,
        actor: Identity,
        registration: SemproRegistration,
        schedule: SemproSchedule,
        title: str = "Sempro Schedule Published",
    ) -> None:
        body = (
            f"The seminar proposal is scheduled on {schedule.seminar_date.isoformat()} "
            f"{schedule.start_time.strftime('%H:%M')}-{schedule.end_time.strftime('%H:%M')} in {schedule.room}."
        )
        self.dispatcher.send_many(
            actor.id,
            [registration.student_id, schedule.examiner1_id, schedule.examiner2_id],
            title,
            body,
            notification_type=NotificationType.sempro,
            subject_id=registration.id,
        )

    def _schedule_fields(
        self,
        proposal: ThesisProposal,
        *,
        examiner1_id: str,
        examiner2_id: str,
        seminar_date: date,
        start_time: time,
        end_time: time,
        room: str,
    ) -> dict[str, Any]:
        if not examiner1_id or not examiner2_id:
            raise ValidationError("Both examiners must be assigned")
        if examiner1_id == examiner2_id:
            raise ValidationError("Examiner 1 and examiner 2 must be different lecturers")
        conflicting = [item for item in (examiner1_id, examiner2_id) if item in proposal.supervisor_ids()]
        if conflicting:
            raise ValidationError(
                "A supervisor of the thesis proposal cannot examine its seminar",
                details={"conflicting_user_ids": conflicting},
            )
        if seminar_date is None or start_time is None or end_time is None:
            raise ValidationError("Seminar date and time range are required")
        if start_time >= end_time:
            raise ValidationError(
                "Seminar start time must be before its end time",
                details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
            )
        room = require_text(room, "Room")
        self.ensure_active_lecturers(examiner1_id, examiner2_id)
        return {
            "examiner1_id": examiner1_id,
            "examiner2_id": examiner2_id,
            "seminar_date": seminar_date,
            "start_time": start_time,
            "end_time": end_time,
            "room": room,
        }

    # Reads

    def _load_visible(self, sempro_id: str, actor: Identity) -> SemproRegistration:
        registration = self._load(sempro_id)
        if actor.is_admin or actor.id == registration.student_id:
            return registration
        if reviewer_role(self._proposal(registration), self._find_schedule(sempro_id), actor.id) is None:
            raise PermissionDeniedError("Only the seminar's student, supervisors and examiners can view it")
        return registration

    @workflow_operation("sempro.get", write=False)
    def get(self, sempro_id: str, actor: Identity) -> SemproRegistration:
        return self._load_visible(sempro_id, actor)

    @workflow_operation("sempro.list", write=False)
    def list_for(self, actor: Identity, status: SemproStatus | None = None) -> list[SemproRegistration]:
        query = select(SemproRegistration).order_by(SemproRegistration.created_at.desc())
        if status is not None:
            query = query.where(SemproRegistration.status == status)
        if not actor.is_admin:
            supervised = select(ThesisProposal.id).where(
                or_(ThesisProposal.supervisor1_id == actor.id, ThesisProposal.supervisor2_id == actor.id)
            )
            examined = select(SemproSchedule.sempro_id).where(
                or_(SemproSchedule.examiner1_id == actor.id, SemproSchedule.examiner2_id == actor.id)
            )
            query = query.where(
                or_(
                    SemproRegistration.student_id == actor.id,
                    SemproRegistration.proposal_id.in_(supervised),
                    SemproRegistration.id.in_(examined),
                )
            )
        return list(self.db.execute(query).scalars())

    @workflow_operation("sempro.history", write=False)
    def history(self, sempro_id: str, actor: Identity):
        self._load_visible(sempro_id, actor)
        return self.subject_history(sempro_id)

    @workflow_operation("sempro.get_schedule", write=False)
    def get_schedule(self, sempro_id: str, actor: Identity) -> SemproSchedule:
        self._load_visible(sempro_id, actor)
        return self._require_schedule(sempro_id)

    @workflow_operation("sempro.evaluations", write=False)
    def evaluations(
        self,
        sempro_id: str,
        actor: Identity,
        review_round: int | None = None,
    ) -> list[SemproEvaluation]:
        self._load_visible(sempro_id, actor)
        query = select(SemproEvaluation).where(SemproEvaluation.sempro_id == sempro_id)
        if review_round is not None:
            query = query.where(SemproEvaluation.review_round == review_round)
        query = query.order_by(SemproEvaluation.review_round.asc(), SemproEvaluation.created_at.asc())
        return list(self.db.execute(query).scalars())

    @workflow_operation("sempro.revision_notes", write=False)
    def revision_notes(self, sempro_id: str, actor: Identity) -> list[SemproRevisionNote]:
        self._load_visible(sempro_id, actor)
        return self._ordered_notes(sempro_id)

    @workflow_operation("sempro.latest_revision_notes", write=False)
    def latest_revision_notes(self, sempro_id: str, actor: Identity) -> dict[ReviewerRole, SemproRevisionNote]:
        """Most recent note written under each reviewer role."""
        self._load_visible(sempro_id, actor)
        latest: dict[ReviewerRole, SemproRevisionNote] = {}
        for note in self._ordered_notes(sempro_id):
            latest[note.reviewer_role] = note
        return latest

    def _ordered_notes(self, sempro_id: str) -> list[SemproRevisionNote]:
        return list(
            self.db.execute(
                select(SemproRevisionNote)
                .where(SemproRevisionNote.sempro_id == sempro_id)
                .order_by(SemproRevisionNote.sequence.asc())
            ).scalars()
        )

    @workflow_operation("sempro.active_period", write=False)
    def active_period(self) -> SeminarPeriod | None:
        return self._current_period()

    # Registration and document review

    @workflow_operation("sempro.register")
    def register(
        self,
        actor: Identity,
        *,
        proposal_id: str,
        documents: Mapping[Any, Any],
        idempotency_key: str | None = None,
    ) -> SemproRegistration:
        require_capability(actor, Capability.student, message="Only students can register for a seminar proposal")
        proposal = self.gateway.lock(ThesisProposal, proposal_id, label="Thesis proposal")
        if proposal.student_id != actor.id:
            raise PermissionDeniedError("Only the proposal's student can register it for a seminar")

        key = normalize_text(idempotency_key)
        if key is not None:
            existing = self._find_by_idempotency_key(actor.id, key)
            if existing is not None:
                logger.info("Replayed sempro registration %s for student %s", key, actor.id)
                return existing

        if proposal.status != ProposalStatus.approved:
            raise PreconditionError(
                "The thesis proposal must be approved by both supervisors before seminar registration",
                details={"proposal_status": proposal.status.value},
            )
        normalized = normalize_documents(documents)

        period = self._current_period()
        if period is None and self.settings.sempro_require_active_period:
            raise PreconditionError("There is no active seminar period")

        open_registration = self.db.execute(
            select(SemproRegistration.id).where(
                SemproRegistration.proposal_id == proposal_id,
                SemproRegistration.status != SemproStatus.rejected,
            )
        ).first()
        if open_registration is not None:
            raise ValidationError(
                "This thesis proposal already has an active seminar registration",
                details={"sempro_id": open_registration.id},
            )

        try:
            registration = self.gateway.insert(
                SemproRegistration,
                proposal_id=proposal_id,
                student_id=actor.id,
                period_id=period.id if period is not None else None,
                status=SemproStatus.registered,
                revision_documents=[],
                approve_supervisor1=False,
                approve_supervisor2=False,
                review_round=1,
                idempotency_key=key,
                **{DOCUMENT_COLUMNS[kind]: metadata for kind, metadata in normalized.items()},
            )
        except IntegrityError:
            existing = self._find_by_idempotency_key(actor.id, key) if key else None
            if existing is None:
                raise
            return existing

        self.record_created(registration, actor=actor, action="sempro.register", note="Seminar proposal registered")
        self.dispatcher.notify_admins(
            actor.id,
            "New Sempro Registration",
            f'A student registered "{proposal.title}" for a seminar proposal. Please verify the documents.',
            notification_type=NotificationType.sempro,
            subject_id=registration.id,
        )
        return registration

    @workflow_operation("sempro.verify")
    def verify(self, sempro_id: str, actor: Identity, note: str | None = None) -> SemproRegistration:
        require_capability(actor, Capability.admin, message="Only staff or coordinators can verify registrations")
        note = normalize_text(note)

        def mutator(current: SemproRegistration) -> dict:
            if current.status != SemproStatus.registered:
                raise InvalidStateError(current.status.value, "verify")
            return {"status": SemproStatus.verified}

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        registration = outcome.record
        self.record_transition(outcome, actor=actor, action="sempro.verify", note=note or "Documents verified")
        self._notify_student(
            actor,
            registration,
            "Sempro Registration Verified",
            "Your seminar proposal documents were verified. A schedule will be announced soon.",
        )
        return registration

    @workflow_operation("sempro.reject")
    def reject(self, sempro_id: str, actor: Identity, reason: str) -> SemproRegistration:
        require_capability(actor, Capability.admin, message="Only staff or coordinators can reject registrations")
        reason = require_text(reason, "Rejection reason")

        def mutator(current: SemproRegistration) -> dict:
            if current.status not in PRE_SCHEDULE_STATUSES:
                raise InvalidStateError(current.status.value, "reject")
            return {"status": SemproStatus.rejected}

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        registration = outcome.record
        self.record_transition(outcome, actor=actor, action="sempro.reject", note=reason)
        self._notify_student(
            actor,
            registration,
            "Sempro Registration Rejected",
            f"Your seminar proposal registration was rejected. Reason: {reason}",
        )
        return registration

    @workflow_operation("sempro.request_document_revision")
    def request_document_revision(
        self,
        sempro_id: str,
        actor: Identity,
        note: str,
        documents: Iterable[Any] | None = None,
    ) -> SemproRegistration:
        require_capability(actor, Capability.admin, message="Only staff or coordinators can request document revisions")
        note = require_text(note, "Revision note")
        flagged = flagged_documents(documents)

        def mutator(current: SemproRegistration) -> dict:
            if current.status not in PRE_SCHEDULE_STATUSES:
                raise InvalidStateError(current.status.value, "request document revision")
            return {"status": SemproStatus.revision_required, "revision_documents": flagged}

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        registration = outcome.record
        self._append_revision_note(
            registration,
            role=ReviewerRole.admin,
            actor=actor,
            note=note,
            is_major=True,
            documents=flagged,
            sequence=outcome.version,
        )
        self.record_transition(outcome, actor=actor, action="sempro.request_document_revision", note=note)
        self._notify_student(
            actor,
            registration,
            "Sempro Documents Need Revision",
            f"Please revise and resubmit: {', '.join(flagged)}. Note: {note}",
        )
        return registration

    @workflow_operation("sempro.resubmit_documents")
    def resubmit_documents(
        self,
        sempro_id: str,
        actor: Identity,
        documents: Mapping[Any, Any],
        note: str | None = None,
    ) -> SemproRegistration:
        registration = self._load(sempro_id)
        if registration.student_id != actor.id:
            raise PermissionDeniedError("Only the registering student can resubmit documents")
        supplied = normalize_documents(documents, required=())
        note = normalize_text(note)

        def mutator(current: SemproRegistration) -> dict:
            if current.status != SemproStatus.revision_required:
                raise InvalidStateError(current.status.value, "resubmit documents")
            flagged = [DocumentKind(item) for item in current.revision_documents or []]
            missing = [kind.value for kind in flagged if kind not in supplied]
            if missing:
                raise ValidationError(
                    "Every document flagged for revision must be resubmitted",
                    details={"missing_documents": missing},
                )
            ignored = [kind.value for kind in supplied if kind not in flagged]
            if ignored:
                logger.debug("Ignoring unflagged documents %s on sempro %s", ignored, current.id)

            changes: dict[str, Any] = {DOCUMENT_COLUMNS[kind]: supplied[kind] for kind in flagged}
            changes.update(
                status=SemproStatus.registered,
                revision_documents=[],
                approve_supervisor1=False,
                approve_supervisor2=False,
            )
            if self._round_evaluations(current.id, current.review_round):
                changes["review_round"] = current.review_round + 1
            return changes

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        registration = outcome.record
        self.record_transition(
            outcome,
            actor=actor,
            action="sempro.resubmit_documents",
            note=note or "Revised documents resubmitted",
        )
        self.dispatcher.notify_admins(
            actor.id,
            "Sempro Documents Resubmitted",
            "A student resubmitted revised seminar proposal documents for verification.",
            notification_type=NotificationType.sempro,
            subject_id=registration.id,
        )
        return registration

    # Scheduling

    @workflow_operation("sempro.schedule")
    def schedule(
        self,
        sempro_id: str,
        actor: Identity,
        *,
        examiner1_id: str,
        examiner2_id: str,
        seminar_date: date,
        start_time: time,
        end_time: time,
        room: str,
        published: bool = False,
    ) -> SemproSchedule:
        require_capability(actor, Capability.admin, message="Only staff or coordinators can schedule seminars")
        registration = self._load(sempro_id)
        fields = self._schedule_fields(
            self._proposal(registration),
            examiner1_id=examiner1_id,
            examiner2_id=examiner2_id,
            seminar_date=seminar_date,
            start_time=start_time,
            end_time=end_time,
            room=room,
        )

        def mutator(current: SemproRegistration) -> dict:
            if current.status != SemproStatus.verified:
                raise InvalidStateError(current.status.value, "schedule")
            return {"status": SemproStatus.scheduled}

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        registration = outcome.record

        schedule = self._find_schedule(sempro_id)
        if schedule is None:
            schedule = self.gateway.insert(
                SemproSchedule,
                sempro_id=sempro_id,
                published=published,
                review_round=registration.review_round,
                **fields,
            )
        else:
            # Left over from an earlier review round.
            for column, value in fields.items():
                setattr(schedule, column, value)
            schedule.published = published
            schedule.review_round = registration.review_round
            self.db.flush()

        self.record_transition(
            outcome,
            actor=actor,
            action="sempro.schedule",
            note=f"Scheduled on {schedule.seminar_date.isoformat()} in {schedule.room}",
        )
        if published:
            self._announce_schedule(actor, registration, schedule)
        return schedule

    @workflow_operation("sempro.update_schedule")
    def update_schedule(
        self,
        sempro_id: str,
        actor: Identity,
        *,
        examiner1_id: str | None = None,
        examiner2_id: str | None = None,
        seminar_date: date | None = None,
        start_time: time | None = None,
        end_time: time | None = None,
        room: str | None = None,
    ) -> SemproSchedule:
        require_capability(actor, Capability.admin, message="Only staff or coordinators can reschedule seminars")
        registration = self._load(sempro_id)
        schedule = self._require_schedule(sempro_id)
        fields = self._schedule_fields(
            self._proposal(registration),
            examiner1_id=examiner1_id or schedule.examiner1_id,
            examiner2_id=examiner2_id or schedule.examiner2_id,
            seminar_date=seminar_date or schedule.seminar_date,
            start_time=start_time or schedule.start_time,
            end_time=end_time or schedule.end_time,
            room=room if room is not None else schedule.room,
        )
        changes = {column: value for column, value in fields.items() if getattr(schedule, column) != value}
        if not changes:
            if registration.status != SemproStatus.scheduled:
                raise InvalidStateError(registration.status.value, "update schedule")
            return schedule

        def mutator(current: SemproRegistration) -> dict:
            if current.status != SemproStatus.scheduled:
                raise InvalidStateError(current.status.value, "update schedule")
            if self._round_evaluations(current.id, current.review_round):
                raise PreconditionError(
                    "The schedule cannot change after evaluations were submitted",
                    details={"review_round": current.review_round},
                )
            return {}

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        schedule = self._require_schedule(sempro_id)
        for column, value in changes.items():
            setattr(schedule, column, value)
        self.db.flush()

        self.record_transition(
            outcome,
            actor=actor,
            action="sempro.update_schedule",
            note="Schedule updated: " + ", ".join(sorted(changes)),
        )
        if schedule.published:
            self._announce_schedule(actor, outcome.record, schedule, title="Sempro Schedule Updated")
        return schedule

    @workflow_operation("sempro.publish_schedule")
    def publish_schedule(self, sempro_id: str, actor: Identity, published: bool = True) -> SemproSchedule:
        require_capability(actor, Capability.admin, message="Only staff or coordinators can publish schedules")

        def mutator(current: SemproRegistration) -> dict | None:
            schedule = self._require_schedule(current.id)
            if schedule.published == published:
                return None
            if current.status != SemproStatus.scheduled:
                raise InvalidStateError(current.status.value, "publish schedule")
            return {}

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        schedule = self._require_schedule(sempro_id)
        if not outcome.changed:
            return schedule

        schedule.published = published
        self.db.flush()
        self.record_transition(
            outcome,
            actor=actor,
            action="sempro.publish_schedule",
            note="Schedule published" if published else "Schedule withdrawn",
        )
        if published:
            self._announce_schedule(actor, outcome.record, schedule)
        return schedule

    # Evaluation and final approval

    @workflow_operation("sempro.submit_evaluation")
    def submit_evaluation(
        self,
        sempro_id: str,
        actor: Identity,
        scores: Mapping[str, Any],
        notes: str | None = None,
    ) -> SemproEvaluation:
        registration = self._load(sempro_id)
        schedule = self._require_schedule(sempro_id)
        proposal = self._proposal(registration)
        role = reviewer_role(proposal, schedule, actor.id)
        if role not in EVALUATOR_ROLES:
            raise PermissionDeniedError("Only the seminar's supervisors and examiners can submit evaluations")
        values = validate_scores(scores)
        notes = normalize_text(notes)

        def mutator(current: SemproRegistration) -> dict:
            if current.status not in EVALUATION_STATUSES:
                raise InvalidStateError(current.status.value, "submit evaluation")
            current_schedule = self._require_schedule(current.id)
            if reviewer_role(proposal, current_schedule, actor.id) != role:
                raise ConflictError("Examiner assignment changed; reload the schedule")
            if current.status != SemproStatus.scheduled:
                return {}
            evaluators = {item.evaluator_id for item in self._round_evaluations(current.id, current.review_round)}
            evaluators.add(actor.id)
            expected = {
                proposal.supervisor1_id,
                proposal.supervisor2_id,
                current_schedule.examiner1_id,
                current_schedule.examiner2_id,
            }
            # Completion needs four distinct reviewers.
            if len(expected) == len(EVALUATOR_ROLES) and expected <= evaluators:
                return {"status": SemproStatus.completed}
            return {}

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        registration = outcome.record

        evaluation = self.db.execute(
            select(SemproEvaluation).where(
                SemproEvaluation.sempro_id == sempro_id,
                SemproEvaluation.evaluator_id == actor.id,
                SemproEvaluation.review_round == registration.review_round,
            )
        ).scalar_one_or_none()
        total = round(sum(values.values()), 2)
        if evaluation is None:
            evaluation = self.gateway.insert(
                SemproEvaluation,
                sempro_id=sempro_id,
                evaluator_id=actor.id,
                evaluator_role=role,
                review_round=registration.review_round,
                total_score=total,
                notes=notes,
                **values,
            )
        else:
            for column, value in values.items():
                setattr(evaluation, column, value)
            evaluation.evaluator_role = role
            evaluation.total_score = total
            evaluation.notes = notes
            self.db.flush()

        self.record_transition(
            outcome,
            actor=actor,
            action="sempro.submit_evaluation",
            note=f"Evaluation submitted by {REVIEWER_LABELS[role]}",
        )
        if outcome.previous_value("status") == SemproStatus.scheduled and registration.status == SemproStatus.completed:
            self._notify_student(
                actor,
                registration,
                "Sempro Evaluation Completed",
                "All supervisors and examiners have evaluated your seminar proposal.",
            )
        return evaluation

    @workflow_operation("sempro.request_post_evaluation_revision")
    def request_post_evaluation_revision(
        self,
        sempro_id: str,
        actor: Identity,
        note: str,
        is_major: bool = False,
        documents: Iterable[Any] | None = None,
    ) -> SemproRegistration:
        registration = self._load(sempro_id)
        role = reviewer_role(self._proposal(registration), self._find_schedule(sempro_id), actor.id)
        if role not in EVALUATOR_ROLES:
            raise PermissionDeniedError("Only the seminar's supervisors and examiners can request revisions")
        note = require_text(note, "Revision note")
        if is_major:
            flagged = flagged_documents(documents)
        else:
            documents = list(documents or ())
            flagged = flagged_documents(documents) if documents else []

        def mutator(current: SemproRegistration) -> dict:
            if current.status != SemproStatus.completed:
                raise InvalidStateError(current.status.value, "request revision")
            evaluators = {item.evaluator_id for item in self._round_evaluations(current.id, current.review_round)}
            if actor.id not in evaluators:
                raise PreconditionError(
                    "Submit your evaluation before requesting a revision",
                    details={"reviewer_role": role.value},
                )
            if is_major:
                return {"status": SemproStatus.revision_required, "revision_documents": flagged}
            return {}

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        registration = outcome.record
        self._append_revision_note(
            registration,
            role=role,
            actor=actor,
            note=note,
            is_major=is_major,
            documents=flagged,
            sequence=outcome.version,
        )
        self.record_transition(outcome, actor=actor, action="sempro.request_post_evaluation_revision", note=note)
        if is_major:
            self._notify_student(
                actor,
                registration,
                "Sempro Revision Required",
                f"{REVIEWER_LABELS[role]} requested a major revision of: {', '.join(flagged)}. Note: {note}",
            )
        else:
            self._notify_student(
                actor,
                registration,
                "Sempro Revision Note",
                f"{REVIEWER_LABELS[role]} left a revision note: {note}",
            )
        return registration

    @workflow_operation("sempro.approve_final")
    def approve_final(self, sempro_id: str, actor: Identity) -> SemproRegistration:
        registration = self._load(sempro_id)
        slot = supervisor_role(self._proposal(registration), actor.id)
        if slot is None:
            raise PermissionDeniedError("Only the proposal's supervisors can approve the seminar result")
        flag = APPROVAL_FLAGS[slot]
        other = APPROVAL_FLAGS[ReviewerRole.supervisor2 if slot == ReviewerRole.supervisor1 else ReviewerRole.supervisor1]

        def mutator(current: SemproRegistration) -> dict | None:
            if getattr(current, flag):
                return None
            if current.status != SemproStatus.completed:
                raise InvalidStateError(current.status.value, "approve")
            changes: dict[str, Any] = {flag: True}
            if getattr(current, other):
                changes["status"] = SemproStatus.approved
            return changes

        outcome = self.gateway.conditional_update(SemproRegistration, sempro_id, mutator, label="Sempro registration")
        registration = outcome.record
        if not outcome.changed:
            return registration

        label = SUPERVISOR_LABELS[slot]
        self.record_transition(outcome, actor=actor, action="sempro.approve_final", note=f"Approved by {label}")
        if registration.status == SemproStatus.approved:
            self._notify_student(
                actor,
                registration,
                "Sempro Approved",
                "Both supervisors approved your seminar proposal. Congratulations!",
            )
        else:
            self._notify_student(
                actor,
                registration,
                "Sempro Partially Approved",
                f"{label} approved your seminar proposal. Waiting for the other supervisor.",
            )
        return registration

    # Seminar periods

    def _validate_period(self, name: str, starts_on: date, ends_on: date) -> str:
        name = require_text(name, "Period name")
        if starts_on is None or ends_on is None:
            raise ValidationError("Period start and end dates are required")
        if starts_on > ends_on:
            raise ValidationError(
                "Period start date must not be after its end date",
                details={"starts_on": starts_on.isoformat(), "ends_on": ends_on.isoformat()},
            )
        return name

    def _deactivate_periods(self, *, keep_id: str | None = None) -> None:
        statement = update(SeminarPeriod).where(SeminarPeriod.is_active.is_(True))
        if keep_id is not None:
            statement = statement.where(SeminarPeriod.id != keep_id)
        self.db.execute(statement.values(is_active=False).execution_options(synchronize_session="fetch"))

    @workflow_operation("sempro.create_period")
    def create_period(
        self,
        actor: Identity,
        *,
        name: str,
        starts_on: date,
        ends_on: date,
        is_active: bool = False,
    ) -> SeminarPeriod:
        require_capability(actor, Capability.admin, message="Only staff or coordinators can manage seminar periods")
        name = self._validate_period(name, starts_on, ends_on)
        if is_active:
            self._deactivate_periods()
        period = self.gateway.insert(SeminarPeriod, name=name, starts_on=starts_on, ends_on=ends_on, is_active=is_active)
        logger.info("Seminar period %s (%s) created by %s", period.id, name, actor.id)
        return period

    @workflow_operation("sempro.update_period")
    def update_period(
        self,
        period_id: str,
        actor: Identity,
        *,
        name: str | None = None,
        starts_on: date | None = None,
        ends_on: date | None = None,
        is_active: bool | None = None,
    ) -> SeminarPeriod:
        require_capability(actor, Capability.admin, message="Only staff or coordinators can manage seminar periods")
        period = self.gateway.get(SeminarPeriod, period_id, label="Seminar period")
        period.name = self._validate_period(
            name if name is not None else period.name,
            starts_on or period.starts_on,
            ends_on or period.ends_on,
        )
        period.starts_on = starts_on or period.starts_on
        period.ends_on = ends_on or period.ends_on
        if is_active is not None:
            if is_active:
                self._deactivate_periods(keep_id=period.id)
            period.is_active = is_active
        self.db.flush()
        logger.info("Seminar period %s updated by %s", period.id, actor.id)
        return period
