from datetime import date

from sqlalchemy import select

from app.core.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from app.models.consultation import ConsultationStatus
from app.models.notification import Notification, NotificationType


def _log(workflows, cast, proposal, **overrides):
    payload = dict(
        proposal_id=proposal.id,
        supervisor_id=cast.supervisor1.id,
        session_date=date(2026, 4, 2),
        description="Reviewed the literature map",
        outcome="Add two recent surveys",
    )
    payload.update(overrides)
    return workflows.consultation.log(cast.student, **payload)


def _consultation_notices(db, user_id: str) -> list[str]:
    return list(
        db.execute(
            select(Notification.title).where(
                Notification.user_id == user_id,
                Notification.notification_type == NotificationType.consultation,
            )
        ).scalars()
    )


def test_log_requires_an_approved_proposal(workflows, cast):
    pending = workflows.proposal.submit(
        cast.student,
        title="Pending proposal",
        research_field="Networks",
        supervisor1_id=cast.supervisor1.id,
        supervisor2_id=cast.supervisor2.id,
    ).unwrap()

    result = _log(workflows, cast, pending)

    assert isinstance(result.error, ValidationError)
    assert result.error.details["proposal_status"] == "submitted"


def test_log_creates_pending_consultation_and_notifies_supervisor(db, workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    assert consultation.status == ConsultationStatus.pending
    assert consultation.supervisor_id == cast.supervisor1.id
    assert _consultation_notices(db, cast.supervisor1.id) == ["Consultation Approval Request"]
    history = workflows.consultation.history(consultation.id, cast.student).unwrap()
    assert [(entry.sequence, entry.status) for entry in history] == [(1, "pending")]


def test_log_rejects_a_lecturer_who_does_not_supervise(workflows, cast, approved_proposal):
    result = _log(workflows, cast, approved_proposal, supervisor_id=cast.examiner1.id)

    assert isinstance(result.error, ValidationError)


def test_log_by_another_student_is_denied(workflows, cast, approved_proposal):
    result = workflows.consultation.log(
        cast.other_student,
        proposal_id=approved_proposal.id,
        supervisor_id=cast.supervisor1.id,
        session_date=date(2026, 4, 2),
        description="Not my proposal",
        outcome="Nothing",
    )

    assert isinstance(result.error, PermissionDeniedError)


def test_log_requires_description_and_outcome(workflows, cast, approved_proposal):
    result = _log(workflows, cast, approved_proposal, outcome="  ")

    assert isinstance(result.error, ValidationError)


def test_supervisor_approves_pending_consultation(db, workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    decided = workflows.consultation.decide(consultation.id, cast.supervisor1, True, "Good progress").unwrap()

    assert decided.status == ConsultationStatus.approved
    assert decided.decision_note == "Good progress"
    assert _consultation_notices(db, cast.student.id) == ["Consultation Approved"]
    history = workflows.consultation.history(consultation.id, cast.student).unwrap()
    assert [entry.status for entry in history] == ["pending", "approved"]
    assert history[-1].note == "Good progress"


def test_supervisor_can_reject_consultation(workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    decided = workflows.consultation.decide(consultation.id, cast.supervisor1, False).unwrap()

    assert decided.status == ConsultationStatus.rejected


def test_decide_by_the_other_supervisor_is_denied(workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    result = workflows.consultation.decide(consultation.id, cast.supervisor2, True)

    assert isinstance(result.error, PermissionDeniedError)


def test_decide_twice_is_denied(workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()
    workflows.consultation.decide(consultation.id, cast.supervisor1, True).unwrap()

    result = workflows.consultation.decide(consultation.id, cast.supervisor1, False)

    assert isinstance(result.error, PermissionDeniedError)
    assert workflows.consultation.get(consultation.id, cast.student).unwrap().status == ConsultationStatus.approved


def test_edit_keeps_consultation_pending_and_notifies_new_supervisor(db, workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    edited = workflows.consultation.edit(
        consultation.id,
        cast.student,
        supervisor_id=cast.supervisor2.id,
        outcome="Add three recent surveys",
    ).unwrap()

    assert edited.status == ConsultationStatus.pending
    assert edited.supervisor_id == cast.supervisor2.id
    assert edited.outcome == "Add three recent surveys"
    assert edited.description == "Reviewed the literature map"
    assert _consultation_notices(db, cast.supervisor2.id) == ["Consultation Updated"]

    denied = workflows.consultation.decide(consultation.id, cast.supervisor1, True)
    assert isinstance(denied.error, PermissionDeniedError)


def test_edit_after_decision_is_invalid(workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()
    workflows.consultation.decide(consultation.id, cast.supervisor1, False).unwrap()

    result = workflows.consultation.edit(consultation.id, cast.student, description="Rewritten")

    assert isinstance(result.error, InvalidStateError)
    assert result.error.details["current"] == "rejected"


def test_edit_by_supervisor_is_denied(workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    result = workflows.consultation.edit(consultation.id, cast.supervisor1, description="Rewritten")

    assert isinstance(result.error, PermissionDeniedError)


def test_edit_without_changes_is_a_no_op(workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    result = workflows.consultation.edit(consultation.id, cast.student, description="Reviewed the literature map")

    assert result.ok
    assert result.value.version == 1
    assert len(workflows.consultation.history(consultation.id, cast.student).unwrap()) == 1


def test_list_for_scopes_by_participant(workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    assert [item.id for item in workflows.consultation.list_for(cast.supervisor1).unwrap()] == [consultation.id]
    assert workflows.consultation.list_for(cast.supervisor2).unwrap() == []
    assert [item.id for item in workflows.consultation.list_for(cast.staff).unwrap()] == [consultation.id]


def test_consultation_reads_are_limited_to_student_and_supervisor(workflows, cast, approved_proposal):
    consultation = _log(workflows, cast, approved_proposal).unwrap()

    for outsider in (cast.other_student, cast.supervisor2):
        assert isinstance(workflows.consultation.get(consultation.id, outsider).error, PermissionDeniedError)
        assert isinstance(workflows.consultation.history(consultation.id, outsider).error, PermissionDeniedError)

    assert workflows.consultation.get(consultation.id, cast.supervisor1).unwrap().id == consultation.id
    assert len(workflows.consultation.history(consultation.id, cast.staff).unwrap()) == 1
