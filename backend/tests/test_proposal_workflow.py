from sqlalchemy import select

from app.core.exceptions import (
    ConflictError,
    InvalidStateError,
    PermissionDeniedError,
    ResourceNotFoundError,
    ValidationError,
)
from app.models.notification import Notification
from app.models.proposal import ProposalStatus, ThesisProposal
from app.models.user import UserRole


def _titles_for(db, user_id: str) -> list[str]:
    return list(
        db.execute(
            select(Notification.title).where(Notification.user_id == user_id).order_by(Notification.created_at)
        ).scalars()
    )


def _assert_approval_invariant(proposal: ThesisProposal) -> None:
    both = proposal.approve_supervisor1 and proposal.approve_supervisor2
    assert (proposal.status == ProposalStatus.approved) == both


def _submit(workflows, cast, **overrides):
    payload = dict(
        title="Federated Learning for Crop Disease Detection",
        research_field="Machine Learning",
        supervisor1_id=cast.supervisor1.id,
        supervisor2_id=cast.supervisor2.id,
    )
    payload.update(overrides)
    return workflows.proposal.submit(cast.student, **payload)


def test_submit_creates_pending_proposal_and_notifies_supervisors(db, workflows, cast):
    result = _submit(workflows, cast)

    assert result.ok
    proposal = result.value
    assert proposal.status == ProposalStatus.submitted
    assert proposal.approve_supervisor1 is False
    assert proposal.approve_supervisor2 is False
    assert proposal.student_id == cast.student.id

    history = workflows.proposal.history(proposal.id, cast.student).unwrap()
    assert [(entry.sequence, entry.status, entry.actor_id) for entry in history] == [
        (1, "submitted", cast.student.id)
    ]
    assert _titles_for(db, cast.supervisor1.id) == ["Thesis Proposal Approval Request"]
    assert _titles_for(db, cast.supervisor2.id) == ["Thesis Proposal Approval Request"]


def test_submit_rejects_identical_supervisors(workflows, cast):
    result = _submit(workflows, cast, supervisor2_id=cast.supervisor1.id)

    assert not result.ok
    assert isinstance(result.error, ValidationError)
    assert result.error.category == "validation"


def test_submit_requires_student_role(workflows, cast):
    result = workflows.proposal.submit(
        cast.staff,
        title="Title",
        research_field="Field",
        supervisor1_id=cast.supervisor1.id,
        supervisor2_id=cast.supervisor2.id,
    )

    assert isinstance(result.error, PermissionDeniedError)


def test_submit_requires_active_lecturers(workflows, cast, make_user):
    retired = make_user("Retired Lecturer", UserRole.lecturer, is_active=False)

    inactive = _submit(workflows, cast, supervisor2_id=retired.id)
    not_lecturer = _submit(workflows, cast, supervisor2_id=cast.staff.id)

    assert isinstance(inactive.error, ValidationError)
    assert inactive.error.details["invalid_user_ids"] == [retired.id]
    assert isinstance(not_lecturer.error, ValidationError)


def test_submit_rejects_blank_title(workflows, cast):
    result = _submit(workflows, cast, title="   ")

    assert isinstance(result.error, ValidationError)


def test_submit_with_idempotency_key_is_not_duplicated(db, workflows, cast):
    first = _submit(workflows, cast, idempotency_key="client-key-1").unwrap()
    replay = _submit(workflows, cast, idempotency_key="client-key-1").unwrap()

    assert replay.id == first.id
    count = db.execute(select(ThesisProposal).where(ThesisProposal.student_id == cast.student.id)).scalars().all()
    assert len(count) == 1
    assert len(workflows.proposal.history(first.id, cast.student).unwrap()) == 1
    assert _titles_for(db, cast.supervisor1.id) == ["Thesis Proposal Approval Request"]


def test_dual_approval_moves_to_approved(db, workflows, cast):
    proposal = _submit(workflows, cast).unwrap()

    partially = workflows.proposal.approve(proposal.id, cast.supervisor1).unwrap()
    assert partially.status == ProposalStatus.submitted
    assert partially.approve_supervisor1 is True
    _assert_approval_invariant(partially)
    assert _titles_for(db, cast.student.id) == ["Thesis Proposal Partially Approved"]

    approved = workflows.proposal.approve(proposal.id, cast.supervisor2).unwrap()
    assert approved.status == ProposalStatus.approved
    _assert_approval_invariant(approved)

    history = workflows.proposal.history(proposal.id, cast.student).unwrap()
    assert [entry.sequence for entry in history] == [1, 2, 3]
    assert [entry.status for entry in history] == ["submitted", "submitted", "approved"]
    assert history[-1].previous_status == "submitted"
    assert "Thesis Proposal Approved" in _titles_for(db, cast.student.id)


def test_repeated_approval_is_a_no_op(db, workflows, cast):
    proposal = _submit(workflows, cast).unwrap()
    workflows.proposal.approve(proposal.id, cast.supervisor1).unwrap()

    again = workflows.proposal.approve(proposal.id, cast.supervisor1)

    assert again.ok
    assert again.value.approve_supervisor1 is True
    assert again.value.status == ProposalStatus.submitted
    assert len(workflows.proposal.history(proposal.id, cast.student).unwrap()) == 2
    assert _titles_for(db, cast.student.id) == ["Thesis Proposal Partially Approved"]


def test_approve_by_unrelated_lecturer_is_denied(workflows, cast):
    proposal = _submit(workflows, cast).unwrap()

    result = workflows.proposal.approve(proposal.id, cast.examiner1)

    assert isinstance(result.error, PermissionDeniedError)
    assert result.error.to_payload()["category"] == "permission"


def test_approve_unknown_proposal_reports_not_found(workflows, cast):
    result = workflows.proposal.approve("missing-proposal", cast.supervisor1)

    assert isinstance(result.error, ResourceNotFoundError)
    assert result.error.status_code == 404


def test_reject_requires_reason_and_is_terminal(db, workflows, cast):
    proposal = _submit(workflows, cast).unwrap()

    blank = workflows.proposal.reject(proposal.id, cast.supervisor2, " ")
    assert isinstance(blank.error, ValidationError)

    rejected = workflows.proposal.reject(proposal.id, cast.supervisor2, "Scope overlaps an existing thesis").unwrap()
    assert rejected.status == ProposalStatus.rejected
    assert _titles_for(db, cast.student.id) == ["Thesis Proposal Rejected"]

    late_approval = workflows.proposal.approve(proposal.id, cast.supervisor1)
    assert isinstance(late_approval.error, InvalidStateError)
    assert late_approval.error.details == {"current": "rejected", "attempted": "approve"}
    assert late_approval.error.retryable is True

    update = workflows.proposal.update(proposal.id, cast.student, title="New title")
    assert isinstance(update.error, InvalidStateError)


def test_revision_cycle_returns_to_submitted(db, workflows, cast):
    proposal = _submit(workflows, cast).unwrap()

    revision = workflows.proposal.request_revision(proposal.id, cast.supervisor1, "Narrow the research question").unwrap()
    assert revision.status == ProposalStatus.revision

    blocked = workflows.proposal.approve(proposal.id, cast.supervisor2)
    assert isinstance(blocked.error, InvalidStateError)

    updated = workflows.proposal.update(proposal.id, cast.student, title="Federated Learning for Rice Blast").unwrap()
    assert updated.status == ProposalStatus.submitted
    assert updated.title == "Federated Learning for Rice Blast"
    assert "Thesis Proposal Revised" in _titles_for(db, cast.supervisor1.id)
    assert "Thesis Proposal Revised" in _titles_for(db, cast.supervisor2.id)

    statuses = [entry.status for entry in workflows.proposal.history(proposal.id, cast.student).unwrap()]
    assert statuses == ["submitted", "revision", "submitted"]


def test_reject_is_allowed_from_revision(workflows, cast):
    proposal = _submit(workflows, cast).unwrap()
    workflows.proposal.request_revision(proposal.id, cast.supervisor1, "Add a methodology section").unwrap()

    rejected = workflows.proposal.reject(proposal.id, cast.supervisor1, "No response to revision")

    assert rejected.value.status == ProposalStatus.rejected


def test_replacing_supervisor_on_approved_proposal_resets_only_that_flag(db, workflows, cast, approved_proposal):
    updated = workflows.proposal.update(
        approved_proposal.id,
        cast.student,
        supervisor2_id=cast.spare_lecturer.id,
    ).unwrap()

    assert updated.status == ProposalStatus.submitted
    assert updated.supervisor2_id == cast.spare_lecturer.id
    assert updated.approve_supervisor1 is True
    assert updated.approve_supervisor2 is False
    _assert_approval_invariant(updated)
    assert _titles_for(db, cast.spare_lecturer.id) == ["Thesis Proposal Approval Request"]

    reapproved = workflows.proposal.approve(approved_proposal.id, cast.spare_lecturer).unwrap()
    assert reapproved.status == ProposalStatus.approved


def test_update_of_approved_proposal_without_supervisor_change_conflicts(workflows, cast, approved_proposal):
    result = workflows.proposal.update(approved_proposal.id, cast.student, title="A different title")

    assert isinstance(result.error, ConflictError)
    assert workflows.proposal.get(approved_proposal.id, cast.student).unwrap().title == approved_proposal.title


def test_update_cannot_make_supervisors_identical(workflows, cast):
    proposal = _submit(workflows, cast).unwrap()

    result = workflows.proposal.update(proposal.id, cast.student, supervisor2_id=cast.supervisor1.id)

    assert isinstance(result.error, ValidationError)


def test_update_by_another_student_is_denied(workflows, cast):
    proposal = _submit(workflows, cast).unwrap()

    result = workflows.proposal.update(proposal.id, cast.other_student, title="Hijacked")

    assert isinstance(result.error, PermissionDeniedError)


def test_list_for_scopes_by_relationship(workflows, cast):
    proposal = _submit(workflows, cast).unwrap()

    assert [item.id for item in workflows.proposal.list_for(cast.student).unwrap()] == [proposal.id]
    assert [item.id for item in workflows.proposal.list_for(cast.supervisor2).unwrap()] == [proposal.id]
    assert workflows.proposal.list_for(cast.examiner1).unwrap() == []
    assert [item.id for item in workflows.proposal.list_for(cast.coordinator).unwrap()] == [proposal.id]


def test_proposal_reads_are_limited_to_its_participants(workflows, cast, approved_proposal):
    for outsider in (cast.other_student, cast.examiner1):
        assert isinstance(workflows.proposal.get(approved_proposal.id, outsider).error, PermissionDeniedError)
        assert isinstance(workflows.proposal.history(approved_proposal.id, outsider).error, PermissionDeniedError)

    for participant in (cast.student, cast.supervisor2, cast.staff):
        assert workflows.proposal.get(approved_proposal.id, participant).unwrap().id == approved_proposal.id
    assert len(workflows.proposal.history(approved_proposal.id, cast.supervisor1).unwrap()) == 3


def test_read_operations_leave_no_open_transaction(db, workflows, cast, approved_proposal):
    workflows.proposal.get(approved_proposal.id, cast.student).unwrap()
    assert not db.in_transaction()

    workflows.proposal.history(approved_proposal.id, cast.other_student)
    assert not db.in_transaction()
