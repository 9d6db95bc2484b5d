import pytest
from sqlalchemy import update

from app.core.exceptions import ConflictError, InvalidStateError, ResourceNotFoundError
from app.models.proposal import ProposalStatus, ThesisProposal
from app.services.persistence import PersistenceGateway


@pytest.fixture()
def proposal(workflows, cast):
    return workflows.proposal.submit(
        cast.student,
        title="Gateway subject",
        research_field="Systems",
        supervisor1_id=cast.supervisor1.id,
        supervisor2_id=cast.supervisor2.id,
    ).unwrap()


def _bump_version_behind_the_gateway(db, proposal_id: str) -> None:
    db.execute(
        update(ThesisProposal)
        .where(ThesisProposal.id == proposal_id)
        .values(version=ThesisProposal.version + 1)
        .execution_options(synchronize_session=False)
    )


def test_conditional_update_applies_changes_and_bumps_version(db, proposal):
    gateway = PersistenceGateway(db)

    outcome = gateway.conditional_update(
        ThesisProposal,
        proposal.id,
        lambda current: {"status": ProposalStatus.revision},
    )

    assert outcome.changed is True
    assert outcome.version == 2
    assert outcome.record.status == ProposalStatus.revision
    assert outcome.record.updated_at is not None
    assert outcome.previous_value("status") == ProposalStatus.submitted
    db.rollback()


def test_conditional_update_returning_none_leaves_row_untouched(db, proposal):
    gateway = PersistenceGateway(db)

    outcome = gateway.conditional_update(ThesisProposal, proposal.id, lambda current: None)

    assert outcome.changed is False
    assert outcome.version == 1
    assert outcome.previous == {}
    db.rollback()


def test_conditional_update_recomputes_after_losing_the_race(db, proposal):
    gateway = PersistenceGateway(db, max_retries=3)
    seen_versions: list[int] = []

    def mutator(current):
        seen_versions.append(current.version)
        if len(seen_versions) == 1:
            _bump_version_behind_the_gateway(db, current.id)
        return {"approve_supervisor1": True}

    outcome = gateway.conditional_update(ThesisProposal, proposal.id, mutator)

    assert seen_versions == [1, 2]
    assert outcome.version == 3
    assert outcome.record.approve_supervisor1 is True
    db.rollback()


def test_conditional_update_gives_up_with_conflict(db, proposal):
    gateway = PersistenceGateway(db, max_retries=2)
    calls = {"count": 0}

    def mutator(current):
        calls["count"] += 1
        _bump_version_behind_the_gateway(db, current.id)
        return {"title": "Never written"}

    with pytest.raises(ConflictError) as exc_info:
        gateway.conditional_update(ThesisProposal, proposal.id, mutator)

    assert calls["count"] == 2
    assert exc_info.value.retryable is True
    assert exc_info.value.details == {"resource_id": proposal.id}
    db.rollback()


def test_mutator_errors_propagate(db, proposal):
    gateway = PersistenceGateway(db)

    def mutator(current):
        raise InvalidStateError(current.status.value, "archive")

    with pytest.raises(InvalidStateError):
        gateway.conditional_update(ThesisProposal, proposal.id, mutator)
    db.rollback()


def test_missing_rows_raise_not_found(db):
    gateway = PersistenceGateway(db)

    with pytest.raises(ResourceNotFoundError):
        gateway.lock(ThesisProposal, "missing", label="Thesis proposal")
    with pytest.raises(ResourceNotFoundError) as exc_info:
        gateway.conditional_update(ThesisProposal, "missing", lambda current: {}, label="Thesis proposal")
    db.rollback()

    assert exc_info.value.details == {"resource_type": "Thesis proposal", "resource_id": "missing"}
    assert gateway.find(ThesisProposal, "missing") is None
