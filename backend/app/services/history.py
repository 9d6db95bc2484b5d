from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.history import HistorySubject, WorkflowHistory

logger = logging.getLogger(__name__)


def _status_text(value) -> str | None:
    if value is None:
        return None
    return getattr(value, "value", value)


class HistoryLedger:
    """Append-only audit trail of workflow transitions.

    Entries are written in the same transaction as the transition that produced
    them, inside a savepoint: a failed append is logged and dropped without
    undoing the transition itself.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def append(
        self,
        *,
        subject_type: HistorySubject,
        subject_id: str,
        sequence: int,
        actor_id: str,
        action: str,
        status,
        previous_status=None,
        note: str | None = None,
    ) -> WorkflowHistory | None:
        entry = WorkflowHistory(
            subject_type=subject_type,
            subject_id=subject_id,
            sequence=sequence,
            actor_id=actor_id,
            action=action,
            previous_status=_status_text(previous_status),
            status=_status_text(status),
            note=note,
        )
        try:
            with self.db.begin_nested():
                self.db.add(entry)
        except SQLAlchemyError:
            logger.warning(
                "Unable to append history for %s %s (%s)",
                subject_type.value,
                subject_id,
                action,
                exc_info=True,
            )
            return None
        return entry

    def entries(self, subject_type: HistorySubject, subject_id: str) -> list[WorkflowHistory]:
        query = (
            select(WorkflowHistory)
            .where(
                WorkflowHistory.subject_type == subject_type,
                WorkflowHistory.subject_id == subject_id,
            )
            .order_by(WorkflowHistory.sequence.asc())
        )
        return list(self.db.execute(query).scalars())
