from __future__ import annotations

from collections.abc import Callable
import functools
import logging
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import ValidationError, WorkflowError
from app.models.history import HistorySubject, WorkflowHistory
from app.models.user import User, UserRole
from app.services.history import HistoryLedger
from app.services.notifications import Mailer, NotificationDispatcher
from app.services.persistence import PersistenceGateway, UpdateOutcome
from app.services.results import WorkflowResult
from app.services.roles import Identity

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)


def normalize_text(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def require_text(value: str | None, label: str) -> str:
    normalized = normalize_text(value)
    if normalized is None:
        raise ValidationError(f"{label} is required", details={"field": label})
    return normalized


def workflow_operation(action: str, *, write: bool = True) -> Callable[[F], F]:
    """Run a workflow method as one unit of work and report its outcome.

    Workflow errors roll the transaction back and come back as a failed
    ``WorkflowResult``. Anything else rolls back and propagates. Queued
    notifications are delivered only after a successful commit. Reads commit
    as well, leaving no transaction open between calls.
    """

    def decorator(method: F) -> F:
        @functools.wraps(method)
        def wrapper(self: WorkflowService, *args, **kwargs) -> WorkflowResult:
            try:
                value = method(self, *args, **kwargs)
                self.db.commit()
            except WorkflowError as exc:
                self.db.rollback()
                self.dispatcher.discard()
                logger.info("%s refused: %s (%s)", action, exc.message, exc.category)
                return WorkflowResult.failure(exc)
            except Exception:
                self.db.rollback()
                self.dispatcher.discard()
                raise

            if write:
                try:
                    self.dispatcher.flush()
                except Exception:  # pragma: no cover - delivery must not change the outcome
                    logger.exception("Notification delivery after %s failed", action)
            return WorkflowResult.success(value)

        return wrapper  # type: ignore[return-value]

    return decorator


class WorkflowService:
    subject_type: HistorySubject

    def __init__(
        self,
        db: Session,
        *,
        settings: Settings | None = None,
        dispatcher: NotificationDispatcher | None = None,
        mailer: Mailer | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.gateway = PersistenceGateway(db, max_retries=self.settings.workflow_update_max_retries)
        self.ledger = HistoryLedger(db)
        self.dispatcher = dispatcher or NotificationDispatcher(db, settings=self.settings, mailer=mailer)

    def record_created(self, record, *, actor: Identity, action: str, note: str | None = None) -> None:
        self.ledger.append(
            subject_type=self.subject_type,
            subject_id=record.id,
            sequence=record.version,
            actor_id=actor.id,
            action=action,
            status=record.status,
            note=note,
        )

    def record_transition(
        self,
        outcome: UpdateOutcome,
        *,
        actor: Identity,
        action: str,
        note: str | None = None,
    ) -> None:
        record = outcome.record
        self.ledger.append(
            subject_type=self.subject_type,
            subject_id=record.id,
            sequence=outcome.version,
            actor_id=actor.id,
            action=action,
            previous_status=outcome.previous_value("status", record.status),
            status=record.status,
            note=note,
        )

    def subject_history(self, subject_id: str) -> list[WorkflowHistory]:
        return self.ledger.entries(self.subject_type, subject_id)

    def ensure_active_lecturers(self, *user_ids: str) -> None:
        requested = [item for item in dict.fromkeys(user_ids) if item]
        users = {
            user.id: user
            for user in self.db.execute(select(User).where(User.id.in_(requested))).scalars()
        }
        invalid = [
            user_id
            for user_id in requested
            if user_id not in users
            or not users[user_id].is_active
            or not users[user_id].has_role(UserRole.lecturer)
        ]
        if invalid:
            raise ValidationError(
                "Assigned reviewers must be active lecturers",
                details={"invalid_user_ids": invalid},
            )
