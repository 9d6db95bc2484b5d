"""Storage access for workflow-owned entities.

``conditional_update`` is the only way workflows change an existing entity.
It reads the row (row-locked where the dialect supports ``FOR UPDATE``), lets
the caller compute the change from that fresh state, and writes it with a
compare-and-swap on the ``version`` column. A writer that loses the race
re-reads and recomputes, so decisions such as "are both approvals now set"
are always taken against the state the write is applied to.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Generic, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, ResourceNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Returns the column changes to apply, or None when nothing needs to change.
Mutator = Callable[[Any], "dict[str, Any] | None"]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UpdateOutcome(Generic[T]):
    record: T
    changed: bool
    previous: dict[str, Any] = field(default_factory=dict)
    version: int = 0

    def previous_value(self, column: str, default: Any = None) -> Any:
        return self.previous.get(column, default)


class PersistenceGateway:
    def __init__(self, db: Session, *, max_retries: int = 5) -> None:
        self.db = db
        self._max_retries = max(1, max_retries)

    def find(self, model: type[T], entity_id: str) -> T | None:
        return self.db.get(model, entity_id)

    def get(self, model: type[T], entity_id: str, *, label: str | None = None) -> T:
        record = self.db.get(model, entity_id)
        if record is None:
            raise ResourceNotFoundError(label or model.__name__, entity_id)
        return record

    def lock(self, model: type[T], entity_id: str, *, label: str | None = None) -> T:
        """Read a row and hold its lock until the unit of work ends."""
        record = self._read_for_update(model, entity_id)
        if record is None:
            raise ResourceNotFoundError(label or model.__name__, entity_id)
        return record

    def insert(self, model: type[T], **fields: Any) -> T:
        """Insert inside a savepoint so a constraint violation leaves the unit of work usable."""
        record = model(**fields)
        with self.db.begin_nested():
            self.db.add(record)
        return record

    def _read_for_update(self, model: type[T], entity_id: str) -> T | None:
        return self.db.execute(
            select(model)
            .where(model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def conditional_update(
        self,
        model: type[T],
        entity_id: str,
        mutator: Mutator,
        *,
        label: str | None = None,
    ) -> UpdateOutcome[T]:
        for attempt in range(1, self._max_retries + 1):
            current = self._read_for_update(model, entity_id)
            if current is None:
                raise ResourceNotFoundError(label or model.__name__, entity_id)

            changes = mutator(current)
            if changes is None:
                return UpdateOutcome(record=current, changed=False, version=current.version)

            seen_version = current.version
            previous = {column: getattr(current, column) for column in changes}
            values = dict(changes)
            values["version"] = seen_version + 1
            values["updated_at"] = _utc_now()

            result = self.db.execute(
                update(model)
                .where(model.id == entity_id, model.version == seen_version)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                record = self._read_for_update(model, entity_id)
                return UpdateOutcome(record=record, changed=True, previous=previous, version=record.version)

            logger.info(
                "Concurrent update on %s %s (version %s), attempt %d/%d",
                model.__name__,
                entity_id,
                seen_version,
                attempt,
                self._max_retries,
            )

        raise ConflictError(
            f"{label or model.__name__} {entity_id} was modified concurrently; reload and retry",
            details={"resource_id": entity_id},
        )
