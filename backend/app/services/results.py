from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from app.core.exceptions import WorkflowError

T = TypeVar("T")


@dataclass(frozen=True)
class WorkflowResult(Generic[T]):
    """Outcome of a workflow operation: either ``value`` or a typed ``error``."""

    value: T | None = None
    error: WorkflowError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> WorkflowResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: WorkflowError) -> WorkflowResult[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value
