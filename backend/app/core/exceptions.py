class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class WorkflowError(AppError):
    """Base class for errors reported by workflow operations.

    ``category`` is a stable, machine-readable name the UI keys its messages
    on; ``retryable`` tells it whether to offer a refresh-and-retry affordance.
    """

    category = "workflow"
    retryable = False

    def __init__(self, message: str, status_code: int = 400, details: dict = None):
        super().__init__(message, status_code=status_code, details=details)

    def to_payload(self) -> dict:
        return {
            "message": self.message,
            "category": self.category,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(WorkflowError):
    """Raised for malformed or missing input."""
    category = "validation"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)


class PermissionDeniedError(WorkflowError):
    """Raised when the actor lacks the role or relationship an operation needs."""
    category = "permission"

    def __init__(self, message: str = "You are not allowed to perform this action", details: dict = None):
        super().__init__(message, status_code=403, details=details)


class ResourceNotFoundError(WorkflowError):
    """Raised when a requested resource is not found."""
    category = "not_found"

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidStateError(WorkflowError):
    """Raised when an operation is not legal from the entity's current status."""
    category = "invalid_state"
    retryable = True

    def __init__(self, current: str, attempted: str, details: dict = None):
        self.current = current
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted} while status is '{current}'",
            status_code=409,
            details={"current": current, "attempted": attempted, **(details or {})},
        )


class PreconditionError(WorkflowError):
    """Raised when a required step on a related entity has not happened yet."""
    category = "precondition"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)


class ConflictError(WorkflowError):
    """Raised when a concurrent modification is detected."""
    category = "conflict"
    retryable = True

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)
