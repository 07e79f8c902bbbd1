from typing import Any, Dict, Optional


class QueueError(Exception):
    """Base class for every error the queue core raises."""

    status_code = 500
    error = "Queue error"
    retryable = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        detail = {"error": self.error, "reason": self.message, "retryable": self.retryable}
        detail.update(self.context)
        if request_id is not None:
            detail["request_id"] = request_id
        return detail


class NotFoundError(QueueError):
    status_code = 404
    error = "Not found"


class InvalidStateError(QueueError):
    """A transition was attempted from a state that does not allow it."""

    status_code = 409
    error = "Invalid state transition"


class ValidationError(QueueError):
    status_code = 400
    error = "Validation failed"


class StoreUnavailableError(QueueError):
    """The backing store could not be reached. Safe to retry."""

    status_code = 503
    error = "Store unavailable"
    retryable = True


class ConflictError(QueueError):
    """The write clashes with data already in the store."""

    status_code = 409
    error = "Conflict"
