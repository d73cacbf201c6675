"""Rejection outcomes raised by the complaint lifecycle and the vote ledger."""
from typing import Optional


class LifecycleError(Exception):
    """Base class for every explicit rejection; carries the HTTP-equivalent status."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict:
        return {"success": False, "message": self.message}


class NotFound(LifecycleError):
    status_code = 404


class ComplaintNotFound(NotFound):
    def __init__(self, message: str = "Complaint not found") -> None:
        super().__init__(message)


class ActionForbidden(LifecycleError):
    status_code = 403


class InvalidTransition(LifecycleError):
    status_code = 400


class RetentionWindowExpired(InvalidTransition):
    status_code = 410

    def __init__(self, message: str = "Retention window passed. The complaint can no longer be restored.") -> None:
        super().__init__(message)


class InvalidRequest(LifecycleError):
    status_code = 400


class VoteConflict(LifecycleError):
    status_code = 409


class TransientError(LifecycleError):
    """Database or connection failure; the message never includes driver detail."""

    status_code = 500

    def __init__(self, message: str = "Server error") -> None:
        super().__init__(message)
