# Domain error taxonomy raised by the matching core.
# The HTTP layer maps these to status codes in main.py; services never raise HTTPException.
from __future__ import annotations


class PropSwipeError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(PropSwipeError):
    """A referenced property, interest or match does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} {entity_id} not found")
        self.kind = kind
        self.entity_id = entity_id


class OwnershipConflictError(PropSwipeError):
    """The property is already linked to a different vendor."""

    def __init__(self, property_id: str, current_vendor_id: str, requested_vendor_id: str) -> None:
        super().__init__("Property is already linked to another vendor")
        self.property_id = property_id
        self.current_vendor_id = current_vendor_id
        self.requested_vendor_id = requested_vendor_id


class OwnershipMismatchError(PropSwipeError):
    """The caller does not own the property it is trying to release."""

    def __init__(self, property_id: str, vendor_id: str) -> None:
        super().__init__("You can only unlink properties that belong to you")
        self.property_id = property_id
        self.vendor_id = vendor_id


class ValidationError(PropSwipeError):
    """Caller-side input problem detected before anything is persisted."""


class AlreadyRatedError(ValidationError):
    """The party has already submitted its rating for this match."""

    def __init__(self, match_id: str, role: str) -> None:
        super().__init__(f"{role.capitalize()} has already rated match {match_id}")
        self.match_id = match_id
        self.role = role


class BusyError(PropSwipeError):
    """Another process holds the lock for this resource; the caller should retry shortly."""

    def __init__(self, resource: str, retry_after: int = 1) -> None:
        super().__init__(f"{resource} is busy, retry shortly")
        self.resource = resource
        self.retry_after = retry_after


class InterestStateError(PropSwipeError):
    """The interest is in a terminal state and cannot take the requested transition."""

    def __init__(self, interest_id: str, status: str) -> None:
        super().__init__(f"Interest {interest_id} is not pending (status={status})")
        self.interest_id = interest_id
        self.status = status
