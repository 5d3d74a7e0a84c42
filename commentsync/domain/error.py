"""Domain layer errors.

The taxonomy mirrors how a failed operation is handled by the sync engine:

- ValidationError: rejected before any optimistic state or remote call.
- NotAuthorizedError: rejected by the store; rolled back, never retried.
- NotFoundError: rolled back, and the named entity is evicted locally.
- TransientError: rolled back; the caller may retry the same operation.
"""

from uuid import UUID


class DomainError(Exception):
    """Base domain error."""

    retryable: bool = False


class ValidationError(DomainError):
    """Input rejected before it reaches the store."""

    pass


class NotAuthorizedError(DomainError):
    """Raised when the viewer may not perform an operation on a comment."""

    def __init__(self, action: str, resource_id: str, reason: str | None = None):
        self.action = action
        self.resource_id = resource_id
        message = f"Not authorized to {action} comment {resource_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NotFoundError(DomainError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class TransientError(DomainError):
    """Connectivity or server failure; the same operation may be retried."""

    retryable = True


class OperationInFlightError(DomainError):
    """Raised when an entity already has a pending operation."""

    def __init__(self, entity_id: UUID, kind: str):
        self.entity_id = entity_id
        self.kind = kind
        super().__init__(f"Operation {kind} already in flight for {entity_id}")


class ConfirmationError(DomainError):
    """Raised when a delete confirmation token is unknown or already used."""

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Unknown or expired delete confirmation: {token}")
