"""Value objects for the comment thread engine.

Value objects are immutable and defined by their values, not identity.
"""

from enum import Enum
from uuid import UUID

from commentsync.domain.value.common import ValueObject


class OperationKind(str, Enum):
    """Kind of operation tracked by the in-flight guard."""

    REFRESH = "refresh"
    LOAD_MORE = "load_more"
    LOAD_REPLIES = "load_replies"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    LIKE = "like"
    REPORT = "report"

    @property
    def is_mutation(self) -> bool:
        """Whether this kind changes a cached entity."""
        return self in _MUTATIONS


_MUTATIONS = frozenset(
    {OperationKind.CREATE, OperationKind.EDIT, OperationKind.DELETE, OperationKind.LIKE}
)


class ReportReason(str, Enum):
    """Reason given when reporting a comment."""

    INAPPROPRIATE = "inappropriate"
    SPAM = "spam"
    HARASSMENT = "harassment"
    OTHER = "other"


class EntityState(str, Enum):
    """Lifecycle state of a tracked comment."""

    CONFIRMED = "confirmed"
    PENDING = "optimistic-pending"
    ABSENT = "absent"


class OperationKey(ValueObject):
    """Identifies one pending operation: the entity it targets and its kind.

    Thread-level reads use the content id as entity id; reply reads use the
    parent comment id.
    """

    entity_id: UUID
    kind: OperationKind

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.entity_id}"
