"""Domain value objects for the comment thread engine."""

from commentsync.domain.value.identifiers import CommentId, ContentId, UserId
from commentsync.domain.value.types import (
    EntityState,
    OperationKey,
    OperationKind,
    ReportReason,
)

__all__ = [
    # Identifiers
    "CommentId",
    "ContentId",
    "UserId",
    # Types
    "EntityState",
    "OperationKey",
    "OperationKind",
    "ReportReason",
]
