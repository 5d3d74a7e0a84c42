"""Repository interfaces for the comment thread domain.

Repository interfaces are defined in the domain layer (dependency inversion).
Implementations live in the adapter and persistence layers.
"""

from commentsync.domain.repository.comment_store import CommentStore

__all__ = [
    "CommentStore",
]
