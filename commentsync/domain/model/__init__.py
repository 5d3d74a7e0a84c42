"""Domain model entities for the comment thread engine."""

from commentsync.domain.model.comment import AuthorRef, Comment
from commentsync.domain.model.page import (
    CommentPage,
    DeleteConfirmation,
    LikeState,
    PageCursor,
)
from commentsync.domain.model.snapshot import (
    CacheSnapshot,
    EntrySnapshot,
    SubtreeSnapshot,
)
from commentsync.domain.model.thread import ThreadCache
from commentsync.domain.model.view import ThreadView

__all__ = [
    "AuthorRef",
    "Comment",
    "CommentPage",
    "DeleteConfirmation",
    "LikeState",
    "PageCursor",
    "CacheSnapshot",
    "EntrySnapshot",
    "SubtreeSnapshot",
    "ThreadCache",
    "ThreadView",
]
