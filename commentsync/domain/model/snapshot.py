"""Pre-mutation snapshots used to roll back optimistic changes.

A snapshot records only what one mutation touched, so restoring it never
clobbers unrelated changes committed while the mutation was in flight.
Counters shared between concurrent mutations (thread total, a parent's
reply count) are recorded as the delta that was applied rather than as a
value.
"""

from commentsync.domain.model.comment import Comment
from commentsync.domain.model.common import DomainModel
from commentsync.domain.model.page import PageCursor
from commentsync.domain.value import CommentId


class EntrySnapshot(DomainModel):
    """State of one comment before a mutation.

    Attributes:
        comment_id: Comment the mutation touched
        parent_id: Parent of the comment (None for top-level)
        before: Comment as it was, None if the mutation created it
        position: Index in its sequence before the mutation
        fields: Fields the mutation changed, None if it replaced or removed
            the whole entity
    """

    comment_id: CommentId
    parent_id: CommentId | None = None
    before: Comment | None = None
    position: int | None = None
    fields: tuple[str, ...] | None = None


class SubtreeSnapshot(DomainModel):
    """Loaded reply collection of a top-level comment before it was removed.

    `replies` is None when the replies had not been loaded.
    """

    parent_id: CommentId
    replies: tuple[Comment, ...] | None = None
    cursor: PageCursor | None = None


class CacheSnapshot(DomainModel):
    """Everything needed to undo one optimistic mutation."""

    generation: int
    entries: tuple[EntrySnapshot, ...] = ()
    subtrees: tuple[SubtreeSnapshot, ...] = ()
    total_delta: int = 0
    reply_count_deltas: tuple[tuple[CommentId, int], ...] = ()

    @property
    def comment_ids(self) -> list[CommentId]:
        return [entry.comment_id for entry in self.entries]
