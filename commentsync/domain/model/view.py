"""Read-only view of a thread for the presentation layer."""

from collections.abc import Mapping

from pydantic import Field

from commentsync.domain.model.comment import Comment
from commentsync.domain.model.common import DomainModel
from commentsync.domain.model.page import PageCursor
from commentsync.domain.model.thread import ThreadCache
from commentsync.domain.value import (
    CommentId,
    ContentId,
    EntityState,
    OperationKey,
    OperationKind,
)


class ThreadView(DomainModel):
    """Immutable copy of the thread cache taken at one commit."""

    content_id: ContentId
    comments: tuple[Comment, ...] = ()
    replies: Mapping[CommentId, tuple[Comment, ...]] = Field(default_factory=dict)
    cursor: PageCursor = Field(default_factory=PageCursor)
    reply_cursors: Mapping[CommentId, PageCursor] = Field(default_factory=dict)
    loading: frozenset[OperationKey] = frozenset()
    errors: Mapping[OperationKey, str] = Field(default_factory=dict)
    pending: frozenset[CommentId] = frozenset()
    version: int = 0

    @classmethod
    def of(cls, content_id: ContentId, cache: ThreadCache) -> "ThreadView":
        return cls(
            content_id=content_id,
            comments=tuple(cache.top_level),
            replies={
                parent_id: tuple(replies)
                for parent_id, replies in cache.replies_by_parent.items()
            },
            cursor=cache.cursor,
            reply_cursors=dict(cache.reply_cursors),
            loading=frozenset(cache.in_flight),
            errors=dict(cache.errors),
            pending=frozenset(cache.pending),
            version=cache.version,
        )

    @property
    def total(self) -> int:
        return self.cursor.total

    @property
    def has_more(self) -> bool:
        return self.cursor.has_more

    @property
    def is_loading(self) -> bool:
        return self._thread_key(OperationKind.REFRESH) in self.loading

    @property
    def is_loading_more(self) -> bool:
        return self._thread_key(OperationKind.LOAD_MORE) in self.loading

    @property
    def error(self) -> str | None:
        """Sticky error of the last failed thread page read."""
        return self.errors.get(
            self._thread_key(OperationKind.REFRESH)
        ) or self.errors.get(self._thread_key(OperationKind.LOAD_MORE))

    @property
    def is_empty(self) -> bool:
        return not self.comments and not self.is_loading

    @property
    def can_load_more(self) -> bool:
        return self.has_more and not self.is_loading and not self.is_loading_more

    def _thread_key(self, kind: OperationKind) -> OperationKey:
        return OperationKey(entity_id=self.content_id, kind=kind)

    def replies_for(self, parent_id: CommentId) -> tuple[Comment, ...]:
        return self.replies.get(parent_id, ())

    def has_loaded_replies(self, parent_id: CommentId) -> bool:
        return parent_id in self.replies

    def is_loading_replies(self, parent_id: CommentId) -> bool:
        key = OperationKey(entity_id=parent_id, kind=OperationKind.LOAD_REPLIES)
        return key in self.loading

    def replies_have_more(self, parent_id: CommentId) -> bool:
        cursor = self.reply_cursors.get(parent_id)
        return cursor is not None and cursor.has_more

    def is_busy(self, comment_id: CommentId, kind: OperationKind) -> bool:
        """Loading flag of one operation on one comment."""
        return OperationKey(entity_id=comment_id, kind=kind) in self.loading

    def error_for(self, key: OperationKey) -> str | None:
        return self.errors.get(key)

    def find(self, comment_id: CommentId) -> Comment | None:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        for replies in self.replies.values():
            for reply in replies:
                if reply.id == comment_id:
                    return reply
        return None

    def is_pending(self, comment_id: CommentId) -> bool:
        return self.state_of(comment_id) is EntityState.PENDING

    def state_of(self, comment_id: CommentId) -> EntityState:
        if self.find(comment_id) is None:
            return EntityState.ABSENT
        if comment_id in self.pending or any(
            key.entity_id == comment_id and key.kind.is_mutation
            for key in self.loading
        ):
            return EntityState.PENDING
        return EntityState.CONFIRMED
