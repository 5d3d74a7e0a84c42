"""In-memory comment store for testing."""

import asyncio
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

from commentsync.domain.error import (
    DomainError,
    NotAuthorizedError,
    NotFoundError,
    ValidationError,
)
from commentsync.domain.model.comment import AuthorRef, Comment
from commentsync.domain.model.page import CommentPage, LikeState
from commentsync.domain.repository.comment_store import CommentStore
from commentsync.domain.value import CommentId, ContentId, ReportReason, UserId


class InMemoryCommentStore(CommentStore):
    """In-memory implementation of CommentStore for testing.

    Answers as the store would for one viewer. Tests can queue failures per
    operation with `fail_next` and hold calls in flight with `hold` until
    `release` is called.
    """

    def __init__(self, viewer: Optional[AuthorRef] = None) -> None:
        self.viewer = viewer
        self._comments: dict[CommentId, Comment] = {}
        self._likes: dict[CommentId, set[UserId]] = defaultdict(set)
        self.reports: list[tuple[CommentId, UserId, ReportReason]] = []
        self.calls: list[str] = []
        self._failures: dict[str, deque[DomainError]] = defaultdict(deque)
        self._gate: asyncio.Event | None = None
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    # Test controls

    def add(self, comment: Comment) -> Comment:
        """Store a comment as-is."""
        self._comments[comment.id] = comment
        return comment

    def like(self, comment_id: CommentId, user_id: UserId) -> None:
        """Record a like by any user."""
        self._likes[comment_id].add(user_id)

    def get(self, comment_id: CommentId) -> Comment | None:
        comment = self._comments.get(comment_id)
        return None if comment is None else self._present(comment)

    def fail_next(self, operation: str, error: DomainError) -> None:
        """Make the next call of an operation raise an error."""
        self._failures[operation].append(error)

    def hold(self) -> None:
        """Keep every following call pending until release()."""
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    def count(self, operation: str) -> int:
        return self.calls.count(operation)

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self._gate is not None:
            await self._gate.wait()
        if self._failures[operation]:
            raise self._failures[operation].popleft()

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _present(self, comment: Comment) -> Comment:
        """Comment with viewer-relative and derived fields filled in."""
        likes = self._likes.get(comment.id, set())
        replies = 0
        if comment.parent_id is None:
            replies = sum(1 for c in self._comments.values() if c.parent_id == comment.id)
        return comment.model_copy(
            update={
                "like_count": len(likes),
                "liked_by_viewer": self.viewer is not None and self.viewer.id in likes,
                "reply_count": replies,
            }
        )

    def _find(self, comment_id: CommentId) -> Comment:
        comment = self._comments.get(comment_id)
        if comment is None:
            raise NotFoundError("comment", str(comment_id))
        return comment

    def _require_viewer(self, action: str, resource_id: str) -> AuthorRef:
        if self.viewer is None:
            raise NotAuthorizedError(action, resource_id, "not signed in")
        return self.viewer

    def _require_author(self, action: str, comment: Comment) -> None:
        viewer = self._require_viewer(action, str(comment.id))
        if comment.author.id != viewer.id:
            raise NotAuthorizedError(action, str(comment.id), "not the author")

    @staticmethod
    def _page(comments: list[Comment], page: int, page_size: int) -> CommentPage:
        start = page * page_size
        return CommentPage(
            comments=comments[start : start + page_size],
            has_more=start + page_size < len(comments),
            total=len(comments),
        )

    # CommentStore

    async def list_comments(
        self, content_id: ContentId, page: int, page_size: int
    ) -> CommentPage:
        """List top-level comments, newest first."""
        await self._enter("list_comments")
        comments = [
            self._present(c)
            for c in self._comments.values()
            if c.content_id == content_id and c.parent_id is None
        ]
        comments.sort(key=lambda c: c.created_at, reverse=True)
        return self._page(comments, page, page_size)

    async def list_replies(
        self, parent_id: CommentId, page: int, page_size: int
    ) -> CommentPage:
        """List replies, oldest first."""
        await self._enter("list_replies")
        self._find(parent_id)
        replies = [
            self._present(c) for c in self._comments.values() if c.parent_id == parent_id
        ]
        replies.sort(key=lambda c: c.created_at)
        return self._page(replies, page, page_size)

    async def create_comment(
        self,
        content_id: ContentId,
        text: str,
        parent_id: Optional[CommentId] = None,
    ) -> Comment:
        """Create a comment authored by the viewer."""
        await self._enter("create_comment")
        viewer = self._require_viewer("create", str(content_id))
        if not text.strip():
            raise ValidationError("Comment text cannot be empty")
        if parent_id is not None:
            parent = self._find(parent_id)
            if parent.parent_id is not None:
                raise ValidationError("Replies cannot be nested")
        now = self._now()
        comment = Comment(
            id=CommentId(uuid4()),
            content_id=content_id,
            author=viewer,
            text=text,
            parent_id=parent_id,
            created_at=now,
            updated_at=now,
        )
        self._comments[comment.id] = comment
        return self._present(comment)

    async def edit_comment(self, comment_id: CommentId, text: str) -> Comment:
        """Edit one of the viewer's comments."""
        await self._enter("edit_comment")
        comment = self._find(comment_id)
        self._require_author("edit", comment)
        updated = comment.model_copy(update={"text": text, "updated_at": self._now()})
        self._comments[comment_id] = updated
        return self._present(updated)

    async def delete_comment(self, comment_id: CommentId) -> None:
        """Delete one of the viewer's comments together with its replies."""
        await self._enter("delete_comment")
        comment = self._find(comment_id)
        self._require_author("delete", comment)
        doomed = [comment_id] + [
            c.id for c in self._comments.values() if c.parent_id == comment_id
        ]
        for cid in doomed:
            self._comments.pop(cid, None)
            self._likes.pop(cid, None)

    async def toggle_like(self, comment_id: CommentId) -> LikeState:
        """Flip the viewer's like."""
        await self._enter("toggle_like")
        self._find(comment_id)
        viewer = self._require_viewer("like", str(comment_id))
        likes = self._likes[comment_id]
        if viewer.id in likes:
            likes.discard(viewer.id)
        else:
            likes.add(viewer.id)
        return LikeState(liked=viewer.id in likes, like_count=len(likes))

    async def report_comment(
        self, comment_id: CommentId, reason: ReportReason
    ) -> None:
        """Record a report by the viewer."""
        await self._enter("report_comment")
        self._find(comment_id)
        viewer = self._require_viewer("report", str(comment_id))
        self.reports.append((comment_id, viewer.id, reason))
