"""Mutation executor domain service."""

from collections.abc import Awaitable
from typing import Optional, TypeVar

import logfire

from commentsync.domain.error import DomainError, TransientError
from commentsync.domain.model.comment import Comment
from commentsync.domain.model.page import CommentPage, LikeState
from commentsync.domain.repository import CommentStore
from commentsync.domain.value import CommentId, ContentId, ReportReason

from .base import Service

T = TypeVar("T")


class MutationExecutor(Service):
    """Issues single operations against the comment store.

    Stateless per call: every call is traced, domain errors raised by the
    store pass through unchanged and anything else is reported as a
    TransientError. Nothing is retried here; retrying a create could post
    it twice.
    """

    def __init__(self, comment_store: CommentStore) -> None:
        """Initialize mutation executor.

        Args:
            comment_store: Remote comment store
        """
        self.comment_store = comment_store

    async def _run(self, operation: str, call: Awaitable[T], **attributes) -> T:
        with logfire.span(f"mutation_executor.{operation}", **attributes):
            try:
                return await call
            except DomainError as e:
                logfire.warn(
                    "Store rejected operation",
                    operation=operation,
                    error_type=type(e).__name__,
                    error=str(e),
                    **attributes,
                )
                raise
            except Exception as e:
                logfire.error(
                    "Store call failed",
                    operation=operation,
                    error_type=type(e).__name__,
                    error=str(e),
                    **attributes,
                )
                raise TransientError(f"{operation} failed: {e}") from e

    async def list_comments(
        self, content_id: ContentId, page: int, page_size: int
    ) -> CommentPage:
        """Read one page of top-level comments.

        Args:
            content_id: Content item ID
            page: Zero-based page index
            page_size: Comments per page

        Returns:
            Comment page
        """
        result = await self._run(
            "list_comments",
            self.comment_store.list_comments(content_id, page, page_size),
            content_id=str(content_id),
            page=page,
            page_size=page_size,
        )
        logfire.info(
            "Comment page loaded",
            content_id=str(content_id),
            page=page,
            count=len(result.comments),
            has_more=result.has_more,
            total=result.total,
        )
        return result

    async def list_replies(
        self, parent_id: CommentId, page: int, page_size: int
    ) -> CommentPage:
        """Read one page of replies to a top-level comment.

        Args:
            parent_id: Parent comment ID
            page: Zero-based page index
            page_size: Replies per page

        Returns:
            Reply page
        """
        result = await self._run(
            "list_replies",
            self.comment_store.list_replies(parent_id, page, page_size),
            parent_id=str(parent_id),
            page=page,
            page_size=page_size,
        )
        logfire.info(
            "Reply page loaded",
            parent_id=str(parent_id),
            page=page,
            count=len(result.comments),
            has_more=result.has_more,
            total=result.total,
        )
        return result

    async def create_comment(
        self,
        content_id: ContentId,
        text: str,
        parent_id: Optional[CommentId] = None,
    ) -> Comment:
        """Create a comment or a reply.

        Args:
            content_id: Content item ID
            text: Comment text, already validated
            parent_id: Parent comment ID for replies (None for top-level)

        Returns:
            Stored comment
        """
        comment = await self._run(
            "create_comment",
            self.comment_store.create_comment(content_id, text, parent_id),
            content_id=str(content_id),
            parent_id=str(parent_id) if parent_id else None,
            text_length=len(text),
        )
        logfire.info(
            "Comment created",
            comment_id=str(comment.id),
            content_id=str(content_id),
            parent_id=str(parent_id) if parent_id else None,
        )
        return comment

    async def edit_comment(self, comment_id: CommentId, text: str) -> Comment:
        """Replace the text of a comment.

        Args:
            comment_id: Comment ID
            text: New text, already validated

        Returns:
            Updated comment
        """
        comment = await self._run(
            "edit_comment",
            self.comment_store.edit_comment(comment_id, text),
            comment_id=str(comment_id),
            text_length=len(text),
        )
        logfire.info("Comment text updated", comment_id=str(comment_id))
        return comment

    async def delete_comment(self, comment_id: CommentId) -> None:
        """Delete a comment.

        Args:
            comment_id: Comment ID
        """
        await self._run(
            "delete_comment",
            self.comment_store.delete_comment(comment_id),
            comment_id=str(comment_id),
        )
        logfire.info("Comment deleted", comment_id=str(comment_id))

    async def toggle_like(self, comment_id: CommentId) -> LikeState:
        """Like or unlike a comment.

        Args:
            comment_id: Comment ID

        Returns:
            Like state confirmed by the store
        """
        state = await self._run(
            "toggle_like",
            self.comment_store.toggle_like(comment_id),
            comment_id=str(comment_id),
        )
        logfire.info(
            "Comment like toggled",
            comment_id=str(comment_id),
            liked=state.liked,
            like_count=state.like_count,
        )
        return state

    async def report_comment(
        self, comment_id: CommentId, reason: ReportReason
    ) -> None:
        """Report a comment.

        Args:
            comment_id: Comment ID
            reason: Report reason
        """
        await self._run(
            "report_comment",
            self.comment_store.report_comment(comment_id, reason),
            comment_id=str(comment_id),
            reason=reason.value,
        )
        logfire.info(
            "Comment reported", comment_id=str(comment_id), reason=reason.value
        )
