"""Remote comment store interface."""

from abc import ABC, abstractmethod
from typing import Optional

from commentsync.domain.model.comment import Comment
from commentsync.domain.model.page import CommentPage, LikeState
from commentsync.domain.value import CommentId, ContentId, ReportReason


class CommentStore(ABC):
    """Remote store holding comments, replies, likes and reports.

    Defines the contract the sync engine consumes. Implementations live in
    the adapter and persistence layers and signal failures with the domain
    error taxonomy:

    - ValidationError: the store rejected the input
    - NotAuthorizedError: unauthenticated viewer or not the author
    - NotFoundError: the comment (or content item) does not exist
    - TransientError: connectivity or server failure
    """

    @abstractmethod
    async def list_comments(
        self, content_id: ContentId, page: int, page_size: int
    ) -> CommentPage:
        """List top-level comments of a content item, newest first.

        Args:
            content_id: Content item the thread belongs to
            page: Zero-based page index
            page_size: Comments per page

        Returns:
            The page, whether more pages exist and the total count
        """
        pass

    @abstractmethod
    async def list_replies(
        self, parent_id: CommentId, page: int, page_size: int
    ) -> CommentPage:
        """List replies to a top-level comment, oldest first.

        Args:
            parent_id: Top-level comment ID
            page: Zero-based page index
            page_size: Replies per page

        Returns:
            The page, whether more pages exist and the total reply count
        """
        pass

    @abstractmethod
    async def create_comment(
        self,
        content_id: ContentId,
        text: str,
        parent_id: Optional[CommentId] = None,
    ) -> Comment:
        """Create a comment or reply as the viewer.

        Returns:
            The stored comment, carrying its final id and timestamps
        """
        pass

    @abstractmethod
    async def edit_comment(self, comment_id: CommentId, text: str) -> Comment:
        """Replace the text of one of the viewer's comments.

        Returns:
            The updated comment
        """
        pass

    @abstractmethod
    async def delete_comment(self, comment_id: CommentId) -> None:
        """Delete one of the viewer's comments (and its replies)."""
        pass

    @abstractmethod
    async def toggle_like(self, comment_id: CommentId) -> LikeState:
        """Like or unlike a comment as the viewer.

        Returns:
            The new like flag and like count
        """
        pass

    @abstractmethod
    async def report_comment(
        self, comment_id: CommentId, reason: ReportReason
    ) -> None:
        """File a moderation report against a comment."""
        pass
