"""Paged read results and pagination state."""

from pydantic import Field

from commentsync.domain.model.comment import Comment
from commentsync.domain.model.common import DomainModel
from commentsync.domain.value import CommentId


class CommentPage(DomainModel):
    """One page of comments as returned by the store."""

    comments: list[Comment] = Field(default_factory=list)
    has_more: bool = False
    total: int = Field(default=0, ge=0)


class PageCursor(DomainModel):
    """Paging state of one collection.

    Attributes:
        page: Index of the next page to request
        has_more: Whether the store reported more pages
        total: Server-side total at the last confirmed read
    """

    page: int = Field(default=0, ge=0)
    has_more: bool = True
    total: int = Field(default=0, ge=0)

    def advance(self, result: CommentPage) -> "PageCursor":
        """Cursor after a page was merged."""
        return PageCursor(page=self.page + 1, has_more=result.has_more, total=result.total)


class LikeState(DomainModel):
    """Like flag and count as confirmed by the store."""

    liked: bool
    like_count: int = Field(ge=0)


class DeleteConfirmation(DomainModel):
    """Token returned by a delete request, redeemed to perform the delete."""

    token: str
    comment_id: CommentId
    parent_id: CommentId | None = None
