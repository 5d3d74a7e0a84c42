"""Comment entity.

Comments form a two-level thread on a content item: top-level comments and
their replies. Replies never have replies of their own.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from commentsync.domain.model.common import DomainModel
from commentsync.domain.value import CommentId, ContentId, UserId


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthorRef(DomainModel):
    """Read-only snapshot of the authoring identity."""

    id: UserId
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class Comment(DomainModel):
    """Comment entity.

    Represents a top-level comment on a content item or a reply to one.

    Threading is managed through:
    - parent_id: Top-level comment replied to (None for top-level)
    - reply_count: Replies known to exist server-side, maintained for
      top-level comments even when no reply has been loaded
    """

    id: CommentId
    content_id: ContentId
    author: AuthorRef
    text: str = Field(min_length=1, max_length=10000)
    parent_id: Optional[CommentId] = None
    like_count: int = Field(default=0, ge=0)
    liked_by_viewer: bool = False
    reply_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def is_edited(self) -> bool:
        """Whether the text changed after creation."""
        return self.updated_at != self.created_at
