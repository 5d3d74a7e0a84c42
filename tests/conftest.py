"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from commentsync.domain.model.comment import AuthorRef, Comment
from commentsync.domain.value import CommentId, ContentId, UserId
from commentsync.persistence.inmemory import InMemoryCommentStore

BASE_TIME = datetime(2023, 6, 1, tzinfo=timezone.utc)


def make_author(username: str = "someone") -> AuthorRef:
    """Helper function to build an author reference with a fresh id."""
    return AuthorRef(id=UserId(uuid4()), username=username)


def make_comment(
    content_id: ContentId,
    author: AuthorRef | None = None,
    text: str = "A comment",
    parent_id: CommentId | None = None,
    minutes: int = 0,
) -> Comment:
    """Helper function to build a stored comment.

    Args:
        content_id: Content item the comment belongs to
        author: Author (a fresh one by default)
        text: Comment text
        parent_id: Parent comment for replies
        minutes: Offset of created_at from BASE_TIME, to control ordering

    Returns:
        Comment
    """
    created_at = BASE_TIME + timedelta(minutes=minutes)
    return Comment(
        id=CommentId(uuid4()),
        content_id=content_id,
        author=author or make_author(),
        text=text,
        parent_id=parent_id,
        created_at=created_at,
        updated_at=created_at,
    )


def seed_thread(
    store: InMemoryCommentStore,
    content_id: ContentId,
    count: int,
    author: AuthorRef | None = None,
) -> list[Comment]:
    """Store `count` top-level comments and return them newest first."""
    comments = [
        store.add(make_comment(content_id, author=author, text=f"Comment {i}", minutes=i))
        for i in range(count)
    ]
    return list(reversed(comments))


def seed_replies(
    store: InMemoryCommentStore,
    parent: Comment,
    count: int,
    author: AuthorRef | None = None,
) -> list[Comment]:
    """Store `count` replies to a comment and return them oldest first."""
    return [
        store.add(
            make_comment(
                parent.content_id,
                author=author,
                text=f"Reply {i}",
                parent_id=parent.id,
                minutes=1000 + i,
            )
        )
        for i in range(count)
    ]


async def open_thread(env, content_id: ContentId):
    """Engine for a thread as seen by the test viewer, with its backing store.

    Args:
        env: Container yielded by a `create_env_fixture()` fixture
        content_id: Content item of the thread

    Returns:
        Tuple of (ThreadSyncEngine, InMemoryCommentStore)
    """
    from commentsync.domain.service import ThreadSyncEngineFactory
    from tests.di import TEST_VIEWER

    factory = await env.get(ThreadSyncEngineFactory)
    store = await env.get(InMemoryCommentStore)
    return factory.for_thread(content_id, TEST_VIEWER), store
