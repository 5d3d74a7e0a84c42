"""Mock comment store provider for testing."""

from uuid import UUID

from dishka import Scope, provide

from commentsync.domain.model.comment import AuthorRef
from commentsync.domain.repository import CommentStore
from commentsync.domain.value import UserId
from commentsync.persistence.inmemory import InMemoryCommentStore
from commentsync.util.di.infrastructure.store import StoreProvider

# Viewer every mocked store answers for
TEST_VIEWER = AuthorRef(
    id=UserId(UUID("00000000-0000-0000-0000-000000000001")),
    username="viewer",
    display_name="Test Viewer",
)


class MockStoreProvider(StoreProvider):
    """Mock store provider using the in-memory comment store.

    APP scope matches the domain services depending on it; every test
    fixture builds its own container, so each test gets a fresh store.
    """

    __is_mock__ = True

    @provide(scope=Scope.APP)
    def get_inmemory_store(self) -> InMemoryCommentStore:
        """Provide in-memory store, for tests to seed and control."""
        return InMemoryCommentStore(viewer=TEST_VIEWER)

    @provide(scope=Scope.APP)
    def get_comment_store(self, store: InMemoryCommentStore) -> CommentStore:
        """Provide the same in-memory store as the CommentStore."""
        return store
