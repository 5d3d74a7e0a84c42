"""Domain layer DI providers."""

from dishka import Scope, provide

from commentsync.config import ThreadSettings
from commentsync.domain.repository import CommentStore
from commentsync.domain.service import MutationExecutor, ThreadSyncEngineFactory
from commentsync.util.di.base import ProviderBase


class ProdDomainProvider(ProviderBase):
    """Production domain services provider - concrete, no mocks needed.

    Domain services are APP-scoped: thread engines hold client-side state
    that must outlive any single request, and the factory keeps exactly one
    engine per (content item, viewer) pair.
    """

    scope = Scope.APP

    @provide
    def get_mutation_executor(self, comment_store: CommentStore) -> MutationExecutor:
        """Provide mutation executor."""
        return MutationExecutor(comment_store=comment_store)

    @provide
    def get_engine_factory(
        self, executor: MutationExecutor, settings: ThreadSettings
    ) -> ThreadSyncEngineFactory:
        """Provide thread sync engine factory."""
        return ThreadSyncEngineFactory(executor=executor, settings=settings)
