"""Comment store infrastructure providers."""

from collections.abc import AsyncIterator

from dishka import Scope, provide

from commentsync.adapter.http.client import HttpCommentStore
from commentsync.config import StoreSettings
from commentsync.domain.repository import CommentStore
from commentsync.util.di.base import ProviderBase
from commentsync.util.error import ConfigurationError
from commentsync.util.observability import instrument_httpx


class StoreProvider(ProviderBase):
    """Comment store component base."""

    __mock_component__ = "store"


class ProdStoreProvider(StoreProvider):
    """Production store provider using the HTTP comment API."""

    __is_mock__ = False

    @provide(scope=Scope.APP)
    async def get_comment_store(
        self, settings: StoreSettings
    ) -> AsyncIterator[CommentStore]:
        """Provide HTTP comment store.

        The underlying HTTP client is closed with the container.

        Raises:
            ConfigurationError: If the store base URL is not configured
        """
        if not settings.base_url:
            raise ConfigurationError("Comment store base URL must be configured")

        instrument_httpx()
        store = HttpCommentStore(
            base_url=settings.base_url,
            api_token=settings.api_token,
            timeout=settings.timeout,
        )
        try:
            yield store
        finally:
            await store.aclose()
