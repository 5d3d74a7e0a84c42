"""Application bootstrap.

Configures logging and Logfire, then opens the DI container that hands out
thread engines:

    async with run_app() as container:
        factory = await container.get(ThreadSyncEngineFactory)
        engine = factory.for_thread(content_id, viewer)
        await engine.refresh()
"""

import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import logfire
from dishka import AsyncContainer

from commentsync.config import Settings
from commentsync.util.di.container import create_container
from commentsync.util.logging import setup_logging
from commentsync.util.observability import configure_logfire


@asynccontextmanager
async def run_app(settings: Settings | None = None) -> AsyncIterator[AsyncContainer]:
    """Configure observability and open the production container.

    Args:
        settings: Settings used for logging and Logfire (loaded from the
            environment by default)

    Yields:
        APP-scoped container; closed (with the store client) on exit
    """
    settings = settings or Settings()
    setup_logging(settings)
    configure_logfire(settings)

    container = create_container()
    try:
        logfire.info("Comment sync started", environment=settings.environment)
        yield container
    except Exception as e:
        logfire.error(
            "Comment sync failed",
            error=str(e),
            error_type=type(e).__name__,
            _exc_info=sys.exc_info(),
        )
        raise
    finally:
        await container.close()
