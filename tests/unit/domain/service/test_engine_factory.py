"""Unit tests for ThreadSyncEngineFactory."""

from uuid import uuid4

import pytest

from commentsync.domain.service import MutationExecutor, ThreadSyncEngineFactory
from commentsync.domain.value import ContentId
from tests.conftest import make_author
from tests.di import TEST_VIEWER
from tests.harness import create_env_fixture

# Unit test fixture - everything mocked
unit_env = create_env_fixture()


class TestForThread:
    """Tests for for_thread and discard."""

    @pytest.mark.asyncio
    async def test_same_thread_and_viewer_share_engine(self, unit_env):
        factory = await unit_env.get(ThreadSyncEngineFactory)
        content_id = ContentId(uuid4())

        first = factory.for_thread(content_id, TEST_VIEWER)
        second = factory.for_thread(content_id, TEST_VIEWER)

        assert first is second
        assert first.content_id == content_id
        assert first.viewer == TEST_VIEWER

    @pytest.mark.asyncio
    async def test_engines_are_separate_per_thread_and_viewer(self, unit_env):
        factory = await unit_env.get(ThreadSyncEngineFactory)
        content_id = ContentId(uuid4())

        mine = factory.for_thread(content_id, TEST_VIEWER)
        theirs = factory.for_thread(content_id, make_author("other"))
        elsewhere = factory.for_thread(ContentId(uuid4()), TEST_VIEWER)

        assert mine is not theirs
        assert mine is not elsewhere
        assert mine.cache is not theirs.cache

    @pytest.mark.asyncio
    async def test_engines_share_executor_and_settings(self, unit_env):
        factory = await unit_env.get(ThreadSyncEngineFactory)
        executor = await unit_env.get(MutationExecutor)

        engine = factory.for_thread(ContentId(uuid4()), TEST_VIEWER)

        assert engine.executor is executor
        assert engine.settings.page_size == 20

    @pytest.mark.asyncio
    async def test_discard_forgets_engine(self, unit_env):
        factory = await unit_env.get(ThreadSyncEngineFactory)
        content_id = ContentId(uuid4())
        engine = factory.for_thread(content_id, TEST_VIEWER)

        factory.discard(content_id, TEST_VIEWER.id)

        assert factory.for_thread(content_id, TEST_VIEWER) is not engine
