"""Unit tests for ThreadSyncEngine pagination."""

import asyncio
from uuid import uuid4

import pytest

from commentsync.domain.error import TransientError
from commentsync.domain.value import ContentId, OperationKey, OperationKind
from tests.conftest import open_thread, seed_replies, seed_thread
from tests.harness import create_env_fixture

# Unit test fixture - everything mocked
unit_env = create_env_fixture()


class TestLoadPage:
    """Tests for refresh and load_more."""

    @pytest.mark.asyncio
    async def test_pages_through_thread_until_exhausted(self, unit_env):
        """20 of 45, then 40, then 45; a further load is a no-op."""
        # Arrange
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        comments = seed_thread(store, content_id, 45)

        # Act & Assert
        assert await engine.refresh()
        view = engine.view()
        assert len(view.comments) == 20
        assert view.has_more
        assert view.total == 45
        assert view.comments[0].id == comments[0].id

        assert await engine.load_more()
        assert len(engine.view().comments) == 40

        assert await engine.load_more()
        view = engine.view()
        assert len(view.comments) == 45
        assert not view.has_more
        assert [c.id for c in view.comments] == [c.id for c in comments]

        assert not await engine.load_more()
        assert store.count("list_comments") == 3

    @pytest.mark.asyncio
    async def test_empty_thread(self, unit_env):
        engine, _ = await open_thread(unit_env, ContentId(uuid4()))

        await engine.refresh()

        view = engine.view()
        assert view.is_empty
        assert view.total == 0
        assert not view.can_load_more

    @pytest.mark.asyncio
    async def test_reads_suppressed_while_refresh_pending(self, unit_env):
        """Neither a second refresh nor a next page starts during a refresh."""
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        seed_thread(store, content_id, 5)

        store.hold()
        task = asyncio.create_task(engine.refresh())
        await asyncio.sleep(0)

        assert engine.view().is_loading
        assert not await engine.refresh()
        assert not await engine.load_more()

        store.release()
        assert await task
        assert store.count("list_comments") == 1
        assert not engine.view().is_loading

    @pytest.mark.asyncio
    async def test_load_more_suppressed_while_load_more_pending(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        seed_thread(store, content_id, 30)
        await engine.refresh()

        store.hold()
        task = asyncio.create_task(engine.load_more())
        await asyncio.sleep(0)

        assert engine.view().is_loading_more
        assert not await engine.load_more()

        store.release()
        await task
        assert len(engine.view().comments) == 30

    @pytest.mark.asyncio
    async def test_page_read_overtaken_by_refresh_is_discarded(self, unit_env):
        """A next page answered after a refresh does not touch the new thread."""
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        seed_thread(store, content_id, 30)
        await engine.refresh()

        store.hold()
        task = asyncio.create_task(engine.load_more())
        await asyncio.sleep(0)
        store.release()
        await engine.refresh()
        await task

        view = engine.view()
        assert len(view.comments) == 20
        assert view.cursor.page == 1

    @pytest.mark.asyncio
    async def test_refresh_drops_loaded_replies(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        parent = seed_thread(store, content_id, 1)[0]
        seed_replies(store, parent, 2)
        await engine.refresh()
        await engine.toggle_replies(parent.id)

        await engine.refresh()

        assert not engine.has_loaded_replies(parent.id)
        assert engine.get_comment(parent.id).reply_count == 2


class TestReadErrors:
    """Tests for sticky read errors and retry."""

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_error_until_retry(self, unit_env):
        # Arrange
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        seed_thread(store, content_id, 3)
        store.fail_next("list_comments", TransientError("network down"))

        # Act
        issued = await engine.refresh()

        # Assert
        assert issued
        view = engine.view()
        assert view.error == "network down"
        assert view.comments == ()

        assert await engine.retry_load()
        view = engine.view()
        assert view.error is None
        assert len(view.comments) == 3

    @pytest.mark.asyncio
    async def test_retry_after_failed_next_page_loads_next_page(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        seed_thread(store, content_id, 25)
        await engine.refresh()
        store.fail_next("list_comments", TransientError("timeout"))

        await engine.load_more()
        assert engine.view().error == "timeout"
        assert len(engine.view().comments) == 20

        await engine.retry_load()

        view = engine.view()
        assert view.error is None
        assert len(view.comments) == 25
        assert view.cursor.page == 2

    @pytest.mark.asyncio
    async def test_clear_error_dismisses_without_reading(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        store.fail_next("list_comments", TransientError("down"))
        await engine.refresh()

        engine.clear_error(
            OperationKey(entity_id=content_id, kind=OperationKind.REFRESH)
        )

        assert engine.view().error is None
        assert store.count("list_comments") == 1
