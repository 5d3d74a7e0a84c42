"""Unit tests for ThreadSyncEngine two-step delete."""

import asyncio
from uuid import uuid4

import pytest

from commentsync.domain.error import (
    ConfirmationError,
    NotAuthorizedError,
    NotFoundError,
    OperationInFlightError,
)
from commentsync.domain.value import ContentId
from tests.conftest import open_thread, seed_replies, seed_thread
from tests.di import TEST_VIEWER
from tests.harness import create_env_fixture

# Unit test fixture - everything mocked
unit_env = create_env_fixture()


class TestDeleteTopLevel:
    """Tests for deleting top-level comments."""

    @pytest.mark.asyncio
    async def test_delete_removes_comment_and_reply_collection(self, unit_env):
        """The replies entry goes away entirely, not just emptied."""
        # Arrange
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        other, mine = seed_thread(store, content_id, 1) + seed_thread(
            store, content_id, 1, author=TEST_VIEWER
        )
        seed_replies(store, mine, 2)
        await engine.refresh()
        await engine.toggle_replies(mine.id)
        assert engine.view().total == 2

        # Act
        confirmation = engine.request_delete(mine.id)
        await engine.confirm_delete(confirmation)

        # Assert
        view = engine.view()
        assert view.find(mine.id) is None
        assert mine.id not in view.replies
        assert mine.id not in view.reply_cursors
        assert [c.id for c in view.comments] == [other.id]
        assert view.total == 1
        assert store.get(mine.id) is None

    @pytest.mark.asyncio
    async def test_rejected_delete_restores_comment_and_replies(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        comments = seed_thread(store, content_id, 3)
        middle = comments[1]
        replies = seed_replies(store, middle, 2)
        await engine.refresh()
        await engine.toggle_replies(middle.id)
        before = engine.view()

        confirmation = engine.request_delete(middle.id)
        with pytest.raises(NotAuthorizedError):
            await engine.confirm_delete(confirmation)

        view = engine.view()
        assert view.comments == before.comments
        assert [r.id for r in view.replies_for(middle.id)] == [r.id for r in replies]
        assert view.total == 3
        assert view.version > before.version

    @pytest.mark.asyncio
    async def test_comment_shown_as_pending_until_confirmed(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        mine = seed_thread(store, content_id, 1, author=TEST_VIEWER)[0]
        await engine.refresh()

        confirmation = engine.request_delete(mine.id)
        assert engine.view().find(mine.id) is not None

        store.hold()
        task = asyncio.create_task(engine.confirm_delete(confirmation))
        await asyncio.sleep(0)
        assert engine.view().find(mine.id) is None

        store.release()
        await task
        assert engine.view().total == 0

    @pytest.mark.asyncio
    async def test_parent_delete_rejected_while_reply_mutation_pending(
        self, unit_env
    ):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        parent = seed_thread(store, content_id, 1, author=TEST_VIEWER)[0]
        reply = seed_replies(store, parent, 1)[0]
        await engine.refresh()
        await engine.toggle_replies(parent.id)

        store.hold()
        task = asyncio.create_task(engine.toggle_like(reply.id))
        await asyncio.sleep(0)

        with pytest.raises(OperationInFlightError):
            await engine.confirm_delete(engine.request_delete(parent.id))
        assert engine.view().find(parent.id) is not None

        store.release()
        await task

    @pytest.mark.asyncio
    async def test_already_deleted_remotely_is_evicted(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        mine = seed_thread(store, content_id, 1, author=TEST_VIEWER)[0]
        await engine.refresh()
        store.fail_next("delete_comment", NotFoundError("comment", str(mine.id)))

        with pytest.raises(NotFoundError):
            await engine.confirm_delete(engine.request_delete(mine.id))

        view = engine.view()
        assert view.find(mine.id) is None
        assert view.total == 0


class TestDeleteReply:
    """Tests for deleting replies."""

    @pytest.mark.asyncio
    async def test_delete_reply_decrements_parent(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        parent = seed_thread(store, content_id, 1)[0]
        theirs = seed_replies(store, parent, 1)[0]
        mine = seed_replies(store, parent, 1, author=TEST_VIEWER)[0]
        await engine.refresh()
        await engine.toggle_replies(parent.id)
        assert engine.get_comment(parent.id).reply_count == 2

        confirmation = engine.request_delete(mine.id)
        assert confirmation.parent_id == parent.id
        await engine.confirm_delete(confirmation)

        assert [r.id for r in engine.view().replies_for(parent.id)] == [theirs.id]
        assert engine.get_comment(parent.id).reply_count == 1
        assert engine.view().total == 1


class TestDeleteConfirmation:
    """Tests for the confirmation token lifecycle."""

    @pytest.mark.asyncio
    async def test_cancelled_token_cannot_be_redeemed(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        mine = seed_thread(store, content_id, 1, author=TEST_VIEWER)[0]
        await engine.refresh()

        confirmation = engine.request_delete(mine.id)
        engine.cancel_delete(confirmation)

        with pytest.raises(ConfirmationError):
            await engine.confirm_delete(confirmation)
        assert engine.view().find(mine.id) is not None
        assert store.count("delete_comment") == 0

    @pytest.mark.asyncio
    async def test_token_is_single_use(self, unit_env):
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        mine = seed_thread(store, content_id, 1, author=TEST_VIEWER)[0]
        await engine.refresh()

        confirmation = engine.request_delete(mine.id)
        await engine.confirm_delete(confirmation.token)

        with pytest.raises(ConfirmationError):
            await engine.confirm_delete(confirmation.token)

    @pytest.mark.asyncio
    async def test_token_survives_rejection_while_pending(self, unit_env):
        """A delete refused for a pending like can be confirmed later."""
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        mine = seed_thread(store, content_id, 1, author=TEST_VIEWER)[0]
        await engine.refresh()
        confirmation = engine.request_delete(mine.id)

        store.hold()
        like = asyncio.create_task(engine.toggle_like(mine.id))
        await asyncio.sleep(0)
        with pytest.raises(OperationInFlightError):
            await engine.confirm_delete(confirmation)
        store.release()
        await like

        await engine.confirm_delete(confirmation)
        assert engine.view().find(mine.id) is None

    @pytest.mark.asyncio
    async def test_request_for_unknown_comment_raises(self, unit_env):
        engine, _ = await open_thread(unit_env, ContentId(uuid4()))

        with pytest.raises(NotFoundError):
            engine.request_delete(uuid4())


class TestDeleteDuringReads:
    """Tests for deletes whose reply arrives after a read of the same thread."""

    @pytest.mark.asyncio
    async def test_rejected_delete_after_next_page_restores_total(self, unit_env):
        # Arrange
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        theirs = seed_thread(store, content_id, 25)[0]
        await engine.refresh()
        confirmation = engine.request_delete(theirs.id)

        # Act
        store.hold()
        read = asyncio.create_task(engine.load_more())
        delete = asyncio.create_task(engine.confirm_delete(confirmation))
        await asyncio.sleep(0)
        store.release()
        await read
        with pytest.raises(NotAuthorizedError):
            await delete

        # Assert
        view = engine.view()
        assert view.total == 25
        assert view.comments[0].id == theirs.id
        assert len(view.comments) == 25

    @pytest.mark.asyncio
    async def test_delete_confirmed_after_refresh_stays_deleted(self, unit_env):
        """A refresh answered before the delete does not bring the comment back."""
        content_id = ContentId(uuid4())
        engine, store = await open_thread(unit_env, content_id)
        mine = seed_thread(store, content_id, 3, author=TEST_VIEWER)[0]
        await engine.refresh()
        confirmation = engine.request_delete(mine.id)

        store.hold()
        read = asyncio.create_task(engine.refresh())
        delete = asyncio.create_task(engine.confirm_delete(confirmation))
        await asyncio.sleep(0)
        store.release()
        await read
        await delete

        view = engine.view()
        assert view.find(mine.id) is None
        assert view.total == 2
