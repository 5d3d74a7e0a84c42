"""Thread synchronization engine.

Keeps a partially loaded comment thread consistent with the remote store
while reads (paging, reply expansion) and optimistic writes overlap.

Every optimistic mutation runs in three phases:

1. Apply: the post-mutation state is written to the cache at once and a
   snapshot of everything touched is kept.
2. Issue: the store call runs through the mutation executor.
3. Reconcile: on success the store's values replace the speculative ones;
   on failure the snapshot is restored and the error is re-raised.

A second mutation on an entity that already has one pending is rejected
rather than queued.
"""

from uuid import UUID, uuid4

import logfire

from commentsync.config import ThreadSettings
from commentsync.domain.error import (
    ConfirmationError,
    DomainError,
    NotFoundError,
    OperationInFlightError,
    ValidationError,
)
from commentsync.domain.model.comment import AuthorRef, Comment, utcnow
from commentsync.domain.model.page import DeleteConfirmation, LikeState
from commentsync.domain.model.snapshot import CacheSnapshot
from commentsync.domain.model.thread import ThreadCache
from commentsync.domain.model.view import ThreadView
from commentsync.domain.value import (
    CommentId,
    ContentId,
    OperationKey,
    OperationKind,
    ReportReason,
    UserId,
)

from .base import Service
from .mutation_executor import MutationExecutor


class ThreadSyncEngine(Service):
    """Synchronizes one viewer's view of one content item's comment thread."""

    def __init__(
        self,
        content_id: ContentId,
        viewer: AuthorRef,
        executor: MutationExecutor,
        settings: ThreadSettings,
        cache: ThreadCache | None = None,
    ) -> None:
        """Initialize sync engine.

        Args:
            content_id: Content item whose thread is synchronized
            viewer: Identity optimistic comments are attributed to
            executor: Mutation executor for store calls
            settings: Paging and validation settings
            cache: Cache to own (a fresh one by default)
        """
        self.content_id = content_id
        self.viewer = viewer
        self.executor = executor
        self.settings = settings
        self.cache = cache if cache is not None else ThreadCache()
        self._confirmations: dict[str, DeleteConfirmation] = {}

    # Read access

    def view(self) -> ThreadView:
        """Snapshot of the thread for rendering."""
        return ThreadView.of(self.content_id, self.cache)

    def get_comment(self, comment_id: CommentId) -> Comment | None:
        return self.cache.find(comment_id)

    def has_loaded_replies(self, parent_id: CommentId) -> bool:
        return self.cache.has_loaded_replies(parent_id)

    def _thread_key(self, kind: OperationKind) -> OperationKey:
        return OperationKey(entity_id=self.content_id, kind=kind)

    # Pagination

    async def load_page(self, refresh: bool = False) -> bool:
        """Load the first page (refresh) or the next page of comments.

        A refresh rebuilds the thread from the first page and drops every
        loaded reply collection. Loading the next page is skipped while any
        page read is pending or when no more pages exist.

        Args:
            refresh: Start over from the first page

        Returns:
            True if a read was issued, False if it was suppressed
        """
        refresh_key = self._thread_key(OperationKind.REFRESH)
        more_key = self._thread_key(OperationKind.LOAD_MORE)
        if refresh:
            if self.cache.is_in_flight(refresh_key):
                return False
            key, page = refresh_key, 0
        else:
            if self.cache.is_in_flight(refresh_key) or self.cache.is_in_flight(
                more_key
            ):
                return False
            if not self.cache.cursor.has_more:
                return False
            key, page = more_key, self.cache.cursor.page

        generation = self.cache.generation
        with logfire.span(
            "sync_engine.load_page",
            content_id=str(self.content_id),
            refresh=refresh,
            page=page,
        ):
            self.cache.start(key)
            try:
                result = await self.executor.list_comments(
                    self.content_id, page, self.settings.page_size
                )
            except DomainError as e:
                self._record_read_failure(key, e)
                return True
            finally:
                self.cache.finish(key)

            if not refresh and self.cache.generation != generation:
                logfire.info(
                    "Discarding page read before refresh",
                    content_id=str(self.content_id),
                    page=page,
                )
                return True
            self.cache.errors.pop(refresh_key, None)
            self.cache.errors.pop(more_key, None)
            if refresh:
                self.cache.replace_top_level(result)
            else:
                self.cache.append_top_level(result)
            return True

    async def refresh(self) -> bool:
        return await self.load_page(refresh=True)

    async def load_more(self) -> bool:
        return await self.load_page(refresh=False)

    async def retry_load(self) -> bool:
        """Re-attempt the thread page read that failed.

        Retries the next page if only a next-page read failed after the
        thread was loaded, otherwise starts over with a refresh.
        """
        refresh_key = self._thread_key(OperationKind.REFRESH)
        more_key = self._thread_key(OperationKind.LOAD_MORE)
        load_more = (
            more_key in self.cache.errors
            and refresh_key not in self.cache.errors
            and self.cache.has_loaded_page
        )
        self.cache.clear_error(refresh_key)
        self.cache.clear_error(more_key)
        if load_more:
            return await self.load_page(refresh=False)
        return await self.load_page(refresh=True)

    def clear_error(self, key: OperationKey | None = None) -> None:
        """Dismiss one sticky read error, or all of them."""
        self.cache.clear_error(key)

    def _record_read_failure(self, key: OperationKey, error: DomainError) -> None:
        self.cache.set_error(key, str(error))
        logfire.warn(
            "Read failed",
            operation=key.kind.value,
            entity_id=str(key.entity_id),
            error_type=type(error).__name__,
            error=str(error),
        )

    # Lazy reply expansion

    async def toggle_replies(self, parent_id: CommentId) -> bool:
        """Expand a comment's replies, or collapse them if loaded.

        Expanding loads the first reply page. Collapsing forgets the loaded
        replies without a request.

        Returns:
            True if a read was issued
        """
        if self.cache.has_loaded_replies(parent_id):
            self.cache.collapse_replies(parent_id)
            logfire.info("Replies collapsed", parent_id=str(parent_id))
            return False
        return await self._load_replies(parent_id, page=0)

    async def load_more_replies(self, parent_id: CommentId) -> bool:
        """Append the next reply page of an expanded comment.

        Returns:
            True if a read was issued
        """
        cursor = self.cache.reply_cursors.get(parent_id)
        if cursor is None or not cursor.has_more:
            return False
        return await self._load_replies(parent_id, page=cursor.page)

    async def _load_replies(self, parent_id: CommentId, page: int) -> bool:
        key = OperationKey(entity_id=parent_id, kind=OperationKind.LOAD_REPLIES)
        if self.cache.is_in_flight(key):
            return False
        parent = self.cache.find(parent_id)
        if parent is None:
            raise NotFoundError("comment", str(parent_id))
        if parent.is_reply:
            raise ValidationError("Replies do not have replies")

        generation = self.cache.generation
        with logfire.span(
            "sync_engine.load_replies", parent_id=str(parent_id), page=page
        ):
            self.cache.start(key, parent_id)
            try:
                result = await self.executor.list_replies(
                    parent_id, page, self.settings.reply_page_size
                )
            except DomainError as e:
                self._record_read_failure(key, e)
                if isinstance(e, NotFoundError):
                    self._evict(e)
                return True
            finally:
                self.cache.finish(key)

            stale = (
                self.cache.generation != generation
                or self.cache.find_top_level(parent_id) is None
                or (page > 0 and not self.cache.has_loaded_replies(parent_id))
            )
            if stale:
                logfire.info(
                    "Discarding stale reply page", parent_id=str(parent_id), page=page
                )
                return True
            self.cache.merge_replies(parent_id, result)
            return True

    # Optimistic mutations

    def _validate_text(self, text: str) -> str:
        cleaned = text.strip()
        if not cleaned:
            raise ValidationError("Comment text cannot be empty")
        if len(cleaned) > self.settings.max_text_length:
            raise ValidationError(
                f"Comment text exceeds {self.settings.max_text_length} characters"
            )
        return cleaned

    def _require(self, comment_id: CommentId) -> Comment:
        comment = self.cache.find(comment_id)
        if comment is None:
            raise NotFoundError("comment", str(comment_id))
        return comment

    def _guard(self, comment_id: CommentId) -> None:
        """Reject a mutation while the entity has one pending."""
        if comment_id in self.cache.pending:
            raise OperationInFlightError(comment_id, OperationKind.CREATE.value)
        kind = self.cache.mutation_in_flight(comment_id)
        if kind is not None:
            logfire.warn(
                "Mutation rejected while another is pending",
                comment_id=str(comment_id),
                pending=kind.value,
            )
            raise OperationInFlightError(comment_id, kind.value)

    def _roll_back(self, snapshot: CacheSnapshot, error: DomainError) -> None:
        restored = self.cache.restore(snapshot)
        if isinstance(error, NotFoundError):
            self._evict(error)
        logfire.warn(
            "Optimistic mutation rolled back",
            comment_ids=[str(cid) for cid in snapshot.comment_ids],
            restored=restored,
            error_type=type(error).__name__,
            error=str(error),
        )
        self._check_invariants()

    def _evict(self, error: NotFoundError) -> None:
        """Drop the entity a not-found error names; it is gone remotely."""
        try:
            comment_id = CommentId(UUID(error.identifier))
        except ValueError:
            return
        if self.cache.evict(comment_id):
            logfire.info("Evicted comment missing from store", comment_id=str(comment_id))

    def _check_invariants(self) -> None:
        problems = self.cache.invariant_violations()
        if problems:
            logfire.error(
                "Thread cache invariants violated",
                content_id=str(self.content_id),
                problems=problems,
            )

    async def create_comment(
        self, text: str, parent_id: CommentId | None = None
    ) -> Comment:
        """Post a comment, or a reply to a top-level comment.

        The comment is shown immediately and replaced by the stored one when
        the store confirms it.

        Args:
            text: Comment text (surrounding whitespace is dropped)
            parent_id: Top-level comment replied to (None for top-level)

        Returns:
            Stored comment

        Raises:
            ValidationError: If text is empty, too long, or replies to a reply
            NotFoundError: If the parent comment is not loaded
            OperationInFlightError: If the parent is itself still pending
        """
        cleaned = self._validate_text(text)
        if parent_id is not None:
            parent = self._require(parent_id)
            if parent.is_reply:
                raise ValidationError("Replies cannot be nested")
            if parent_id in self.cache.pending:
                raise OperationInFlightError(parent_id, OperationKind.CREATE.value)

        now = utcnow()
        optimistic = Comment(
            id=CommentId(uuid4()),
            content_id=self.content_id,
            author=self.viewer,
            text=cleaned,
            parent_id=parent_id,
            created_at=now,
            updated_at=now,
        )
        key = OperationKey(entity_id=optimistic.id, kind=OperationKind.CREATE)
        with logfire.span(
            "sync_engine.create_comment",
            content_id=str(self.content_id),
            parent_id=str(parent_id) if parent_id else None,
        ):
            snapshot = self.cache.apply_create(optimistic)
            self.cache.start(key, parent_id)
            try:
                confirmed = await self.executor.create_comment(
                    self.content_id, cleaned, parent_id
                )
            except DomainError as e:
                self._roll_back(snapshot, e)
                raise
            finally:
                self.cache.finish(key)

            if not self.cache.confirm_create(snapshot, confirmed):
                logfire.info(
                    "Created comment not in a loaded collection",
                    comment_id=str(confirmed.id),
                )
            self._check_invariants()
            return confirmed

    async def edit_comment(self, comment_id: CommentId, text: str) -> Comment:
        """Replace a comment's text.

        Submitting the current text again is a no-op.

        Returns:
            The comment as cached after the edit

        Raises:
            ValidationError: If text is empty or too long
            NotFoundError: If the comment is not cached
            OperationInFlightError: If the comment has a mutation pending
        """
        cleaned = self._validate_text(text)
        current = self._require(comment_id)
        if cleaned == current.text:
            return current
        self._guard(comment_id)

        key = OperationKey(entity_id=comment_id, kind=OperationKind.EDIT)
        with logfire.span("sync_engine.edit_comment", comment_id=str(comment_id)):
            snapshot = self.cache.apply_update(
                comment_id, text=cleaned, updated_at=utcnow()
            )
            self.cache.start(key, current.parent_id)
            try:
                confirmed = await self.executor.edit_comment(comment_id, cleaned)
            except DomainError as e:
                self._roll_back(snapshot, e)
                raise
            finally:
                self.cache.finish(key)

            updated = self.cache.confirm_update(
                comment_id, text=confirmed.text, updated_at=confirmed.updated_at
            )
            return updated or confirmed

    def request_delete(self, comment_id: CommentId) -> DeleteConfirmation:
        """First step of deleting a comment.

        Returns:
            Confirmation to pass to confirm_delete

        Raises:
            NotFoundError: If the comment is not cached
        """
        comment = self._require(comment_id)
        confirmation = DeleteConfirmation(
            token=uuid4().hex, comment_id=comment.id, parent_id=comment.parent_id
        )
        self._confirmations[confirmation.token] = confirmation
        return confirmation

    def cancel_delete(self, confirmation: DeleteConfirmation | str) -> None:
        token = confirmation if isinstance(confirmation, str) else confirmation.token
        self._confirmations.pop(token, None)

    async def confirm_delete(self, confirmation: DeleteConfirmation | str) -> None:
        """Second step of deleting a comment.

        A top-level comment disappears together with its loaded replies; a
        reply disappears and its parent's reply count drops by one. Both come
        back unchanged if the store refuses.

        A token rejected because something is still pending stays valid.

        Raises:
            ConfirmationError: If the token is unknown or already used
            NotFoundError: If the comment is no longer cached
            OperationInFlightError: If the comment, or a reply to it, has a
                mutation pending
        """
        token = confirmation if isinstance(confirmation, str) else confirmation.token
        pending = self._confirmations.get(token)
        if pending is None:
            raise ConfirmationError(token)
        comment = self.cache.find(pending.comment_id)
        if comment is None:
            del self._confirmations[token]
            raise NotFoundError("comment", str(pending.comment_id))
        self._guard(comment.id)
        if comment.parent_id is None and self.cache.has_reply_mutation_in_flight(
            comment.id
        ):
            raise OperationInFlightError(comment.id, "reply")
        del self._confirmations[token]

        key = OperationKey(entity_id=comment.id, kind=OperationKind.DELETE)
        with logfire.span(
            "sync_engine.delete_comment",
            comment_id=str(comment.id),
            parent_id=str(comment.parent_id) if comment.parent_id else None,
        ):
            snapshot = self.cache.apply_delete(comment.id)
            self.cache.start(key, comment.parent_id)
            try:
                await self.executor.delete_comment(comment.id)
            except DomainError as e:
                self._roll_back(snapshot, e)
                raise
            finally:
                self.cache.finish(key)

            self.cache.confirm_delete(snapshot)
            self.cache.clear_error(
                OperationKey(entity_id=comment.id, kind=OperationKind.LOAD_REPLIES)
            )
            self._check_invariants()

    async def toggle_like(self, comment_id: CommentId) -> LikeState:
        """Like or unlike a comment.

        Flag and count flip together at once; the store's answer replaces
        both, including likes by other viewers in the meantime.

        Returns:
            Like state confirmed by the store

        Raises:
            NotFoundError: If the comment is not cached
            OperationInFlightError: If the comment has a mutation pending
        """
        comment = self._require(comment_id)
        self._guard(comment_id)

        liked = not comment.liked_by_viewer
        like_count = max(0, comment.like_count + (1 if liked else -1))
        key = OperationKey(entity_id=comment_id, kind=OperationKind.LIKE)
        with logfire.span(
            "sync_engine.toggle_like", comment_id=str(comment_id), liked=liked
        ):
            snapshot = self.cache.apply_update(
                comment_id, liked_by_viewer=liked, like_count=like_count
            )
            self.cache.start(key, comment.parent_id)
            try:
                state = await self.executor.toggle_like(comment_id)
            except DomainError as e:
                self._roll_back(snapshot, e)
                raise
            finally:
                self.cache.finish(key)

            self.cache.confirm_update(
                comment_id, liked_by_viewer=state.liked, like_count=state.like_count
            )
            return state

    async def report_comment(
        self,
        comment_id: CommentId,
        reason: ReportReason = ReportReason.INAPPROPRIATE,
    ) -> None:
        """Report a comment for moderation. Nothing changes locally.

        Raises:
            NotFoundError: If the comment is unknown locally or remotely
            OperationInFlightError: If a report for it is already pending
        """
        self._require(comment_id)
        if comment_id in self.cache.pending:
            raise OperationInFlightError(comment_id, OperationKind.CREATE.value)
        key = OperationKey(entity_id=comment_id, kind=OperationKind.REPORT)
        if self.cache.is_in_flight(key):
            raise OperationInFlightError(comment_id, OperationKind.REPORT.value)

        with logfire.span(
            "sync_engine.report_comment",
            comment_id=str(comment_id),
            reason=reason.value,
        ):
            self.cache.start(key)
            try:
                await self.executor.report_comment(comment_id, reason)
            except NotFoundError as e:
                self._evict(e)
                raise
            finally:
                self.cache.finish(key)


class ThreadSyncEngineFactory(Service):
    """Hands out one sync engine per (content item, viewer) pair."""

    def __init__(self, executor: MutationExecutor, settings: ThreadSettings) -> None:
        """Initialize engine factory.

        Args:
            executor: Mutation executor shared by all engines
            settings: Thread settings shared by all engines
        """
        self.executor = executor
        self.settings = settings
        self._engines: dict[tuple[ContentId, UserId], ThreadSyncEngine] = {}

    def for_thread(self, content_id: ContentId, viewer: AuthorRef) -> ThreadSyncEngine:
        """Get the engine for a thread, creating it on first use."""
        key = (content_id, viewer.id)
        engine = self._engines.get(key)
        if engine is None:
            engine = ThreadSyncEngine(
                content_id=content_id,
                viewer=viewer,
                executor=self.executor,
                settings=self.settings,
            )
            self._engines[key] = engine
            logfire.info(
                "Thread engine created",
                content_id=str(content_id),
                viewer_id=str(viewer.id),
            )
        return engine

    def discard(self, content_id: ContentId, viewer_id: UserId) -> None:
        self._engines.pop((content_id, viewer_id), None)
