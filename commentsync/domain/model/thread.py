"""Thread cache.

In-memory view of one comment thread: the loaded top-level comments, the
reply pages loaded per parent, paging state and the bookkeeping the sync
engine needs for its in-flight guard and sticky read errors.

The cache has exactly one writer, the sync engine. Every public method that
changes state runs without awaiting, so on the event loop each call commits
atomically from a reader's point of view; `version` increases once per
commit.

Counts read from the store leave out optimistic creates and deletes still
in flight. Each read total gets the pending offsets added back, so a
rollback subtracts exactly what its mutation added, whichever reads landed
in between.
"""

from collections.abc import Iterable
from uuid import UUID

from commentsync.domain.model.comment import Comment
from commentsync.domain.model.page import CommentPage, PageCursor
from commentsync.domain.model.snapshot import (
    CacheSnapshot,
    EntrySnapshot,
    SubtreeSnapshot,
)
from commentsync.domain.value import CommentId, OperationKey, OperationKind


class ThreadCache:
    """Partially loaded, two-level comment thread.

    Attributes:
        top_level: Top-level comments, newest first
        replies_by_parent: Loaded replies per top-level comment, oldest first.
            A missing key means the replies were never loaded (or were
            collapsed), not that there are none.
        cursor: Paging state of the top-level list
        reply_cursors: Paging state per loaded reply collection
        in_flight: Pending operations mapped to the parent they affect
        errors: Sticky read errors keyed by the failed operation
        pending: Ids of optimistic creates awaiting confirmation
        total_offset: Change to the top-level total made by optimistic
            creates and deletes the store has not answered yet
        reply_count_offsets: The same, per parent reply count
        generation: Increased whenever a refresh rebuilds the thread
        version: Increased on every commit
    """

    def __init__(self) -> None:
        self.top_level: list[Comment] = []
        self.replies_by_parent: dict[CommentId, list[Comment]] = {}
        self.cursor = PageCursor()
        self.reply_cursors: dict[CommentId, PageCursor] = {}
        self.in_flight: dict[OperationKey, CommentId | None] = {}
        self.errors: dict[OperationKey, str] = {}
        self.pending: set[CommentId] = set()
        self.total_offset = 0
        self.reply_count_offsets: dict[CommentId, int] = {}
        self.generation = 0
        self.version = 0

    # Lookups

    @property
    def total(self) -> int:
        return self.cursor.total

    @property
    def has_loaded_page(self) -> bool:
        return self.cursor.page > 0

    def has_loaded_replies(self, parent_id: CommentId) -> bool:
        """Whether a reply page for this parent is currently held."""
        return parent_id in self.replies_by_parent

    def replies(self, parent_id: CommentId) -> list[Comment]:
        return self.replies_by_parent.get(parent_id, [])

    def find_top_level(self, comment_id: CommentId) -> Comment | None:
        index = self._top_level_index(comment_id)
        return None if index is None else self.top_level[index]

    def find(self, comment_id: CommentId) -> Comment | None:
        """Find a comment anywhere in the cache."""
        comment = self.find_top_level(comment_id)
        if comment is not None:
            return comment
        for replies in self.replies_by_parent.values():
            for reply in replies:
                if reply.id == comment_id:
                    return reply
        return None

    def _top_level_index(self, comment_id: CommentId) -> int | None:
        for index, comment in enumerate(self.top_level):
            if comment.id == comment_id:
                return index
        return None

    def _reply_index(self, parent_id: CommentId, comment_id: CommentId) -> int | None:
        for index, reply in enumerate(self.replies_by_parent.get(parent_id, [])):
            if reply.id == comment_id:
                return index
        return None

    def _sequence_of(self, comment: Comment) -> list[Comment] | None:
        if comment.parent_id is None:
            return self.top_level
        return self.replies_by_parent.get(comment.parent_id)

    def _commit(self) -> None:
        self.version += 1

    # In-flight guard

    def is_in_flight(self, key: OperationKey) -> bool:
        return key in self.in_flight

    def mutation_in_flight(self, entity_id: UUID) -> OperationKind | None:
        """Kind of the mutation pending on an entity, if any."""
        for key in self.in_flight:
            if key.entity_id == entity_id and key.kind.is_mutation:
                return key.kind
        return None

    def has_reply_mutation_in_flight(self, parent_id: CommentId) -> bool:
        return any(
            owner == parent_id and key.kind.is_mutation
            for key, owner in self.in_flight.items()
        )

    def start(self, key: OperationKey, parent_id: CommentId | None = None) -> None:
        """Mark an operation pending, replacing any sticky error it left."""
        self.in_flight[key] = parent_id
        self.errors.pop(key, None)
        self._commit()

    def finish(self, key: OperationKey) -> None:
        self.in_flight.pop(key, None)
        self._commit()

    # Sticky read errors

    def set_error(self, key: OperationKey, message: str) -> None:
        self.errors[key] = message
        self._commit()

    def clear_error(self, key: OperationKey | None = None) -> None:
        if key is None:
            self.errors.clear()
        else:
            self.errors.pop(key, None)
        self._commit()

    # Confirmed reads

    def replace_top_level(self, result: CommentPage) -> None:
        """Start the thread over from a freshly read first page."""
        self.top_level = _unique(self._with_offsets(result.comments))
        self.replies_by_parent.clear()
        self.reply_cursors.clear()
        self.cursor = PageCursor(
            page=1, has_more=result.has_more, total=self._offset_total(result)
        )
        self.errors = {
            key: message
            for key, message in self.errors.items()
            if key.kind is not OperationKind.LOAD_REPLIES
        }
        self.generation += 1
        self._commit()

    def append_top_level(self, result: CommentPage) -> int:
        """Append the next page, skipping ids already held.

        Returns:
            Number of comments added
        """
        added = _merge(self.top_level, self._with_offsets(result.comments))
        self.cursor = self.cursor.advance(result).model_copy(
            update={"total": self._offset_total(result)}
        )
        self._commit()
        return added

    def merge_replies(self, parent_id: CommentId, result: CommentPage) -> int:
        """Append a reply page under a cached parent.

        The store's total, plus pending reply creates and deletes, becomes
        the parent's reply count.

        Returns:
            Number of replies added
        """
        replies = self.replies_by_parent.setdefault(parent_id, [])
        added = _merge(replies, [r for r in result.comments if r.parent_id == parent_id])
        cursor = self.reply_cursors.get(parent_id, PageCursor())
        self.reply_cursors[parent_id] = cursor.advance(result)
        offset = self.reply_count_offsets.get(parent_id, 0)
        self._update(parent_id, reply_count=max(0, result.total + offset))
        self._commit()
        return added

    def collapse_replies(self, parent_id: CommentId) -> None:
        self.replies_by_parent.pop(parent_id, None)
        self.reply_cursors.pop(parent_id, None)
        self._commit()

    # Optimistic mutations. Each applies the change and returns what is
    # needed to undo it.

    def apply_create(self, comment: Comment) -> CacheSnapshot:
        """Insert an optimistic comment and bump the matching counter."""
        entry = EntrySnapshot(comment_id=comment.id, parent_id=comment.parent_id)
        if comment.parent_id is None:
            self.top_level.insert(0, comment)
            self._shift_total(1)
            snapshot = CacheSnapshot(
                generation=self.generation, entries=(entry,), total_delta=1
            )
        else:
            if self.has_loaded_replies(comment.parent_id):
                self.replies_by_parent[comment.parent_id].append(comment)
            self._shift_reply_count(comment.parent_id, 1)
            snapshot = CacheSnapshot(
                generation=self.generation,
                entries=(entry,),
                reply_count_deltas=((comment.parent_id, 1),),
            )
        self.pending.add(comment.id)
        self._track(snapshot, 1)
        self._commit()
        return snapshot

    def apply_update(self, comment_id: CommentId, **changes) -> CacheSnapshot:
        """Change fields of a cached comment in place."""
        before = self.find(comment_id)
        if before is None:
            raise KeyError(comment_id)
        self._update(comment_id, **changes)
        self._commit()
        return CacheSnapshot(
            generation=self.generation,
            entries=(
                EntrySnapshot(
                    comment_id=comment_id,
                    parent_id=before.parent_id,
                    before=before,
                    fields=tuple(changes),
                ),
            ),
        )

    def apply_delete(self, comment_id: CommentId) -> CacheSnapshot:
        """Remove a comment; a top-level comment takes its replies with it."""
        comment = self.find(comment_id)
        if comment is None:
            raise KeyError(comment_id)
        sequence = self._sequence_of(comment)
        position = next(i for i, c in enumerate(sequence) if c.id == comment_id)
        entry = EntrySnapshot(
            comment_id=comment_id,
            parent_id=comment.parent_id,
            before=comment,
            position=position,
        )
        del sequence[position]
        if comment.parent_id is None:
            replies = self.replies_by_parent.pop(comment_id, None)
            cursor = self.reply_cursors.pop(comment_id, None)
            self._shift_total(-1)
            snapshot = CacheSnapshot(
                generation=self.generation,
                entries=(entry,),
                subtrees=(
                    SubtreeSnapshot(
                        parent_id=comment_id,
                        replies=None if replies is None else tuple(replies),
                        cursor=cursor,
                    ),
                ),
                total_delta=-1,
            )
        else:
            self._shift_reply_count(comment.parent_id, -1)
            snapshot = CacheSnapshot(
                generation=self.generation,
                entries=(entry,),
                reply_count_deltas=((comment.parent_id, -1),),
            )
        self._track(snapshot, 1)
        self._commit()
        return snapshot

    # Reconciliation

    def confirm_create(self, snapshot: CacheSnapshot, confirmed: Comment) -> bool:
        """Swap an optimistic comment for the stored one.

        If a read replaced the collection the optimistic comment was in, the
        stored comment is merged into what is loaded now instead. If a read
        already delivered the stored comment, that read's total counts it and
        the optimistic increment is taken back.

        Args:
            snapshot: Snapshot returned by apply_create
            confirmed: Comment as stored

        Returns:
            False if no loaded collection holds the stored comment
        """
        temp_id = snapshot.entries[0].comment_id
        self.pending.discard(temp_id)
        self._track(snapshot, -1)
        existing = self.find(temp_id)
        if self.find(confirmed.id) is not None:
            if existing is not None:
                self._discard(temp_id, existing.parent_id)
            self._shift_counters(snapshot, -1)
            placed = True
        elif existing is not None:
            sequence = self._sequence_of(existing)
            index = next(i for i, c in enumerate(sequence) if c.id == temp_id)
            sequence[index] = confirmed
            placed = True
        else:
            placed = self._place(confirmed)
        self._commit()
        return placed

    def confirm_delete(self, snapshot: CacheSnapshot) -> None:
        """Settle a delete the store accepted.

        A read that completed meanwhile may have brought the comment back;
        it is removed again without touching the counters, which already
        account for it.
        """
        self._track(snapshot, -1)
        for entry in snapshot.entries:
            if self.find(entry.comment_id) is None:
                continue
            self._discard(entry.comment_id, entry.parent_id)
            if entry.parent_id is None:
                self.replies_by_parent.pop(entry.comment_id, None)
                self.reply_cursors.pop(entry.comment_id, None)
        self._commit()

    def confirm_update(self, comment_id: CommentId, **fields) -> Comment | None:
        """Adopt store-confirmed field values. No-op if the comment is gone."""
        if self.find(comment_id) is None:
            return None
        updated = self._update(comment_id, **fields)
        self._commit()
        return updated

    def restore(self, snapshot: CacheSnapshot) -> bool:
        """Undo an optimistic mutation.

        Only the entities and counters the mutation touched are reverted.
        Counters are always reverted. Entities are not put back when the
        thread was rebuilt by a refresh after the snapshot was taken, since
        the refresh already replaced them with stored state.

        Returns:
            False if the snapshot was stale and only counters were reverted
        """
        for entry in snapshot.entries:
            self.pending.discard(entry.comment_id)
        self._track(snapshot, -1)
        self._shift_counters(snapshot, -1)
        if snapshot.generation != self.generation:
            self._commit()
            return False

        for entry in snapshot.entries:
            self._restore_entry(entry)
        for subtree in snapshot.subtrees:
            if (
                subtree.replies is not None
                and self.find_top_level(subtree.parent_id) is not None
                and not self.has_loaded_replies(subtree.parent_id)
            ):
                self.replies_by_parent[subtree.parent_id] = list(subtree.replies)
                if subtree.cursor is not None:
                    self.reply_cursors[subtree.parent_id] = subtree.cursor
        self._commit()
        return True

    def _restore_entry(self, entry: EntrySnapshot) -> None:
        if entry.before is None:
            self._discard(entry.comment_id, entry.parent_id)
            return
        if entry.fields is not None:
            self._update(
                entry.comment_id,
                **{name: getattr(entry.before, name) for name in entry.fields},
            )
            return
        if self.find(entry.comment_id) is not None:
            return
        if entry.parent_id is None:
            sequence = self.top_level
        elif (
            self.find_top_level(entry.parent_id) is not None
            and self.has_loaded_replies(entry.parent_id)
        ):
            sequence = self.replies_by_parent[entry.parent_id]
        else:
            return
        position = min(entry.position or 0, len(sequence))
        sequence.insert(position, entry.before)

    def evict(self, comment_id: CommentId) -> bool:
        """Drop a comment the store no longer has, with its counters.

        Returns:
            False if the comment was not cached
        """
        comment = self.find(comment_id)
        if comment is None:
            return False
        self._discard(comment_id, comment.parent_id)
        if comment.parent_id is None:
            self.replies_by_parent.pop(comment_id, None)
            self.reply_cursors.pop(comment_id, None)
            self._shift_total(-1)
        else:
            self._shift_reply_count(comment.parent_id, -1)
        self._commit()
        return True

    # Helpers without commit

    def _track(self, snapshot: CacheSnapshot, sign: int) -> None:
        """Add (sign=1) or settle (sign=-1) a mutation's pending offsets."""
        self.total_offset += sign * snapshot.total_delta
        for parent_id, delta in snapshot.reply_count_deltas:
            offset = self.reply_count_offsets.get(parent_id, 0) + sign * delta
            if offset:
                self.reply_count_offsets[parent_id] = offset
            else:
                self.reply_count_offsets.pop(parent_id, None)

    def _shift_counters(self, snapshot: CacheSnapshot, sign: int) -> None:
        if snapshot.total_delta:
            self._shift_total(sign * snapshot.total_delta)
        for parent_id, delta in snapshot.reply_count_deltas:
            self._shift_reply_count(parent_id, sign * delta)

    def _offset_total(self, result: CommentPage) -> int:
        return max(0, result.total + self.total_offset)

    def _with_offsets(self, comments: Iterable[Comment]) -> list[Comment]:
        """Read comments with pending reply creates and deletes counted."""
        adjusted = []
        for comment in comments:
            offset = self.reply_count_offsets.get(comment.id, 0)
            if offset:
                comment = comment.model_copy(
                    update={"reply_count": max(0, comment.reply_count + offset)}
                )
            adjusted.append(comment)
        return adjusted

    def _place(self, comment: Comment) -> bool:
        """Merge a stored comment into the collection it belongs to, if loaded."""
        if comment.parent_id is None:
            self.top_level.insert(0, comment)
            return True
        if not self.has_loaded_replies(comment.parent_id):
            return False
        self.replies_by_parent[comment.parent_id].append(comment)
        return True

    def _discard(self, comment_id: CommentId, parent_id: CommentId | None) -> None:
        if parent_id is None:
            index = self._top_level_index(comment_id)
            if index is not None:
                del self.top_level[index]
        else:
            index = self._reply_index(parent_id, comment_id)
            if index is not None:
                del self.replies_by_parent[parent_id][index]

    def _update(self, comment_id: CommentId, **changes) -> Comment | None:
        index = self._top_level_index(comment_id)
        if index is not None:
            updated = self.top_level[index].model_copy(update=changes)
            self.top_level[index] = updated
            return updated
        for parent_id, replies in self.replies_by_parent.items():
            index = self._reply_index(parent_id, comment_id)
            if index is not None:
                updated = replies[index].model_copy(update=changes)
                replies[index] = updated
                return updated
        return None

    def _shift_total(self, delta: int) -> None:
        self.cursor = self.cursor.model_copy(
            update={"total": max(0, self.cursor.total + delta)}
        )

    def _shift_reply_count(self, parent_id: CommentId, delta: int) -> None:
        parent = self.find_top_level(parent_id)
        if parent is not None:
            self._update(parent_id, reply_count=max(0, parent.reply_count + delta))

    # Diagnostics

    def invariant_violations(self) -> list[str]:
        """Describe every broken thread invariant (empty when consistent)."""
        problems: list[str] = []
        problems.extend(_duplicates("top_level", self.top_level))
        top_ids = {c.id for c in self.top_level}
        for comment in self.top_level:
            if comment.parent_id is not None:
                problems.append(f"reply {comment.id} listed as top-level")
        for parent_id, replies in self.replies_by_parent.items():
            if parent_id not in top_ids:
                problems.append(f"replies held for unknown parent {parent_id}")
            problems.extend(_duplicates(f"replies[{parent_id}]", replies))
            for reply in replies:
                if reply.parent_id != parent_id:
                    problems.append(
                        f"reply {reply.id} has parent {reply.parent_id}, "
                        f"held under {parent_id}"
                    )
        for parent_id in self.reply_cursors:
            if parent_id not in self.replies_by_parent:
                problems.append(f"reply cursor without replies for {parent_id}")
        return problems


def _unique(comments: Iterable[Comment]) -> list[Comment]:
    result: list[Comment] = []
    _merge(result, comments)
    return result


def _merge(target: list[Comment], incoming: Iterable[Comment]) -> int:
    seen = {c.id for c in target}
    added = 0
    for comment in incoming:
        if comment.id in seen:
            continue
        seen.add(comment.id)
        target.append(comment)
        added += 1
    return added


def _duplicates(label: str, comments: list[Comment]) -> list[str]:
    seen: set[CommentId] = set()
    problems = []
    for comment in comments:
        if comment.id in seen:
            problems.append(f"duplicate id {comment.id} in {label}")
        seen.add(comment.id)
    return problems
