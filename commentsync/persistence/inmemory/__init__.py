"""In-memory store implementations for testing."""

from .comment_store import InMemoryCommentStore

__all__ = [
    "InMemoryCommentStore",
]
