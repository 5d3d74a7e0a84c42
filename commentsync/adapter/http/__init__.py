"""HTTP binding of the comment store."""

from .client import HttpCommentStore

__all__ = ["HttpCommentStore"]
