"""Strongly typed identifiers for comment thread entities.

Using NewType for strong typing prevents mixing up different entity IDs
and makes the code more self-documenting.
"""

from typing import NewType
from uuid import UUID

CommentId = NewType("CommentId", UUID)
ContentId = NewType("ContentId", UUID)
UserId = NewType("UserId", UUID)
