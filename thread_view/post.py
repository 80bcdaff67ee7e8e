from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Post:
    """A single post as delivered by the thread source. Never mutated here."""

    uri: str
    author_id: str
    created_at: datetime = EPOCH
    like_count: int = 0
    reply_count: int = 0
    content: Any = None


@dataclass(frozen=True, eq=False)
class RawThreadNode:
    """
    One node of a fetched thread.

    `parent` is a single chain towards the conversation root; `replies` form a tree.
    """

    post: Post
    parent: RawThreadNode | None = None
    replies: Sequence[RawThreadNode] | None = None
