from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Iterable, Sequence

from .expansion import DepthKey, ExpansionKey, WidthKey
from .post import Post
from .tree import ReplyForest

REPLIES_PER_LEVEL = 3
MAX_VISIBLE_DEPTH = 3


@dataclass(frozen=True)
class DisplayRow:
    """
    One line of the rendered thread.

    A show-more marker carries the first hidden sibling's post only so its key
    stays stable; it is not a conversation entry.
    """

    post: Post
    depth: int
    has_more_replies: bool = False
    hidden_reply_count: int = 0
    is_last_at_depth: bool = False
    parent_uri: str | None = None
    is_show_more_marker: bool = False
    expansion_key: ExpansionKey | None = None

    @property
    def key(self) -> str:
        if self.is_show_more_marker:
            return f"more:{self.post.uri}"
        return self.post.uri


def _visible_count(size: int, group_key: WidthKey, opened: AbstractSet[ExpansionKey], per_level: int) -> int:
    if group_key in opened:
        return size
    return min(size, per_level)


class _Flattener:
    def __init__(
        self,
        forest: ReplyForest,
        opened: AbstractSet[ExpansionKey],
        *,
        replies_per_level: int,
        max_visible_depth: int,
    ) -> None:
        self._forest = forest
        self._opened = opened
        self._per_level = max(0, int(replies_per_level))
        self._max_depth = int(max_visible_depth)
        self._emitted: set[str] = set()
        self.rows: list[DisplayRow] = []

    def _group(self, parent_uri: str | None) -> list[str]:
        # Drops dangling uris and anything already emitted (cycles in hand-built input).
        return [
            u for u in self._forest.children_of(parent_uri)
            if u in self._forest and u not in self._emitted
        ]

    def _hidden_in_group(self, parent_uri: str) -> int:
        size = len(self._group(parent_uri))
        return size - _visible_count(size, WidthKey.for_group(parent_uri), self._opened, self._per_level)

    def run(self, parent_uri: str | None) -> None:
        uris = self._group(parent_uri)
        group_key = WidthKey.for_group(parent_uri)
        size = len(uris)
        visible = _visible_count(size, group_key, self._opened, self._per_level)
        hidden = size - visible

        for index, uri in enumerate(uris[:visible]):
            if uri in self._emitted:
                continue
            self._emitted.add(uri)
            node = self._forest.nodes[uri]
            depth_key = DepthKey(uri)
            descend = node.depth < self._max_depth or depth_key in self._opened

            if descend:
                child_hidden = self._hidden_in_group(uri)
                has_more = child_hidden > 0
                hidden_count = child_hidden
                reveal_key: ExpansionKey | None = None
            else:
                child_count = len(self._group(uri))
                has_more = child_count > 0
                hidden_count = child_count
                reveal_key = depth_key if has_more else None

            self.rows.append(
                DisplayRow(
                    post=node.post,
                    depth=node.depth,
                    has_more_replies=has_more,
                    hidden_reply_count=hidden_count,
                    is_last_at_depth=index == visible - 1 and hidden == 0,
                    parent_uri=parent_uri,
                    expansion_key=reveal_key,
                )
            )

            if descend:
                self.run(uri)

        if hidden > 0:
            first_hidden = self._forest.nodes[uris[visible]]
            self.rows.append(
                DisplayRow(
                    post=first_hidden.post,
                    depth=first_hidden.depth,
                    has_more_replies=True,
                    hidden_reply_count=hidden,
                    is_last_at_depth=True,
                    parent_uri=parent_uri,
                    is_show_more_marker=True,
                    expansion_key=group_key,
                )
            )


def flatten_forest(
    forest: ReplyForest,
    opened: AbstractSet[ExpansionKey] | Iterable[ExpansionKey] = frozenset(),
    *,
    replies_per_level: int = REPLIES_PER_LEVEL,
    max_visible_depth: int = MAX_VISIBLE_DEPTH,
) -> list[DisplayRow]:
    """
    Project a ranked forest into display rows, pre-order.

    Each sibling group shows `replies_per_level` rows plus one show-more
    marker unless its WidthKey is open. A node's children are emitted when
    its depth is below `max_visible_depth` or its own DepthKey is open.
    """
    if not isinstance(opened, (set, frozenset)):
        opened = frozenset(opened)
    flattener = _Flattener(
        forest,
        opened,
        replies_per_level=replies_per_level,
        max_visible_depth=max_visible_depth,
    )
    flattener.run(None)
    return flattener.rows


def pending_disclosures(rows: Sequence[DisplayRow]) -> list[DisplayRow]:
    """Rows whose expansion key would reveal more: markers and depth-capped posts."""
    return [row for row in rows if row.expansion_key is not None]
