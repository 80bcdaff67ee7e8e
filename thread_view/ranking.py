from __future__ import annotations

from enum import Enum
from typing import Sequence

from .tree import ReplyForest, ReplyNode


class SortMode(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    TOP = "top"


def tier(node: ReplyNode) -> int:
    """Relationship priority: thread author 3, viewer 2, followed author 1, others 0."""
    if node.is_op:
        return 3
    if node.is_self:
        return 2
    if node.is_following:
        return 1
    return 0


def rank_siblings(nodes: Sequence[ReplyNode], mode: SortMode) -> list[ReplyNode]:
    """
    Stable sort of one sibling group: tier first, then the mode's metric.

    Done as two stable passes (metric, then tier) so equal keys keep input order.
    """
    mode = SortMode(mode)
    if mode is SortMode.NEWEST:
        ordered = sorted(nodes, key=lambda n: n.post.created_at, reverse=True)
    elif mode is SortMode.OLDEST:
        ordered = sorted(nodes, key=lambda n: n.post.created_at)
    else:
        ordered = sorted(nodes, key=lambda n: n.post.like_count, reverse=True)
    return sorted(ordered, key=tier, reverse=True)


def rank_forest(forest: ReplyForest, mode: SortMode | str) -> ReplyForest:
    mode = SortMode(mode)

    def _ranked(uris: tuple[str, ...]) -> tuple[str, ...]:
        group = [forest.nodes[u] for u in uris if u in forest]
        return tuple(n.uri for n in rank_siblings(group, mode))

    children = {uri: _ranked(node.children) for uri, node in forest.nodes.items()}
    return forest.with_order(_ranked(forest.roots), children)
