from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import AbstractSet, Iterator, Mapping

from .post import Post, RawThreadNode

DEFAULT_MAX_REPLY_DEPTH = 200


@dataclass(frozen=True)
class ReplyNode:
    post: Post
    depth: int
    children: tuple[str, ...] = ()
    is_op: bool = False
    is_self: bool = False
    is_following: bool = False

    @property
    def uri(self) -> str:
        return self.post.uri


@dataclass(frozen=True)
class ReplyForest:
    """
    Reply tree stored as an arena: nodes addressed by post uri, each holding
    the ordered uris of its children.
    """

    nodes: Mapping[str, ReplyNode] = field(default_factory=dict)
    roots: tuple[str, ...] = ()
    truncated: bool = False

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, uri: object) -> bool:
        return uri in self.nodes

    def node(self, uri: str) -> ReplyNode:
        return self.nodes[uri]

    def children_of(self, uri: str | None) -> tuple[str, ...]:
        if uri is None:
            return self.roots
        node = self.nodes.get(uri)
        return node.children if node is not None else ()

    def iter_preorder(self) -> Iterator[ReplyNode]:
        stack = list(reversed(self.roots))
        while stack:
            uri = stack.pop()
            node = self.nodes.get(uri)
            if node is None:
                continue
            yield node
            stack.extend(reversed(node.children))

    def with_order(self, roots: tuple[str, ...], children: Mapping[str, tuple[str, ...]]) -> ReplyForest:
        nodes = {
            uri: replace(node, children=children.get(uri, node.children))
            for uri, node in self.nodes.items()
        }
        return ReplyForest(nodes=nodes, roots=roots, truncated=self.truncated)


def build_reply_forest(
    raw: RawThreadNode | None,
    *,
    op_author_id: str | None,
    viewer_id: str | None,
    follow_set: AbstractSet[str] | None = None,
    max_depth: int = DEFAULT_MAX_REPLY_DEPTH,
) -> ReplyForest:
    """
    Build the reply forest below `raw`, tagging each node with its relation to the viewer.

    A missing follow set means "unknown" and tags nobody as followed. Replies
    deeper than `max_depth` and repeated uris are dropped and mark the forest
    as truncated.
    """
    if raw is None or not raw.replies:
        return ReplyForest()

    seen: set[str] = {raw.post.uri}
    order: dict[str, list[str]] = {}
    info: dict[str, tuple[Post, int]] = {}
    roots: list[str] = []
    truncated = False

    stack: list[tuple[RawThreadNode, int, str | None]] = [
        (child, 0, None) for child in reversed(raw.replies)
    ]
    while stack:
        item, depth, parent_uri = stack.pop()
        uri = item.post.uri
        if depth >= max_depth or uri in seen:
            truncated = True
            continue
        seen.add(uri)

        info[uri] = (item.post, depth)
        order[uri] = []
        if parent_uri is None:
            roots.append(uri)
        else:
            order[parent_uri].append(uri)

        if item.replies:
            stack.extend((child, depth + 1, uri) for child in reversed(item.replies))

    nodes: dict[str, ReplyNode] = {}
    for uri, (post, depth) in info.items():
        author = post.author_id
        nodes[uri] = ReplyNode(
            post=post,
            depth=depth,
            children=tuple(order[uri]),
            is_op=bool(op_author_id) and author == op_author_id,
            is_self=bool(viewer_id) and author == viewer_id,
            is_following=follow_set is not None and author in follow_set,
        )

    return ReplyForest(nodes=nodes, roots=tuple(roots), truncated=truncated)


def count_replies(forest: ReplyForest) -> int:
    return len(forest.nodes)


def count_raw_replies(raw: RawThreadNode | None, *, max_depth: int = DEFAULT_MAX_REPLY_DEPTH) -> int:
    if raw is None:
        return 0
    return count_replies(build_reply_forest(raw, op_author_id=None, viewer_id=None, max_depth=max_depth))
