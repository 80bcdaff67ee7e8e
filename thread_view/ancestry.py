from __future__ import annotations

from dataclasses import dataclass

from .post import Post, RawThreadNode

DEFAULT_MAX_HOPS = 1000


@dataclass(frozen=True)
class Ancestry:
    posts: tuple[Post, ...]
    truncated: bool = False


def extract_ancestry(node: RawThreadNode | None, *, max_hops: int = DEFAULT_MAX_HOPS) -> Ancestry:
    """
    Walk the parent chain above `node` and return its posts root-first.

    The walk stops after `max_hops` parents or when a uri repeats; either case
    marks the result as truncated.
    """
    if node is None:
        return Ancestry(posts=())

    chain: list[Post] = []
    seen: set[str] = {node.post.uri}
    truncated = False

    current = node.parent
    while current is not None:
        if len(chain) >= max_hops or current.post.uri in seen:
            truncated = True
            break
        seen.add(current.post.uri)
        chain.append(current.post)
        current = current.parent

    chain.reverse()
    return Ancestry(posts=tuple(chain), truncated=truncated)


def collect_ancestors(node: RawThreadNode | None, *, max_hops: int = DEFAULT_MAX_HOPS) -> list[Post]:
    return list(extract_ancestry(node, max_hops=max_hops).posts)


def thread_root_author(node: RawThreadNode, ancestors: tuple[Post, ...] | list[Post]) -> str:
    """The conversation author: first ancestor's author, else the viewed post's."""
    if ancestors:
        return ancestors[0].author_id
    return node.post.author_id
