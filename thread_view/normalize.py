from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from .errors import ThreadNotFoundError
from .post import EPOCH, Post, RawThreadNode

THREAD_VIEW_POST_TYPE = "app.bsky.feed.defs#threadViewPost"


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _coerce_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    return 0


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Unparseable or missing values sort as the epoch.
    """
    s = _coerce_str(value)
    if not s:
        return EPOCH

    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        return EPOCH

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_thread_view_post(node: Any) -> bool:
    if not isinstance(node, Mapping):
        return False
    node_type = node.get("$type")
    if node_type is not None:
        return node_type == THREAD_VIEW_POST_TYPE
    # Some proxies strip $type; a post view is enough to tell.
    return isinstance(node.get("post"), Mapping)


def post_from_view(view: Mapping[str, Any]) -> Post | None:
    uri = _coerce_str(view.get("uri"))
    if not uri:
        return None

    author = view.get("author")
    author_id = None
    if isinstance(author, Mapping):
        author_id = _coerce_str(author.get("did")) or _coerce_str(author.get("handle"))

    record = view.get("record")
    created_raw = None
    if isinstance(record, Mapping):
        created_raw = record.get("createdAt")
    if created_raw is None:
        created_raw = view.get("indexedAt")

    return Post(
        uri=uri,
        author_id=author_id or "",
        created_at=parse_timestamp(created_raw),
        like_count=_coerce_count(view.get("likeCount")),
        reply_count=_coerce_count(view.get("replyCount")),
        content=record if isinstance(record, Mapping) else None,
    )


def _node_from_item(item: Any) -> tuple[Post, Mapping[str, Any]] | None:
    if not is_thread_view_post(item):
        return None
    view = item.get("post")
    if not isinstance(view, Mapping):
        return None
    post = post_from_view(view)
    if post is None:
        return None
    return post, item


def _build_replies(item: Mapping[str, Any], *, depth: int, max_depth: int) -> tuple[RawThreadNode, ...] | None:
    replies = item.get("replies")
    if not isinstance(replies, list):
        return None
    if depth >= max_depth:
        return ()

    out: list[RawThreadNode] = []
    for reply in replies:
        parsed = _node_from_item(reply)
        if parsed is None:
            continue
        post, reply_item = parsed
        out.append(
            RawThreadNode(
                post=post,
                replies=_build_replies(reply_item, depth=depth + 1, max_depth=max_depth),
            )
        )
    return tuple(out)


def _build_parent(item: Mapping[str, Any], *, max_hops: int) -> RawThreadNode | None:
    chain: list[Post] = []
    current = item.get("parent")
    while len(chain) < max_hops:
        parsed = _node_from_item(current)
        if parsed is None:
            break
        post, parent_item = parsed
        chain.append(post)
        current = parent_item.get("parent")

    parent: RawThreadNode | None = None
    for post in reversed(chain):
        parent = RawThreadNode(post=post, parent=parent)
    return parent


def raw_thread_from_response(
    payload: Mapping[str, Any],
    *,
    max_hops: int = 1000,
    max_depth: int = 200,
) -> RawThreadNode:
    """
    Convert an `app.bsky.feed.getPostThread` response into a RawThreadNode.

    Not-found and blocked nodes in the parent chain end the chain; among
    replies they are skipped. A non-post root raises ThreadNotFoundError.
    """
    thread = payload.get("thread") if isinstance(payload, Mapping) else None
    parsed = _node_from_item(thread)
    if parsed is None:
        node_type = thread.get("$type") if isinstance(thread, Mapping) else None
        raise ThreadNotFoundError(f"Could not load thread (node type: {node_type or 'missing'})")

    post, item = parsed
    return RawThreadNode(
        post=post,
        parent=_build_parent(item, max_hops=max_hops),
        replies=_build_replies(item, depth=0, max_depth=max_depth),
    )
