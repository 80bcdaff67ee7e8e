from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .normalize import THREAD_VIEW_POST_TYPE, raw_thread_from_response
from .post import RawThreadNode

OFFLINE_VIEWER = "did:plc:viewer"
OFFLINE_ROOT_URI = "at://did:plc:bob/app.bsky.feed.post/main"


@dataclass(frozen=True)
class OfflinePost:
    uri: str
    author: str
    parent: str | None
    created_at: str
    likes: int = 0
    text: str = ""


def _uri(author: str, rkey: str) -> str:
    return f"at://{author}/app.bsky.feed.post/{rkey}"


_DEFAULT_POSTS: list[OfflinePost] = [
    OfflinePost(_uri("did:plc:alice", "root"), "did:plc:alice", None, "2025-01-01T09:00:00Z", 40, "Morning session notes."),
    OfflinePost(OFFLINE_ROOT_URI, "did:plc:bob", _uri("did:plc:alice", "root"), "2025-01-01T09:05:00Z", 12, "What did you change this week?"),
    OfflinePost(_uri("did:plc:alice", "r1"), "did:plc:alice", OFFLINE_ROOT_URI, "2025-01-01T09:10:00Z", 3, "Mostly pacing."),
    OfflinePost(_uri(OFFLINE_VIEWER, "r2"), OFFLINE_VIEWER, OFFLINE_ROOT_URI, "2025-01-01T09:11:00Z", 1, "Same here."),
    OfflinePost(_uri("did:plc:carol", "r3"), "did:plc:carol", OFFLINE_ROOT_URI, "2025-01-01T09:20:00Z", 9, "Longer rests."),
    OfflinePost(_uri("did:plc:dave", "r4"), "did:plc:dave", OFFLINE_ROOT_URI, "2025-01-01T09:15:00Z", 2, "Nothing yet."),
    OfflinePost(_uri("did:plc:erin", "r5"), "did:plc:erin", OFFLINE_ROOT_URI, "2025-01-01T09:12:00Z", 5, "Sleep."),
    OfflinePost(_uri("did:plc:frank", "c1"), "did:plc:frank", _uri("did:plc:carol", "r3"), "2025-01-01T09:25:00Z", 1, "How long?"),
    OfflinePost(_uri("did:plc:carol", "c2"), "did:plc:carol", _uri("did:plc:frank", "c1"), "2025-01-01T09:30:00Z", 1, "Three minutes."),
    OfflinePost(_uri("did:plc:frank", "c3"), "did:plc:frank", _uri("did:plc:carol", "c2"), "2025-01-01T09:35:00Z", 0, "Noted."),
    OfflinePost(_uri("did:plc:gina", "d1"), "did:plc:gina", _uri("did:plc:frank", "c3"), "2025-01-01T09:40:00Z", 0, "Works for me."),
    OfflinePost(_uri("did:plc:hal", "d2"), "did:plc:hal", _uri("did:plc:frank", "c3"), "2025-01-01T09:41:00Z", 0, "Too long for me."),
]


class OfflineThreadClient:
    """
    In-memory stand-in for the AppView client, serving a small fixed conversation.

    Payloads go through the same normalisation as live responses.
    """

    def __init__(self, posts: list[OfflinePost] | None = None, *, reply_depth: int = 10) -> None:
        self._posts: dict[str, OfflinePost] = {}
        self._order: list[str] = []
        self._reply_depth = int(reply_depth)
        self.fetch_calls: list[str] = []
        for post in posts if posts is not None else _DEFAULT_POSTS:
            self.add_post(post)

    def add_post(self, post: OfflinePost) -> None:
        if post.uri not in self._posts:
            self._order.append(post.uri)
        self._posts[post.uri] = post

    def follow_set_of(self, actor: str) -> set[str] | None:
        if actor == OFFLINE_VIEWER:
            return {"did:plc:carol"}
        return None

    def fetch_thread(self, root_uri: str) -> RawThreadNode:
        self.fetch_calls.append(root_uri)
        return raw_thread_from_response(self.thread_payload(root_uri))

    def thread_payload(self, root_uri: str) -> dict[str, Any]:
        post = self._posts.get(root_uri)
        if post is None:
            return {"thread": {"$type": "app.bsky.feed.defs#notFoundPost", "uri": root_uri, "notFound": True}}

        item = self._item(post, depth=0)
        cursor = item
        seen = {post.uri}
        parent_uri = post.parent
        while parent_uri and parent_uri not in seen and parent_uri in self._posts:
            seen.add(parent_uri)
            parent = self._posts[parent_uri]
            parent_item = self._view(parent)
            cursor["parent"] = parent_item
            cursor = parent_item
            parent_uri = parent.parent
        return {"thread": item}

    def _children(self, uri: str) -> list[OfflinePost]:
        return [self._posts[u] for u in self._order if self._posts[u].parent == uri]

    def _view(self, post: OfflinePost) -> dict[str, Any]:
        children = self._children(post.uri)
        return {
            "$type": THREAD_VIEW_POST_TYPE,
            "post": {
                "uri": post.uri,
                "author": {"did": post.author},
                "record": {"text": post.text, "createdAt": post.created_at},
                "likeCount": post.likes,
                "replyCount": len(children),
            },
        }

    def _item(self, post: OfflinePost, *, depth: int) -> dict[str, Any]:
        item = self._view(post)
        if depth < self._reply_depth:
            item["replies"] = [self._item(child, depth=depth + 1) for child in self._children(post.uri)]
        return item

