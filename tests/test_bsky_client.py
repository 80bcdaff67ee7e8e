from __future__ import annotations

import unittest

import httpx

from thread_view.bsky_client import BlueskyThreadClient
from thread_view.config_schema import AppViewConfig
from thread_view.errors import FetchError, ThreadNotFoundError

_TVP = "app.bsky.feed.defs#threadViewPost"


def _thread_payload() -> dict:
    return {
        "thread": {
            "$type": _TVP,
            "post": {
                "uri": "at://did:plc:b/app.bsky.feed.post/main",
                "author": {"did": "did:plc:b"},
                "record": {"text": "hi", "createdAt": "2025-01-01T00:00:00Z"},
            },
            "replies": [
                {
                    "$type": _TVP,
                    "post": {
                        "uri": "at://did:plc:c/app.bsky.feed.post/r1",
                        "author": {"did": "did:plc:c"},
                        "record": {"text": "yo", "createdAt": "2025-01-01T00:01:00Z"},
                    },
                }
            ],
        }
    }


class TestBlueskyThreadClient(unittest.TestCase):
    def _client(self, handler) -> BlueskyThreadClient:
        http = httpx.Client(transport=httpx.MockTransport(handler))
        return BlueskyThreadClient(AppViewConfig(service_url="https://appview.test", reply_depth=6), client=http)

    def test_fetch_thread_sends_params_and_normalizes(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_thread_payload())

        raw = self._client(handler).fetch_thread("at://did:plc:b/app.bsky.feed.post/main")

        self.assertEqual(raw.post.author_id, "did:plc:b")
        self.assertEqual(len(raw.replies), 1)
        req = seen[0]
        self.assertEqual(req.url.path, "/xrpc/app.bsky.feed.getPostThread")
        self.assertEqual(req.url.params["uri"], "at://did:plc:b/app.bsky.feed.post/main")
        self.assertEqual(req.url.params["depth"], "6")
        self.assertEqual(req.url.params["parentHeight"], "80")

    def test_not_found_maps_to_thread_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "NotFound", "message": "Post not found: x"})

        with self.assertRaises(ThreadNotFoundError):
            self._client(handler).fetch_thread("at://x")

    def test_server_error_and_transport_error(self) -> None:
        def server_error(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        with self.assertRaises(FetchError):
            self._client(server_error).fetch_thread("at://x")

        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with self.assertRaises(FetchError):
            self._client(broken).fetch_thread("at://x")

    def test_follow_set_follows_cursor(self) -> None:
        pages = {
            None: {"follows": [{"did": "did:plc:a"}, {"did": "did:plc:b"}], "cursor": "p2"},
            "p2": {"follows": [{"did": "did:plc:c"}]},
        }

        def handler(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/xrpc/app.bsky.graph.getFollows")
            cursor = request.url.params.get("cursor")
            return httpx.Response(200, json=pages[cursor])

        follows = self._client(handler).follow_set_of("did:plc:viewer")
        self.assertEqual(follows, {"did:plc:a", "did:plc:b", "did:plc:c"})

    def test_follow_set_unknown_when_page_budget_runs_out(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"follows": [{"did": "did:plc:a"}], "cursor": "more"})

        http = httpx.Client(transport=httpx.MockTransport(handler))
        client = BlueskyThreadClient(AppViewConfig(max_follow_pages=2), client=http)
        self.assertIsNone(client.follow_set_of("did:plc:viewer"))


if __name__ == "__main__":
    unittest.main()
