from __future__ import annotations

from typing import Any, Mapping

import httpx

from .config_schema import AppViewConfig
from .errors import FetchError, ThreadNotFoundError
from .normalize import raw_thread_from_response
from .post import RawThreadNode

_FOLLOWS_PAGE_LIMIT = 100


class BlueskyThreadClient:
    """
    Read-only client for a Bluesky AppView (`app.bsky.feed.getPostThread`,
    `app.bsky.graph.getFollows`).

    It makes one request per call; retrying is left to the caller.
    """

    def __init__(
        self,
        appview: AppViewConfig | None = None,
        *,
        client: httpx.Client | None = None,
        max_ancestor_hops: int = 1000,
        max_reply_depth: int = 200,
    ) -> None:
        self._appview = appview or AppViewConfig()
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self._appview.timeout_seconds)
        self._max_hops = int(max_ancestor_hops)
        self._max_depth = int(max_reply_depth)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BlueskyThreadClient":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _xrpc(self, method: str) -> str:
        return f"{self._appview.service_url}/xrpc/{method}"

    def _get_json(self, method: str, params: Mapping[str, Any]) -> dict[str, Any]:
        try:
            resp = self._client.get(self._xrpc(method), params=dict(params))
        except httpx.HTTPError as e:
            raise FetchError(f"{method} request failed: {e}") from e

        if resp.status_code == 400:
            body = _safe_json(resp)
            if body.get("error") == "NotFound":
                raise ThreadNotFoundError(str(body.get("message") or "Post not found"))

        if resp.status_code >= 400:
            raise FetchError(f"{method} returned HTTP {resp.status_code}")

        body = _safe_json(resp)
        if not body:
            raise FetchError(f"{method} returned an empty or non-JSON body")
        return body

    def fetch_thread(self, root_uri: str) -> RawThreadNode:
        uri = (root_uri or "").strip()
        if not uri:
            raise FetchError("root_uri must be non-empty")

        payload = self._get_json(
            "app.bsky.feed.getPostThread",
            {
                "uri": uri,
                "depth": self._appview.reply_depth,
                "parentHeight": self._appview.parent_height,
            },
        )
        return raw_thread_from_response(payload, max_hops=self._max_hops, max_depth=self._max_depth)

    def follow_set_of(self, actor: str) -> set[str] | None:
        """
        DIDs the actor follows, or None if the list could not be read completely.
        """
        who = (actor or "").strip()
        if not who:
            return None

        follows: set[str] = set()
        cursor: str | None = None
        for _ in range(self._appview.max_follow_pages):
            params: dict[str, Any] = {"actor": who, "limit": _FOLLOWS_PAGE_LIMIT}
            if cursor:
                params["cursor"] = cursor
            data = self._get_json("app.bsky.graph.getFollows", params)

            for item in data.get("follows") or []:
                if isinstance(item, Mapping):
                    did = item.get("did")
                    if isinstance(did, str) and did.strip():
                        follows.add(did.strip())

            cursor = data.get("cursor")
            if not cursor:
                return follows

        # Page budget exhausted; the follow set is unknown.
        return None


def _safe_json(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
