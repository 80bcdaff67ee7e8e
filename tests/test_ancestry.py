from __future__ import annotations

import unittest

from thread_view.ancestry import collect_ancestors, extract_ancestry, thread_root_author
from thread_view.post import Post, RawThreadNode


def _chain(*uris: str) -> RawThreadNode:
    node: RawThreadNode | None = None
    for uri in uris:
        node = RawThreadNode(post=Post(uri=uri, author_id=f"did:{uri}"), parent=node)
    assert node is not None
    return node


class _CyclicNode:
    """Duck-typed node whose parent points back at itself."""

    def __init__(self, uri: str) -> None:
        self.post = Post(uri=uri, author_id="did:x")
        self.parent: object = None


class TestAncestry(unittest.TestCase):
    def test_root_first_excluding_current(self) -> None:
        node = _chain("root", "a", "b", "current")
        posts = collect_ancestors(node)
        self.assertEqual([p.uri for p in posts], ["root", "a", "b"])

    def test_no_parent(self) -> None:
        self.assertEqual(collect_ancestors(_chain("solo")), [])
        self.assertEqual(collect_ancestors(None), [])

    def test_max_hops_bounds_walk(self) -> None:
        node = _chain("r", "a", "b", "c", "current")
        result = extract_ancestry(node, max_hops=2)
        self.assertEqual([p.uri for p in result.posts], ["b", "c"])
        self.assertTrue(result.truncated)

    def test_cycle_stops(self) -> None:
        a = _CyclicNode("a")
        b = _CyclicNode("b")
        a.parent = b
        b.parent = a
        result = extract_ancestry(a)  # type: ignore[arg-type]
        self.assertEqual([p.uri for p in result.posts], ["b"])
        self.assertTrue(result.truncated)

    def test_thread_root_author(self) -> None:
        node = _chain("root", "current")
        ancestors = collect_ancestors(node)
        self.assertEqual(thread_root_author(node, ancestors), "did:root")
        solo = _chain("solo")
        self.assertEqual(thread_root_author(solo, []), "did:solo")


if __name__ == "__main__":
    unittest.main()
