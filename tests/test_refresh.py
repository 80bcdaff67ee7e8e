from __future__ import annotations

import unittest
from typing import Any

from thread_view.post import Post, RawThreadNode
from thread_view.refresh import RefreshCoordinator, RefreshPolicy

_ROOT = "at://did:plc:a/app.bsky.feed.post/root"


def _thread(reply_count: int) -> RawThreadNode:
    replies = tuple(
        RawThreadNode(post=Post(uri=f"{_ROOT}/r{i}", author_id="did:x")) for i in range(reply_count)
    )
    return RawThreadNode(post=Post(uri=_ROOT, author_id="did:a"), replies=replies)


class _SequenceFetcher:
    def __init__(self, counts: list[Any]) -> None:
        self._counts = list(counts)
        self.calls: list[str] = []

    def __call__(self, uri: str) -> RawThreadNode:
        self.calls.append(uri)
        item = self._counts[len(self.calls) - 1]
        if isinstance(item, Exception):
            raise item
        return _thread(item)


class _RecordingDiagnostics:
    def __init__(self) -> None:
        self.events: list[tuple[str, str]] = []

    def info(self, event: str, *, root_uri: str | None = None, **data: Any) -> None:
        self.events.append(("INFO", event))

    def warning(self, event: str, *, root_uri: str | None = None, **data: Any) -> None:
        self.events.append(("WARN", event))

    def exception(self, event: str, *, exc: BaseException, root_uri: str | None = None, **data: Any) -> None:
        self.events.append(("ERROR", event))


class TestRefreshPolicy(unittest.TestCase):
    def test_default_delays(self) -> None:
        policy = RefreshPolicy()
        self.assertEqual([policy.delay_before(k) for k in range(1, 6)], [0.5, 1.0, 2.0, 3.0, 4.0])

    def test_rejects_bad_values(self) -> None:
        with self.assertRaises(ValueError):
            RefreshPolicy(max_attempts=0)
        with self.assertRaises(ValueError):
            RefreshPolicy(first_delay_seconds=-1)


class TestRefreshCoordinator(unittest.TestCase):
    def setUp(self) -> None:
        self.sleeps: list[float] = []
        self.published: list[RawThreadNode] = []
        self.diag = _RecordingDiagnostics()

    def _coordinator(self, fetcher: _SequenceFetcher) -> RefreshCoordinator:
        return RefreshCoordinator(fetcher, sleep_fn=self.sleeps.append, diagnostics=self.diag)

    def test_accepts_as_soon_as_count_grows(self) -> None:
        fetcher = _SequenceFetcher([3, 3, 3, 4, 4])
        coordinator = self._coordinator(fetcher)

        result = coordinator.run(_ROOT, 3, current_root=lambda: _ROOT, publish=self.published.append)

        self.assertEqual(result.status, "accepted")
        self.assertEqual(result.attempts, 4)
        self.assertTrue(result.grew)
        self.assertEqual(len(fetcher.calls), 4)
        self.assertEqual(self.sleeps, [0.5, 1.0, 2.0, 3.0])
        self.assertEqual(len(self.published), 1)
        self.assertEqual(coordinator.state, "accepted")

    def test_last_attempt_is_accepted_unconditionally(self) -> None:
        fetcher = _SequenceFetcher([3, 3, 3, 3, 3])
        result = self._coordinator(fetcher).run(
            _ROOT, 3, current_root=lambda: _ROOT, publish=self.published.append
        )

        self.assertEqual(result.status, "accepted")
        self.assertEqual(result.attempts, 5)
        self.assertFalse(result.grew)
        self.assertEqual(self.sleeps, [0.5, 1.0, 2.0, 3.0, 4.0])
        self.assertEqual(len(self.published), 1)
        self.assertEqual(result.reply_count, 3)

    def test_fetch_error_aborts_without_publishing(self) -> None:
        fetcher = _SequenceFetcher([3, ConnectionError("offline"), 9])
        coordinator = self._coordinator(fetcher)
        result = coordinator.run(_ROOT, 3, current_root=lambda: _ROOT, publish=self.published.append)

        self.assertEqual(result.status, "aborted")
        self.assertEqual(result.attempts, 2)
        self.assertEqual(len(fetcher.calls), 2)
        self.assertEqual(self.published, [])
        self.assertIn(("ERROR", "refresh_aborted"), self.diag.events)
        self.assertEqual(coordinator.state, "aborted")

    def test_root_change_during_wait_discards(self) -> None:
        current = {"root": _ROOT}

        def sleep(seconds: float) -> None:
            self.sleeps.append(seconds)
            if len(self.sleeps) == 2:
                current["root"] = "at://elsewhere"

        fetcher = _SequenceFetcher([3, 4])
        coordinator = RefreshCoordinator(fetcher, sleep_fn=sleep, diagnostics=self.diag)
        result = coordinator.run(_ROOT, 3, current_root=lambda: current["root"], publish=self.published.append)

        self.assertEqual(result.status, "stale")
        self.assertEqual(len(fetcher.calls), 1)
        self.assertEqual(self.published, [])

    def test_root_change_while_fetch_outstanding_discards(self) -> None:
        current = {"root": _ROOT}

        def fetch(uri: str) -> RawThreadNode:
            current["root"] = "at://elsewhere"
            return _thread(10)

        coordinator = RefreshCoordinator(fetch, sleep_fn=self.sleeps.append, diagnostics=self.diag)
        result = coordinator.run(_ROOT, 3, current_root=lambda: current["root"], publish=self.published.append)

        self.assertEqual(result.status, "stale")
        self.assertEqual(self.published, [])
        self.assertIn(("INFO", "refresh_stale"), self.diag.events)

    def test_reopened_root_during_wait_discards(self) -> None:
        session = {"n": 1}

        def sleep(seconds: float) -> None:
            self.sleeps.append(seconds)
            session["n"] += 2

        fetcher = _SequenceFetcher([4])
        coordinator = RefreshCoordinator(fetcher, sleep_fn=sleep, diagnostics=self.diag)
        result = coordinator.run(
            _ROOT,
            3,
            current_root=lambda: _ROOT,
            publish=self.published.append,
            current_session=lambda: session["n"],
        )

        self.assertEqual(result.status, "stale")
        self.assertEqual(result.attempts, 1)
        self.assertEqual(fetcher.calls, [])
        self.assertEqual(self.published, [])

    def test_overlapping_trigger_is_skipped(self) -> None:
        nested: list[Any] = []

        def fetch(uri: str) -> RawThreadNode:
            nested.append(
                coordinator.run(uri, 0, current_root=lambda: _ROOT, publish=self.published.append)
            )
            return _thread(5)

        coordinator = RefreshCoordinator(fetch, sleep_fn=self.sleeps.append, diagnostics=self.diag)
        result = coordinator.run(_ROOT, 3, current_root=lambda: _ROOT, publish=self.published.append)

        self.assertEqual(result.status, "accepted")
        self.assertEqual(nested[0].status, "skipped")
        self.assertEqual(len(self.published), 1)
        self.assertIsNone(coordinator.in_flight)


if __name__ == "__main__":
    unittest.main()
