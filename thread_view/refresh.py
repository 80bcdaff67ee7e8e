from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Literal

from .post import RawThreadNode
from .run_log import DiagnosticsSink, NullDiagnostics
from .tree import DEFAULT_MAX_REPLY_DEPTH, count_raw_replies

RefreshState = Literal["idle", "retrying", "accepted", "aborted", "stale"]
RefreshStatus = Literal["accepted", "aborted", "stale", "skipped"]

FetchThreadFn = Callable[[str], RawThreadNode]
PublishFn = Callable[[RawThreadNode], None]
CurrentRootFn = Callable[[], str | None]
CurrentSessionFn = Callable[[], int]
SleepFn = Callable[[float], None]


@dataclass(frozen=True)
class RefreshPolicy:
    """
    Polling schedule used after a local write.

    - max_attempts counts every fetch; the last one is accepted regardless of count.
    - attempt 1 waits first_delay_seconds; attempt k>=2 waits step_delay_seconds * (k - 1).
    """

    max_attempts: int = 5
    first_delay_seconds: float = 0.5
    step_delay_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.first_delay_seconds < 0:
            raise ValueError("first_delay_seconds must be >= 0")
        if self.step_delay_seconds < 0:
            raise ValueError("step_delay_seconds must be >= 0")

    def delay_before(self, attempt: int) -> float:
        if attempt <= 1:
            return float(self.first_delay_seconds)
        return float(self.step_delay_seconds) * (int(attempt) - 1)


@dataclass(frozen=True)
class RefreshResult:
    status: RefreshStatus
    attempts: int
    reply_count: int | None = None
    grew: bool = False


class RefreshCoordinator:
    """
    Re-fetches a thread after the viewer posted into it, until the reply count grows.

    States: idle -> retrying -> accepted | aborted | stale. A fetch error aborts
    without publishing. A result is discarded as stale when `current_root()` no
    longer matches the root the refresh was started for, or when
    `current_session()` reports that the root was left and reopened since then.
    """

    def __init__(
        self,
        fetch_thread: FetchThreadFn,
        *,
        policy: RefreshPolicy | None = None,
        sleep_fn: SleepFn | None = None,
        diagnostics: DiagnosticsSink | None = None,
        max_reply_depth: int = DEFAULT_MAX_REPLY_DEPTH,
    ) -> None:
        self._fetch_thread = fetch_thread
        self._policy = policy or RefreshPolicy()
        self._sleep_fn = sleep_fn or time.sleep
        self._diagnostics = diagnostics or NullDiagnostics()
        self._max_reply_depth = int(max_reply_depth)
        self._state: RefreshState = "idle"
        self._attempt = 0
        self._in_flight: str | None = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def in_flight(self) -> str | None:
        return self._in_flight

    def run(
        self,
        root_uri: str,
        baseline_count: int,
        *,
        current_root: CurrentRootFn,
        publish: PublishFn,
        current_session: CurrentSessionFn | None = None,
    ) -> RefreshResult:
        if self._in_flight is not None:
            self._diagnostics.info(
                "refresh_skipped", root_uri=root_uri, in_flight=self._in_flight
            )
            return RefreshResult(status="skipped", attempts=0)

        self._in_flight = root_uri
        try:
            session = current_session() if current_session is not None else None

            def is_stale() -> bool:
                if current_root() != root_uri:
                    return True
                return current_session is not None and current_session() != session

            return self._run(root_uri, int(baseline_count), is_stale, publish)
        finally:
            self._in_flight = None

    def _run(
        self,
        root_uri: str,
        baseline: int,
        is_stale: Callable[[], bool],
        publish: PublishFn,
    ) -> RefreshResult:
        self._state = "retrying"
        max_attempts = int(self._policy.max_attempts)

        for attempt in range(1, max_attempts + 1):
            self._attempt = attempt
            delay = self._policy.delay_before(attempt)
            if delay > 0:
                self._sleep_fn(delay)

            if is_stale():
                return self._stale(root_uri, attempt)

            try:
                raw = self._fetch_thread(root_uri)
            except Exception as exc:
                self._state = "aborted"
                self._diagnostics.exception(
                    "refresh_aborted", exc=exc, root_uri=root_uri, attempt=attempt
                )
                return RefreshResult(status="aborted", attempts=attempt)

            if is_stale():
                return self._stale(root_uri, attempt)

            count = count_raw_replies(raw, max_depth=self._max_reply_depth)
            grew = count > baseline
            self._diagnostics.info(
                "refresh_attempt",
                root_uri=root_uri,
                attempt=attempt,
                baseline=baseline,
                reply_count=count,
            )

            if grew or attempt >= max_attempts:
                publish(raw)
                self._state = "accepted"
                self._diagnostics.info(
                    "refresh_accepted",
                    root_uri=root_uri,
                    attempt=attempt,
                    reply_count=count,
                    grew=grew,
                )
                return RefreshResult(status="accepted", attempts=attempt, reply_count=count, grew=grew)

        # Unreachable: the final attempt always accepts.
        raise RuntimeError(f"Refresh loop exited unexpectedly for root={root_uri}")

    def _stale(self, root_uri: str, attempt: int) -> RefreshResult:
        self._state = "stale"
        self._diagnostics.info("refresh_stale", root_uri=root_uri, attempt=attempt)
        return RefreshResult(status="stale", attempts=attempt)
