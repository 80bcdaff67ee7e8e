from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Callable

from .ancestry import extract_ancestry, thread_root_author
from .config_schema import AppConfig
from .expansion import ExpansionKey, ExpansionState, parse_key
from .flatten import DisplayRow, flatten_forest, pending_disclosures
from .navigation import NavigationHandler, NavigationStack
from .post import Post, RawThreadNode
from .ranking import SortMode, rank_forest
from .refresh import RefreshCoordinator, RefreshPolicy, RefreshResult, SleepFn
from .run_log import DiagnosticsSink, NullDiagnostics
from .tree import ReplyForest, build_reply_forest, count_replies
from .visibility import RevealLatch, VisibilityCapability

FollowSetFn = Callable[[str], AbstractSet[str] | None]


@dataclass(frozen=True)
class LoadError:
    root_uri: str
    message: str
    error_type: str


@dataclass(frozen=True)
class LoadResult:
    root_uri: str
    ok: bool
    reply_count: int = 0
    error: LoadError | None = None


class ThreadViewModel:
    """
    View-model for one thread screen.

    Holds the fetched thread for the current root, the viewer's sort mode and
    opened expansion keys, and derives display rows on demand. Rows are cached
    until the thread, follow set, sort mode or expansion state changes.
    """

    def __init__(
        self,
        fetch_thread: Callable[[str], RawThreadNode],
        *,
        viewer_id: str | None = None,
        follow_set_of: FollowSetFn | None = None,
        config: AppConfig | None = None,
        sort_mode: SortMode | str | None = None,
        sleep_fn: SleepFn | None = None,
        diagnostics: DiagnosticsSink | None = None,
        navigation: NavigationHandler | None = None,
    ) -> None:
        self._config = config or AppConfig()
        self._fetch_thread = fetch_thread
        self._viewer_id = (viewer_id or "").strip() or None
        self._follow_set_of = follow_set_of
        self._diagnostics = diagnostics or NullDiagnostics()
        self._navigation = navigation
        self._history = NavigationStack()
        self._expansion = ExpansionState()
        self._sort_mode = SortMode(sort_mode or self._config.sorting.default_mode)

        refresh_cfg = self._config.refresh
        self._refresher = RefreshCoordinator(
            self._fetch_thread,
            policy=RefreshPolicy(
                max_attempts=refresh_cfg.max_attempts,
                first_delay_seconds=refresh_cfg.first_delay_seconds,
                step_delay_seconds=refresh_cfg.step_delay_seconds,
            ),
            sleep_fn=sleep_fn,
            diagnostics=self._diagnostics,
            max_reply_depth=self._config.traversal.max_reply_depth,
        )

        self._root_uri: str | None = None
        self._session = 0
        self._raw: RawThreadNode | None = None
        self._ancestors: tuple[Post, ...] = ()
        self._op_override: str | None = None
        self._follow_set: AbstractSet[str] | None = None
        self._follow_loaded = False
        self._error: LoadError | None = None

        self._forest = ReplyForest()
        self._ranked: ReplyForest | None = None
        self._rows: list[DisplayRow] | None = None

        self._visibility: VisibilityCapability | None = None
        self._latches: dict[ExpansionKey, RevealLatch] = {}

    # Read-only state

    @property
    def root_uri(self) -> str | None:
        return self._root_uri

    @property
    def main_post(self) -> Post | None:
        return self._raw.post if self._raw is not None else None

    @property
    def ancestors(self) -> tuple[Post, ...]:
        return self._ancestors

    @property
    def error(self) -> LoadError | None:
        return self._error

    @property
    def sort_mode(self) -> SortMode:
        return self._sort_mode

    @property
    def reply_count(self) -> int:
        return count_replies(self._forest)

    @property
    def expansion(self) -> AbstractSet[ExpansionKey]:
        return self._expansion.snapshot()

    @property
    def can_go_back(self) -> bool:
        if self._navigation is not None:
            return False
        return self._history.can_go_back

    @property
    def refresh_state(self) -> str:
        return self._refresher.state

    # Loading

    def load(self, root_uri: str, *, op_author_id: str | None = None) -> LoadResult:
        uri = (root_uri or "").strip()
        if not uri:
            raise ValueError("root_uri must be non-empty")

        if uri != self._root_uri:
            self._session += 1
            self._expansion.reset()
            self._latches.clear()
        self._root_uri = uri
        self._op_override = (op_author_id or "").strip() or None

        if not self._follow_loaded:
            self._load_follow_set()

        try:
            raw = self._fetch_thread(uri)
        except Exception as exc:
            self._raw = None
            self._ancestors = ()
            self._forest = ReplyForest()
            self._invalidate(ranking=True)
            self._error = LoadError(
                root_uri=uri,
                message=str(exc) or "Failed to load thread",
                error_type=type(exc).__name__,
            )
            self._diagnostics.exception("thread_load_failed", exc=exc, root_uri=uri)
            return LoadResult(root_uri=uri, ok=False, error=self._error)

        self._error = None
        self._publish(raw)
        self._diagnostics.info(
            "thread_loaded",
            root_uri=uri,
            ancestors=len(self._ancestors),
            replies=self.reply_count,
        )
        return LoadResult(root_uri=uri, ok=True, reply_count=self.reply_count)

    def reload(self) -> LoadResult | None:
        if self._root_uri is None:
            return None
        return self.load(self._root_uri, op_author_id=self._op_override)

    def refresh_follow_set(self) -> None:
        self._load_follow_set()
        self._rebuild()

    def set_follow_set(self, follow_set: AbstractSet[str] | None) -> None:
        self._follow_set = frozenset(follow_set) if follow_set is not None else None
        self._follow_loaded = True
        self._rebuild()

    def _load_follow_set(self) -> None:
        self._follow_loaded = True
        if self._follow_set_of is None or self._viewer_id is None:
            self._follow_set = None
            return
        try:
            follows = self._follow_set_of(self._viewer_id)
        except Exception as exc:
            self._follow_set = None
            self._diagnostics.exception("follow_set_failed", exc=exc, viewer_id=self._viewer_id)
            return
        self._follow_set = frozenset(follows) if follows is not None else None

    def _publish(self, raw: RawThreadNode) -> None:
        traversal = self._config.traversal
        ancestry = extract_ancestry(raw, max_hops=traversal.max_ancestor_hops)
        if ancestry.truncated:
            self._diagnostics.warning(
                "malformed_chain", root_uri=self._root_uri, kept=len(ancestry.posts)
            )
        self._raw = raw
        self._ancestors = ancestry.posts
        self._rebuild()

    def _rebuild(self) -> None:
        raw = self._raw
        if raw is None:
            return
        op_author = self._op_override or thread_root_author(raw, self._ancestors)
        self._forest = build_reply_forest(
            raw,
            op_author_id=op_author,
            viewer_id=self._viewer_id,
            follow_set=self._follow_set,
            max_depth=self._config.traversal.max_reply_depth,
        )
        if self._forest.truncated:
            self._diagnostics.warning(
                "malformed_tree", root_uri=self._root_uri, kept=len(self._forest)
            )
        self._invalidate(ranking=True)

    def _invalidate(self, *, ranking: bool = False) -> None:
        if ranking:
            self._ranked = None
        self._rows = None

    # Rows

    def get_display_rows(self) -> list[DisplayRow]:
        rows = self._rows
        if rows is None:
            if self._ranked is None:
                self._ranked = rank_forest(self._forest, self._sort_mode)
            disclosure = self._config.disclosure
            rows = flatten_forest(
                self._ranked,
                self._expansion.snapshot(),
                replies_per_level=disclosure.replies_per_level,
                max_visible_depth=disclosure.max_visible_depth,
            )
            self._rows = rows
            # Latches may fire synchronously and invalidate the cache.
            self._bind_pending(rows)
        return list(rows)

    def pending_disclosures(self) -> list[DisplayRow]:
        return pending_disclosures(self.get_display_rows())

    def set_sort_mode(self, mode: SortMode | str) -> None:
        new_mode = SortMode(mode)
        if new_mode is self._sort_mode:
            return
        self._sort_mode = new_mode
        self._invalidate(ranking=True)

    def open_expansion(self, key: ExpansionKey | str) -> bool:
        expansion_key = parse_key(key) if isinstance(key, str) else key
        if not self._expansion.open(expansion_key):
            return False
        self._diagnostics.info(
            "expansion_opened", root_uri=self._root_uri, key=expansion_key.token
        )
        self._invalidate()
        return True

    # Visibility-driven reveal

    def bind_visibility(self, capability: VisibilityCapability) -> None:
        self._visibility = capability
        self._bind_pending(self.get_display_rows())

    def _bind_pending(self, rows: list[DisplayRow]) -> None:
        if self._visibility is None:
            return
        for row in pending_disclosures(rows):
            key = row.expansion_key
            if key is None or key in self._latches:
                continue
            latch = RevealLatch(key, self.open_expansion)
            self._latches[key] = latch
            self._visibility.notify_when_visible(row.key, latch.fire)

    # Post-write refresh

    def on_local_reply_posted(self) -> RefreshResult:
        root = self._root_uri
        if root is None or self._raw is None:
            return RefreshResult(status="skipped", attempts=0)
        return self._refresher.run(
            root,
            self.reply_count,
            current_root=lambda: self._root_uri,
            publish=self._publish,
            current_session=lambda: self._session,
        )

    # Navigation

    def navigate_into(self, post_uri: str) -> LoadResult | None:
        uri = (post_uri or "").strip()
        if not uri:
            raise ValueError("post_uri must be non-empty")

        if self._navigation is not None:
            self._navigation.open_thread(uri)
            return None

        if self._root_uri is not None and uri != self._root_uri:
            self._history.push(self._root_uri)
        self._diagnostics.info("navigated_into", root_uri=uri, history=len(self._history))
        return self.load(uri)

    def navigate_back(self) -> LoadResult | None:
        if self._navigation is not None:
            self._navigation.go_back()
            return None

        previous = self._history.pop()
        if previous is None:
            return None
        self._diagnostics.info("navigated_back", root_uri=previous, history=len(self._history))
        return self.load(previous)
