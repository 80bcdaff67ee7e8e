from __future__ import annotations

from typing import Callable, Protocol

from .expansion import ExpansionKey

RevealFn = Callable[[ExpansionKey], None]


class VisibilityCapability(Protocol):
    """Supplied by the embedding UI: call `callback` once `row_key` scrolls into view."""

    def notify_when_visible(self, row_key: str, callback: Callable[[], None]) -> None: ...


class RevealLatch:
    """
    One-shot trigger for a placeholder row.

    The first `fire()` calls `reveal(key)`; later calls are ignored even if the
    row stays on screen.
    """

    def __init__(self, key: ExpansionKey, reveal: RevealFn) -> None:
        self.key = key
        self._reveal = reveal
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self) -> bool:
        if self._fired:
            return False
        self._fired = True
        self._reveal(self.key)
        return True
