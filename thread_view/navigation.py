from __future__ import annotations

from typing import Protocol


class NavigationHandler(Protocol):
    """External navigation owner; when supplied, the view keeps no history of its own."""

    def open_thread(self, uri: str) -> None: ...

    def go_back(self) -> None: ...


class NavigationStack:
    """History of previously viewed root uris."""

    def __init__(self) -> None:
        self._history: list[str] = []

    def __len__(self) -> int:
        return len(self._history)

    @property
    def can_go_back(self) -> bool:
        return bool(self._history)

    def push(self, root_uri: str) -> None:
        uri = (root_uri or "").strip()
        if not uri:
            raise ValueError("root_uri must be non-empty")
        self._history.append(uri)

    def pop(self) -> str | None:
        if not self._history:
            return None
        return self._history.pop()

    def peek(self) -> str | None:
        return self._history[-1] if self._history else None

    def clear(self) -> None:
        self._history.clear()
