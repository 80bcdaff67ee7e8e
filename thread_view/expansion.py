from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Iterator, Union

ROOT_GROUP = "root"
_DEPTH_PREFIX = "depth-"


@dataclass(frozen=True)
class WidthKey:
    """Reveals every sibling under `parent` (a post uri, or ROOT_GROUP for top level)."""

    parent: str

    @classmethod
    def for_group(cls, parent_uri: str | None) -> "WidthKey":
        return cls(parent_uri if parent_uri else ROOT_GROUP)

    @property
    def token(self) -> str:
        return self.parent


@dataclass(frozen=True)
class DepthKey:
    """Reveals the children of one depth-capped post."""

    uri: str

    @property
    def token(self) -> str:
        return _DEPTH_PREFIX + self.uri


ExpansionKey = Union[WidthKey, DepthKey]


def parse_key(token: str) -> ExpansionKey:
    """Inverse of `key.token` for embedders that carry keys as strings."""
    value = (token or "").strip()
    if not value:
        raise ValueError("expansion key must be non-empty")
    if value.startswith(_DEPTH_PREFIX) and len(value) > len(_DEPTH_PREFIX):
        return DepthKey(value[len(_DEPTH_PREFIX) :])
    return WidthKey(value)


class ExpansionState:
    """
    Truncation points the viewer has opened during one root's session.

    Membership only grows; `reset` is for a change of root.
    """

    def __init__(self) -> None:
        self._opened: set[ExpansionKey] = set()

    def __len__(self) -> int:
        return len(self._opened)

    def __contains__(self, key: object) -> bool:
        return key in self._opened

    def __iter__(self) -> Iterator[ExpansionKey]:
        return iter(self.snapshot())

    def open(self, key: ExpansionKey) -> bool:
        if not isinstance(key, (WidthKey, DepthKey)):
            raise TypeError(f"not an expansion key: {key!r}")
        if key in self._opened:
            return False
        self._opened.add(key)
        return True

    def is_open(self, key: ExpansionKey) -> bool:
        return key in self._opened

    def reset(self) -> None:
        self._opened.clear()

    def snapshot(self) -> AbstractSet[ExpansionKey]:
        return frozenset(self._opened)
