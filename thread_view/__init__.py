from __future__ import annotations

from .config import config_sha256, load_config
from .config_schema import AppConfig
from .errors import ConfigError, FetchError, ThreadNotFoundError
from .expansion import DepthKey, ExpansionState, WidthKey
from .flatten import DisplayRow, flatten_forest
from .ranking import SortMode, rank_forest
from .tree import build_reply_forest
from .view import ThreadViewModel

__all__ = [
    "AppConfig",
    "ConfigError",
    "DepthKey",
    "DisplayRow",
    "ExpansionState",
    "FetchError",
    "SortMode",
    "ThreadNotFoundError",
    "ThreadViewModel",
    "WidthKey",
    "build_reply_forest",
    "config_sha256",
    "flatten_forest",
    "load_config",
    "rank_forest",
]
