from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class FetchError(RuntimeError):
    """Raised when a thread or follow-set fetch fails."""


class ThreadNotFoundError(FetchError):
    """Raised when the server answers with a not-found or blocked node instead of a thread."""
