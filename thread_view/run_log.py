from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, TextIO


class DiagnosticsSink(Protocol):
    def info(self, event: str, *, root_uri: str | None = None, **data: Any) -> None: ...

    def warning(self, event: str, *, root_uri: str | None = None, **data: Any) -> None: ...

    def exception(
        self, event: str, *, exc: BaseException, root_uri: str | None = None, **data: Any
    ) -> None: ...


class NullDiagnostics:
    """Sink that drops everything; the default when the embedder supplies none."""

    def info(self, event: str, *, root_uri: str | None = None, **data: Any) -> None:
        return None

    def warning(self, event: str, *, root_uri: str | None = None, **data: Any) -> None:
        return None

    def exception(
        self, event: str, *, exc: BaseException, root_uri: str | None = None, **data: Any
    ) -> None:
        return None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class RunLogger:
    """
    JSONL diagnostics sink for thread view sessions.

    Each line is one JSON object: ts, level, event, session_id, and optionally
    root_uri and data.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        overwrite: bool = True,
        session_id: str | None = None,
    ) -> None:
        self._path = Path(path)
        self._overwrite = bool(overwrite)
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._fp: TextIO | None = None
        self._opened = False

    @classmethod
    def open(
        cls,
        path: str | Path,
        *,
        overwrite: bool = True,
        session_id: str | None = None,
    ) -> "RunLogger":
        logger = cls(path, overwrite=overwrite, session_id=session_id)
        logger._ensure_open()
        return logger

    @property
    def session_id(self) -> str:
        return self._session_id

    def close(self) -> None:
        if self._fp is None:
            return
        try:
            self._fp.flush()
        finally:
            self._fp.close()
            self._fp = None

    def __enter__(self) -> "RunLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def info(self, event: str, *, root_uri: str | None = None, **data: Any) -> None:
        self.log("INFO", event, root_uri=root_uri, **data)

    def warning(self, event: str, *, root_uri: str | None = None, **data: Any) -> None:
        self.log("WARN", event, root_uri=root_uri, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        root_uri: str | None = None,
        **data: Any,
    ) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, root_uri=root_uri, error=err, **data)

    def log(self, level: str, event: str, *, root_uri: str | None = None, **data: Any) -> None:
        lvl = (level or "").strip().upper() or "INFO"
        ev = (event or "").strip() or "event"

        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": lvl,
            "event": ev,
            "session_id": self._session_id,
        }

        root = (root_uri or "").strip()
        if root:
            record["root_uri"] = root

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> TextIO:
        if self._fp is not None:
            return self._fp

        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Only the first open truncates; reopening after close appends.
        mode = "w" if self._overwrite and not self._opened else "a"
        self._fp = self._path.open(mode, encoding="utf-8", newline="\n")
        self._opened = True
        return self._fp

    def _write(self, record: dict[str, Any]) -> None:
        fp = self._ensure_open()

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        fp.write(payload + "\n")
        fp.flush()
