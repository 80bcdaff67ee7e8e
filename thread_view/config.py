from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError

SECTIONS: tuple[str, ...] = tuple(AppConfig.model_fields)


def load_config(path: str | Path | None) -> AppConfig:
    """
    Read thread view settings from YAML.

    Every section (disclosure, sorting, refresh, traversal, appview) is
    optional and falls back to its defaults; a None path or an empty file
    yields the defaults everywhere. Unknown sections or keys and out-of-range
    values raise ConfigError naming the offending `section.key`.
    """
    if path is None:
        return AppConfig()

    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"Thread view config not found: {p}")

    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read thread view config {p}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Thread view config {p} is not valid YAML: {e}") from e

    sections = _sections(data, p)

    try:
        return AppConfig.model_validate(sections)
    except ValidationError as e:
        raise ConfigError(_describe_errors(e, p)) from e


def config_sha256(config: AppConfig) -> str:
    """Stable digest of the effective settings, logged when a session starts."""
    payload = json.dumps(
        config.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _sections(data: Any, path: Path) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Thread view config {path} must map section names to settings, "
            f"got {type(data).__name__}"
        )

    unknown = sorted(str(k) for k in data if k not in SECTIONS)
    if unknown:
        raise ConfigError(
            f"Unknown section(s) in {path}: {', '.join(unknown)} "
            f"(expected one of: {', '.join(SECTIONS)})"
        )
    return data


def _describe_errors(err: ValidationError, path: Path) -> str:
    lines = [f"Invalid thread view settings in {path}:"]
    for item in err.errors():
        where = ".".join(str(part) for part in item.get("loc", ())) or "(cross-section)"
        lines.append(f"- {where}: {item.get('msg', 'invalid value')}")
    return "\n".join(lines)
