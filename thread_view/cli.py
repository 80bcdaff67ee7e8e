from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Sequence

from .bsky_client import BlueskyThreadClient
from .config import config_sha256, load_config
from .errors import ConfigError, FetchError
from .expansion import parse_key
from .flatten import DisplayRow
from .post import Post
from .ranking import SortMode
from .run_log import NullDiagnostics, RunLogger
from .view import ThreadViewModel

_INDENT = "  "
_SNIPPET_CHARS = 80


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="thread_view")

    subparsers = parser.add_subparsers(dest="command", required=True)

    show = subparsers.add_parser(
        "show",
        help="Fetch a thread and print its display rows.",
    )
    show.add_argument(
        "--uri",
        help="at:// uri of the post to center the thread on (defaults to the offline fixture root with --offline).",
    )
    show.add_argument(
        "--config",
        help="Path to YAML config file.",
    )
    show.add_argument(
        "--sort",
        choices=[m.value for m in SortMode],
        help="Reply sort mode (overrides sorting.default_mode).",
    )
    show.add_argument(
        "--viewer",
        help="DID of the viewing account, used for self/following priority.",
    )
    show.add_argument(
        "--open",
        action="append",
        default=[],
        metavar="KEY",
        help="Expansion key to open before printing (repeatable).",
    )
    show.add_argument(
        "--offline",
        action="store_true",
        help="Use a small built-in conversation instead of the network.",
    )
    show.add_argument(
        "--log",
        help="Write JSONL diagnostics to this path.",
    )
    show.set_defaults(_handler=_cmd_show)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _snippet(post: Post) -> str:
    text = ""
    if isinstance(post.content, dict):
        value = post.content.get("text")
        if isinstance(value, str):
            text = " ".join(value.split())
    if len(text) > _SNIPPET_CHARS:
        text = text[: _SNIPPET_CHARS - 1] + "…"
    return text


def _format_row(row: DisplayRow) -> str:
    pad = _INDENT * (row.depth + 1)
    key = row.expansion_key.token if row.expansion_key is not None else ""
    if row.is_show_more_marker:
        noun = "reply" if row.hidden_reply_count == 1 else "replies"
        return f"{pad}… {row.hidden_reply_count} more {noun} [{key}]"

    line = f"{pad}{row.post.author_id}: {_snippet(row.post)}"
    if row.has_more_replies and key:
        line += f"  (+{row.hidden_reply_count} hidden [{key}])"
    return line


def _print_thread(model: ThreadViewModel) -> None:
    for post in model.ancestors:
        print(f"^ {post.author_id}: {_snippet(post)}")

    main_post = model.main_post
    if main_post is not None:
        print(f"> {main_post.author_id}: {_snippet(main_post)}")

    count = model.reply_count
    if count == 0:
        print("No replies yet")
        return

    print(f"{count} {'reply' if count == 1 else 'replies'}")
    for row in model.get_display_rows():
        print(_format_row(row))


def _make_client(args: argparse.Namespace, cfg: Any) -> Any:
    if bool(getattr(args, "offline", False)):
        from .offline import OfflineThreadClient

        return OfflineThreadClient(reply_depth=cfg.appview.reply_depth)

    return BlueskyThreadClient(
        cfg.appview,
        max_ancestor_hops=cfg.traversal.max_ancestor_hops,
        max_reply_depth=cfg.traversal.max_reply_depth,
    )


def _cmd_show(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)

    uri = (args.uri or "").strip()
    if not uri:
        if not args.offline:
            raise ConfigError("--uri is required unless --offline is given")
        from .offline import OFFLINE_ROOT_URI

        uri = OFFLINE_ROOT_URI

    keys = [parse_key(token) for token in args.open]

    log = RunLogger.open(Path(args.log)) if args.log else None
    diagnostics = log if log is not None else NullDiagnostics()
    client = _make_client(args, cfg)

    try:
        diagnostics.info("show_command_started", root_uri=uri, config_sha256=config_sha256(cfg))

        model = ThreadViewModel(
            client.fetch_thread,
            viewer_id=args.viewer,
            follow_set_of=client.follow_set_of,
            config=cfg,
            sort_mode=args.sort,
            diagnostics=diagnostics,
        )
        result = model.load(uri)
        if not result.ok:
            message = result.error.message if result.error is not None else "Failed to load thread"
            raise FetchError(message)

        for key in keys:
            model.open_expansion(key)

        _print_thread(model)
        return 0
    finally:
        close = getattr(client, "close", None)
        if callable(close):
            close()
        if log is not None:
            log.close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except FetchError as e:
        _eprint(str(e))
        return 3
    except ValueError as e:
        _eprint(str(e))
        return 2
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
