from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .kernel.link_store import LinkStore
from .kernel.settings import ConfigError, load_settings
from .util.file_lock import LockUnavailableError
from .util.obslog import setup_root_json_logging


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def cmd_run(args: argparse.Namespace) -> int:
    from .ports.im.bridge import start_bot

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1
    if args.store:
        settings.store_path = Path(args.store).expanduser()

    setup_root_json_logging(component="linkguard", level=args.log_level or settings.log_level)
    try:
        start_bot(settings)
    except LockUnavailableError:
        print("[error] Another linkguard instance is already running", file=sys.stderr)
        return 1
    return 0


def cmd_links(args: argparse.Namespace) -> int:
    if args.store:
        store_path = Path(args.store).expanduser()
    else:
        try:
            store_path = load_settings(require_token=False).store_path
        except ConfigError as e:
            print(f"[error] {e}", file=sys.stderr)
            return 1
    store = LinkStore(store_path)
    _print_json({str(cid): store.get(cid) for cid in sorted(store.list())})
    return 0


def cmd_version(_: argparse.Namespace) -> int:
    print(__version__)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="linkguard", description="Subscription guard bot for Telegram groups")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run the bot (long polling) until interrupted")
    p_run.add_argument("--store", default="", help="Link store JSON file (default: from settings)")
    p_run.add_argument("--log-level", default="", help="Override log level (DEBUG, INFO, ...)")
    p_run.set_defaults(func=cmd_run)

    p_links = sub.add_parser("links", help="Print the managed chats and their linked chats")
    p_links.add_argument("--store", default="", help="Link store JSON file (default: from settings)")
    p_links.set_defaults(func=cmd_links)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
