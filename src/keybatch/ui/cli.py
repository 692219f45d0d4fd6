from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from keybatch.adapters.codec import encode_properties
from keybatch.app import format_key, load_records, load_remote_records, parse_key, store_record
from keybatch.config import configure_logging
from keybatch.domain.records import Record

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from keybatch.domain.keys import Key

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Batch-load records by key")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log round traffic")
    subparsers = parser.add_subparsers(dest="command", required=True)

    get = subparsers.add_parser("get", help="Load records in one batch and print them as JSON")
    get.add_argument("keys", nargs="+", help="Key paths such as Author:1/Book:dune")
    get.add_argument(
        "--group",
        action="append",
        default=[],
        help="Activate a load group (repeatable; adds to KEYBATCH_LOAD_GROUPS)",
    )
    get.add_argument(
        "--remote",
        action="store_true",
        help="Fetch from KEYBATCH_REMOTE_URL instead of the local database",
    )

    put = subparsers.add_parser("put", help="Store one record in the local database")
    put.add_argument("key", help="Key path of the record")
    put.add_argument(
        "--property",
        "-p",
        action="append",
        default=[],
        metavar="NAME=JSON",
        help="Property value as JSON (bare words are stored as strings)",
    )
    put.add_argument(
        "--ref",
        "-r",
        action="append",
        default=[],
        metavar="NAME=KEY",
        help="Property holding a key path",
    )
    return parser.parse_args(list(argv))


def _split_assignment(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise ValueError(f"Expected NAME=VALUE, got {text!r}")
    return name, value


def _parse_json_value(value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _build_record(args: argparse.Namespace) -> Record:
    key = parse_key(args.key)
    properties: dict[str, Any] = {}
    for item in args.property:
        name, value = _split_assignment(item)
        properties[name] = _parse_json_value(value)
    for item in args.ref:
        name, value = _split_assignment(item)
        properties[name] = parse_key(value)
    return Record.of(key, **properties)


def _render(found: dict[Key[Any], object]) -> str:
    rendered: dict[str, object] = {}
    for key, value in found.items():
        if isinstance(value, Record):
            rendered[format_key(key)] = encode_properties(value.properties)
        else:
            rendered[format_key(key)] = repr(value)
    return json.dumps(rendered, indent=2, sort_keys=True, default=str)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        keys = (
            [parse_key(text) for text in parsed_args.keys] if parsed_args.command == "get" else []
        )
        record = _build_record(parsed_args) if parsed_args.command == "put" else None
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "get":
            loader = load_remote_records if parsed_args.remote else load_records
            found = loader(keys, groups=parsed_args.group)
            print(_render(found))  # noqa: T201
        elif record is not None:
            store_record(record)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
