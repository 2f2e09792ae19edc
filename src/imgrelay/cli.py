"""
Command Line Interface for imgrelay.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TextIO

from .config import RelayConfig, describe_policy
from .errors import PersistenceError
from .models import Item, ItemStatus
from .observability import get_logger
from .persistence import JsonFileHistoryStore
from .pipeline import IngestionScheduler, sources_from_paths
from .transfer import AsyncTransferClient
from .transform import TransformEngine

DEFAULT_HISTORY = "~/.imgrelay/history.json"


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure package logging."""
    logger = get_logger("imgrelay")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    return logger


def get_config(args: argparse.Namespace) -> RelayConfig:
    """Get relay configuration from environment and CLI overrides.

    Both ``upload`` and ``history`` fall back to :data:`DEFAULT_HISTORY`
    when neither ``--history`` nor ``IMGRELAY_HISTORY`` is given.
    """
    config = RelayConfig.from_env(
        cloud_name=getattr(args, "cloud_name", None),
        upload_preset=getattr(args, "upload_preset", None),
        folder=getattr(args, "folder", None),
        base_url=getattr(args, "base_url", None),
        history_path=getattr(args, "history", None),
    )
    if not config.history_path:
        config.history_path = DEFAULT_HISTORY
    return config


def format_item(item: Item) -> str:
    """One output line per item: status, name, dimensions, URL or error."""
    detail = item.remote_ref if item.status == ItemStatus.COMPLETED else item.error_message
    return f"{item.status.value:<9} {item.name}  {item.dimensions or '-'}  {detail or ''}".rstrip()


async def run_upload(
    config: RelayConfig,
    paths: list[str],
    out: TextIO,
    logger: logging.Logger,
) -> list[Item]:
    """Submit *paths* and drive them to completion; returns the new items.

    Raises
    ------
    PersistenceError
        If the configured history file cannot be read.
    """
    sources, rejected = sources_from_paths(paths, config.accepted_media_prefix)
    for error in rejected:
        logger.warning(
            "Skipping file",
            extra={"extra_fields": {"op": "submit", "error": error.message}},
        )
        print(f"SKIPPED   {error.context.get('name', '')}  {error.message}", file=out)

    history = JsonFileHistoryStore(config.history_path) if config.history_path else None

    def on_transition(item: Item, previous: ItemStatus) -> None:
        if item.status.is_terminal:
            print(format_item(item), file=out, flush=True)

    async with AsyncTransferClient(config) as transfer:
        scheduler = IngestionScheduler(
            TransformEngine(),
            transfer,
            metrics=config.metrics,
            history=history,
        )
        if history is not None:
            scheduler.restore_history()
        scheduler.subscribe(on_transition)
        async with scheduler:
            submitted = scheduler.submit(sources)
            try:
                await scheduler.join()
            except asyncio.CancelledError:
                scheduler.save_history(include_in_flight=True)
                raise
    return submitted


def cmd_upload(args: argparse.Namespace) -> int:
    """Execute upload command."""
    logger = setup_logging(args.verbose)
    config = get_config(args)

    missing = [
        flag for flag, value in (
            ("--cloud-name", config.cloud_name),
            ("--upload-preset", config.upload_preset),
        ) if not value
    ]
    if missing:
        print(f"Error: missing {', '.join(missing)} (or IMGRELAY_* environment)", file=sys.stderr)
        return 2

    try:
        items = asyncio.run(run_upload(config, args.paths, sys.stdout, logger))
    except PersistenceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    failed = sum(1 for item in items if item.status == ItemStatus.ERROR)
    completed = sum(1 for item in items if item.status == ItemStatus.COMPLETED)
    print(f"\n{completed} uploaded, {failed} failed", file=sys.stderr)
    return 1 if failed else 0


def cmd_history(args: argparse.Namespace) -> int:
    """Execute history command."""
    setup_logging(args.verbose)
    config = get_config(args)
    store = JsonFileHistoryStore(config.history_path)

    try:
        records = store.load()
    except PersistenceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if args.urls:
        for record in reversed(records):
            if record.status == ItemStatus.COMPLETED and record.remote_ref:
                print(record.remote_ref)
        return 0

    if args.json:
        print(json.dumps([r.to_dict() for r in records], indent=2))
        return 0

    for record in records:
        detail = record.remote_ref if record.status == ItemStatus.COMPLETED else record.error_message
        print(f"{record.status.value:<9} {record.name}  {record.dimensions or '-'}  {detail or ''}".rstrip())
    return 0


def cmd_policy(args: argparse.Namespace) -> int:
    """Execute policy command."""
    for key, value in describe_policy().items():
        print(f"{key:<17} {value}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="imgrelay",
        description="Resize images to WebP and upload them to a remote asset store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Upload a batch (config from IMGRELAY_* environment variables)
  imgrelay upload photos/*.jpg

  # Explicit destination and history file
  imgrelay upload --cloud-name demo --upload-preset unsigned --folder products a.png b.png

  # All uploaded URLs, newest first (history defaults to {DEFAULT_HISTORY})
  imgrelay history --urls
"""
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    upload_parser = subparsers.add_parser("upload", help="Normalize and upload images")
    upload_parser.add_argument("paths", nargs="+", help="Image files to upload")
    upload_parser.add_argument("--cloud-name", help="Remote store account name")
    upload_parser.add_argument("--upload-preset", help="Unsigned upload preset")
    upload_parser.add_argument("--folder", help="Target folder")
    upload_parser.add_argument("--base-url", help="API root URL override")
    upload_parser.add_argument("--history", help=f"History file (default: {DEFAULT_HISTORY})")
    upload_parser.set_defaults(func=cmd_upload)

    history_parser = subparsers.add_parser("history", help="Show stored results")
    history_parser.add_argument("--history", help=f"History file (default: {DEFAULT_HISTORY})")
    history_parser.add_argument("--urls", action="store_true", help="Print only URLs, newest first")
    history_parser.add_argument("--json", action="store_true", help="Print raw records as JSON")
    history_parser.set_defaults(func=cmd_history)

    policy_parser = subparsers.add_parser("policy", help="Show the fixed resize/encode policy")
    policy_parser.set_defaults(func=cmd_policy)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
