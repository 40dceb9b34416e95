"""Command-line entry point for Inbox Canon."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from inbox_canon.content.preview import generate_preview
from inbox_canon.core import AppSettings, build_container, configure_logging, load_app_settings
from inbox_canon.core.models import MessageSource
from inbox_canon.ingestion import EmailParser, LoadResult, RawMessageParseError
from inbox_canon.transport import ImapClient, ImapError


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Inbox Canon message normalizer")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "render", "preview", "sync"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=None,
        help="Message file (.eml or .json record) for render and preview.",
    )
    parser.add_argument(
        "--source",
        default=None,
        help="Source tag for the record (default: import for .eml, local for .json).",
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=["html", "text", "display"],
        default="html",
        help="Rendering printed by the render command (default: html).",
    )
    parser.add_argument(
        "--max-length",
        dest="max_length",
        type=int,
        default=80,
        help="Preview length for the preview command (default: 80).",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return an exit code."""
    command = args.command
    if command == "info":
        print("Inbox Canon is ready.")
        print(f"IMAP host: {settings.imap.host}")
        print(f"Sanitization mode: {settings.content.sanitization_mode}")
        print(f"Processing mode: {settings.content.processing_mode}")
        print(f"Id strategy: {settings.standardizer.id_strategy}")
        return 0
    if command in ("render", "preview"):
        if args.path is None:
            print(f"The {command} command requires a message file path.")
            return 2
        return _run_render(settings, args)
    if command == "sync":
        return _run_sync(settings)
    return 2


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    return execute(args, settings)


def load_record(path: Path) -> tuple[dict[str, Any], MessageSource]:
    """Read a ``.eml`` or ``.json`` file into a source record."""
    if path.suffix.lower() == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{path} does not contain a JSON object")
        return data, MessageSource.LOCAL
    return EmailParser().parse(path.read_bytes()), MessageSource.IMPORT


def _run_render(settings: AppSettings, args: argparse.Namespace) -> int:
    try:
        record, default_source = load_record(args.path)
    except (OSError, ValueError, RawMessageParseError) as exc:
        print(f"Unable to read {args.path}: {exc}")
        return 1

    container = build_container(settings)
    message = container.resolve("standardizer").standardize(
        record, args.source or default_source
    )
    if args.command == "preview":
        print(generate_preview(message, args.max_length))
        return 0

    if args.output_format == "display":
        is_promotional = container.resolve("promotional").is_promotional(message)
        print(container.resolve("display").process(message, is_promotional=is_promotional).content)
        return 0

    result = container.resolve("transformer").transform_message(message)
    print(result.html if args.output_format == "html" else result.plain_text)
    return 0


def _run_sync(settings: AppSettings) -> int:
    """Fetch recent mailbox messages, run a load cycle and summarise it."""
    parser = EmailParser()
    records: list[dict[str, Any]] = []
    try:
        with ImapClient(settings.imap) as mailbox:
            for chunk in mailbox.fetch_since(None, settings.sync.batch_size):
                try:
                    record = parser.parse(chunk.raw)
                except RawMessageParseError as exc:
                    print(f"Skipping UID {chunk.uid}: {exc}")
                    continue
                record["id"] = str(chunk.uid)
                records.append(record)
                if settings.sync.max_messages and len(records) >= settings.sync.max_messages:
                    break
    except ImapError as exc:
        print(f"Sync failed: {exc}")
        return 1

    pipeline = build_container(settings).resolve("pipeline")
    result: LoadResult = asyncio.run(pipeline.load(records, MessageSource.MAILBOX_PROTOCOL))
    _print_summary(result)
    return 0


def _print_summary(result: LoadResult) -> None:
    print(
        f"Loaded {result.stats.total} message(s) in {len(result.conversations)} conversation(s)."
    )
    if not result.conversations:
        return
    header = f"{'Unread':>6}  {'Msgs':>4}  {'Att':<3}  Subject"
    print(header)
    print("-" * len(header))
    for conversation in result.conversations.values():
        attachments = "yes" if conversation.has_attachments else "-"
        print(
            f"{conversation.unread_count:>6}  {len(conversation.emails):>4}  "
            f"{attachments:<3}  {conversation.subject}"
        )


if __name__ == "__main__":
    raise SystemExit(main())
