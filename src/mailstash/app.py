# =============================================================================
# mailstash Command Line
# =============================================================================
# Small inspection tool around the mailbox store:
#
#   mailstash paths                      Print config / data locations
#   mailstash folders                    List all folders with attributes
#   mailstash search INBOX '{"flags": "\\Seen"}'
#                                        Run a search, print UIDs as JSON
#   mailstash parse message.eml          Print the parsed MIME tree as JSON
#
# The mailbox comes from --snapshot FILE (a JSON dataset as written by
# MailboxStore.dump()), or else from the snapshot saved in the blob
# database, with INBOX refreshed from the configured user's bucket.
# =============================================================================

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

from mailstash import __app_name__, __version__
from mailstash.config import Config, ConfigError, print_paths
from mailstash.mime import parse_message
from mailstash.storage import Database, Repository
from mailstash.store import Mailbox, MailboxError, MailboxStore


logger = logging.getLogger(__name__)

# A CLI command run against an opened mailbox, returning an exit code
MailboxCommand = Callable[[Mailbox], Awaitable[int]]


# =============================================================================
# Mailbox Setup
# =============================================================================

def build_store(config: Config) -> MailboxStore:
    """Create an empty store with the configured defaults."""
    return MailboxStore(
        namespaces=config.store.namespaces,
        system_flags=config.store.system_flags,
        allow_permanent_flags=config.store.allow_permanent_flags,
    )


async def run_with_mailbox(config: Config, snapshot: Path | None, command: MailboxCommand) -> int:
    """
    Open the mailbox, run `command(mailbox)` and close everything again.

    Args:
        config: Loaded configuration.
        snapshot: JSON dataset to load instead of the blob database.
        command: Coroutine function taking a Mailbox, returning an exit code.
    """
    store = build_store(config)

    if snapshot is not None:
        with open(snapshot, encoding="utf-8") as f:
            store.load(json.load(f))
        return await command(Mailbox(store))

    db_path = config.blob_database
    if not db_path.exists():
        logger.info(f"No blob database at {db_path}, starting with an empty mailbox")
        return await command(Mailbox(store))

    db = Database(db_path)
    await db.connect()
    try:
        repo = Repository(db, bucket=config.bucket, page_size=config.blobs.page_size)
        data = await repo.load_snapshot(config.blobs.snapshot_key)
        if data:
            store.load(data)
        mailbox = Mailbox(
            store,
            blobs=repo,
            bucket=config.bucket if config.user else None,
            skip_suffix=config.blobs.skip_suffix,
        )
        return await command(mailbox)
    finally:
        await db.close()


# =============================================================================
# Commands
# =============================================================================

async def cmd_folders(mailbox: Mailbox) -> int:
    """Print every folder with its message count and attributes."""
    await mailbox.refresh_inbox()
    for path, folder in mailbox.store.folders.items():
        flags = " ".join(sorted(folder.flags))
        print(f"{path}\t{len(folder.messages)}\t{flags}")
    return 0


def cmd_search(folder: str, query: str) -> MailboxCommand:
    """Build the search command for `folder` and a JSON query."""
    async def run(mailbox: Mailbox) -> int:
        try:
            criteria = json.loads(query)
        except json.JSONDecodeError as e:
            print(f"Invalid query JSON: {e}", file=sys.stderr)
            return 2

        if folder.upper() == "INBOX":
            await mailbox.refresh_inbox()
        result = await mailbox.search(folder, criteria)
        if result.error is not None and result.value is None:
            print(f"Search failed: {result.error}", file=sys.stderr)
            return 1
        if result.error is not None:
            logger.warning(f"Search completed with errors: {result.error}")
        print(json.dumps([hit.to_dict() for hit in result.value]))
        return 0

    return run


def cmd_parse(path: Path) -> int:
    """Print the parsed MIME tree of a message file."""
    root = parse_message(path.read_bytes())
    print(json.dumps(root.to_dict(), indent=2))
    return 0


# =============================================================================
# CLI Entry Point
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="mailstash: mailbox storage engine for IMAP servers",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--snapshot",
        type=Path,
        help="Load the mailbox from a JSON dataset instead of the blob database",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("paths", help="Print configuration paths and exit")
    commands.add_parser("folders", help="List folders")

    search = commands.add_parser("search", help="Search a folder")
    search.add_argument("folder", help="Folder path, e.g. INBOX")
    search.add_argument("query", help='Query as JSON, e.g. \'{"flags": "\\\\Seen"}\'')

    parse = commands.add_parser("parse", help="Print the MIME tree of a message file")
    parse.add_argument("file", type=Path)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for mailstash.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_args(argv)

    try:
        config = Config.load(args.config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.debug else config.logging.level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.command == "paths":
        print_paths()
        return 0

    if args.command == "parse":
        return cmd_parse(args.file)

    command = cmd_folders if args.command == "folders" else cmd_search(args.folder, args.query)
    try:
        return asyncio.run(run_with_mailbox(config, args.snapshot, command))
    except MailboxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
