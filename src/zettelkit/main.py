#!/usr/bin/env python
"""Command-line entry point for zettelkit."""
import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from zettelkit import __version__
from zettelkit.config import config
from zettelkit.exceptions import (
    NoteFileNotFoundError,
    PropagationError,
    StorageError,
    ValidationError,
    ZettelkitError,
)
from zettelkit.models.schema import Note
from zettelkit.observability import configure_logging, metrics
from zettelkit.services.backlink_service import BacklinkService
from zettelkit.services.graph_service import GraphService
from zettelkit.services.interaction import always_yes, confirm
from zettelkit.services.rename_service import RenameService
from zettelkit.services.sync_service import SyncService
from zettelkit.storage.note_index import NoteIndex

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="zettelkit", description="Keep a Zettelkasten and its index in sync"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--dir", help="Zettelkasten directory", type=str)
    parser.add_argument("--database-path", help="SQLite index file path", type=str)
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "-y", "--yes", action="store_true", help="Answer yes to every prompt"
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser("new", help="Create a note and open it in the editor")
    p.add_argument("title")
    p.add_argument("-p", "--project", default=None)
    p.set_defaults(func=cmd_new)

    p = sub.add_parser("rename", help="Rename a note and update the links to it")
    p.add_argument("title")
    p.add_argument("new_title")
    p.add_argument("-p", "--project", default=None)
    p.set_defaults(func=cmd_rename)

    p = sub.add_parser("mv", help="Move matching notes into a project ('' for main)")
    p.add_argument("pattern")
    p.add_argument("project")
    p.set_defaults(func=cmd_mv)

    p = sub.add_parser("update", help="Re-index note files after editing them")
    p.add_argument("files", nargs="+", metavar="FILE")
    p.set_defaults(func=cmd_update)

    p = sub.add_parser("query", help="List notes whose title matches a glob")
    p.add_argument("pattern", nargs="?", default="*")
    p.set_defaults(func=cmd_query)

    p = sub.add_parser("find", help="List notes with a tag or any tag below it")
    p.add_argument("tag")
    p.set_defaults(func=cmd_find)

    p = sub.add_parser("tags", help="List every tag")
    p.add_argument("-c", "--count", action="store_true", help="Show note counts")
    p.set_defaults(func=cmd_tags)

    p = sub.add_parser("projects", help="List every project")
    p.set_defaults(func=cmd_projects)

    p = sub.add_parser("links", help="List the links of matching notes")
    p.add_argument("pattern", nargs="?", default="*")
    p.set_defaults(func=cmd_links)

    p = sub.add_parser("backlinks", help="List the notes linking to matching notes")
    p.add_argument("pattern", nargs="?", default="*")
    p.add_argument(
        "-w", "--write", action="store_true",
        help="Write a '## Backlinks' section into each matching note",
    )
    p.set_defaults(func=cmd_backlinks)

    p = sub.add_parser("isolated", help="List notes with no links in or out")
    p.set_defaults(func=cmd_isolated)

    p = sub.add_parser("search", help="List notes whose text contains a string")
    p.add_argument("text")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("generate", help="Rebuild the index from the files")
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("ghosts", help="List linked titles that have no note yet")
    p.set_defaults(func=cmd_ghosts)

    p = sub.add_parser("ls", help="List every note")
    p.set_defaults(func=cmd_ls)

    p = sub.add_parser("zk", help="Print the Zettelkasten directory")
    p.set_defaults(func=cmd_zk)

    return parser.parse_args(argv)


def update_config(args: argparse.Namespace) -> None:
    """Update the global config with command line arguments."""
    if args.dir:
        config.zettelkasten_dir = Path(args.dir).expanduser()
    if args.database_path:
        config.database_path = Path(args.database_path).expanduser()
    if args.log_level:
        config.log_level = args.log_level


def print_notes(notes: Iterable[Note]) -> None:
    """Print ``[project] title`` for every note."""
    for note in notes:
        print(note.label)


def print_strings(items: Iterable[str]) -> None:
    for item in items:
        print(item)


# ----------------------------------------------------------------------
# Subcommands
# ----------------------------------------------------------------------


def cmd_new(args, index: NoteIndex) -> int:
    result = SyncService(index).create(args.title, args.project)
    if not result.created_file:
        print("file exists in the filesystem but not in the index; added entry")
    print(result.note.label)
    return 0


def cmd_rename(args, index: NoteIndex) -> int:
    service = RenameService(index, confirm=args.confirm)
    result = service.rename(args.title, args.new_title, args.project)
    if not result.applied:
        return 0
    for outcome in result.rewritten:
        print(f"    | {outcome.note.label}")
    if result.failures:
        raise PropagationError(
            result.old_title,
            result.new_title,
            total_count=len(result.outcomes),
            failed_titles=[o.note.title for o in result.failures],
        )
    return 0


def cmd_mv(args, index: NoteIndex) -> int:
    result = RenameService(index, confirm=args.confirm).move(args.pattern, args.project)
    for note in result.skipped:
        print(f"already there: {note.label}")
    print_notes(result.moved)
    for outcome in result.failures:
        print(f"error: could not move {outcome.note.label}: {outcome.error}", file=sys.stderr)
    return 1 if result.failures else 0


def cmd_update(args, index: NoteIndex) -> int:
    service = SyncService(index)
    status = 0
    for file in args.files:
        try:
            service.update(Path(file))
        except (NoteFileNotFoundError, ValidationError) as e:
            print(f"error: {file}: {e.message}", file=sys.stderr)
            status = 1
    return status


def cmd_query(args, index: NoteIndex) -> int:
    print_notes(index.find_by_title(args.pattern))
    return 0


def cmd_find(args, index: NoteIndex) -> int:
    print_notes(GraphService(index).notes_with_tag(args.tag))
    return 0


def cmd_tags(args, index: NoteIndex) -> int:
    if args.count:
        for name, count in index.tag_counts().items():
            print(f"{name} ({count})")
    else:
        print_strings(index.list_tags())
    return 0


def cmd_projects(args, index: NoteIndex) -> int:
    print_strings(index.list_projects())
    return 0


def cmd_links(args, index: NoteIndex) -> int:
    for note in GraphService(index).outgoing(args.pattern):
        print(note.label)
        for link in note.links:
            print(f"    | {link}")
    return 0


def cmd_backlinks(args, index: NoteIndex) -> int:
    if args.write:
        outcomes = BacklinkService(index).update_matching(args.pattern)
        failed = 0
        for outcome in outcomes:
            if outcome.ok:
                print(outcome.note.label)
            else:
                failed += 1
                print(f"error: {outcome.note.label}: {outcome.error}", file=sys.stderr)
        return 1 if failed else 0
    for note, sources in GraphService(index).backlinks(args.pattern):
        print(note.label)
        for source in sources:
            print(f"    | {source.label}")
    return 0


def cmd_isolated(args, index: NoteIndex) -> int:
    print_notes(GraphService(index).isolated())
    return 0


def cmd_search(args, index: NoteIndex) -> int:
    print_notes(index.search_text(args.text))
    return 0


def cmd_generate(args, index: NoteIndex) -> int:
    count = SyncService(index).regenerate()
    print(f"index generated successfully: {count} notes")
    return 0


def cmd_ghosts(args, index: NoteIndex) -> int:
    print_strings(GraphService(index).ghosts())
    return 0


def cmd_ls(args, index: NoteIndex) -> int:
    print_notes(index.all())
    return 0


def cmd_zk(args, index: Optional[NoteIndex]) -> int:
    print(config.zettelkasten_dir)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run one zettelkit command and return its exit status."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, config.log_level, logging.WARNING)
    configure_logging(level=log_level, log_dir=config.log_dir, console=True)

    args.confirm = always_yes if args.yes else confirm

    if args.func is cmd_zk:
        return cmd_zk(args, None)

    index = None
    try:
        index = NoteIndex(config.zettelkasten_dir, config.get_db_path())
        return args.func(args, index)
    except StorageError as e:
        logger.error(f"Index failure during '{args.command}': {e}")
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    except ZettelkitError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    finally:
        if index is not None:
            index.close()
        metrics.log_summary()


if __name__ == "__main__":
    sys.exit(main())
