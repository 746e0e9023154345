"""Command-line access to the persisted bookmark file.

Lists, adds, removes, and prunes bookmarks outside an editor by driving a
``Waymark`` session over a ``HeadlessHost``. Every mutating command finishes
with the same synchronous save an editor performs at shutdown.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import load_config
from .filter import BufferFilter
from .host import HeadlessHost
from .paths import format_path, line_preview
from .preview import highlight_line
from .session import Waymark


def _positive_int(value: str) -> int:
    """argparse type for positive integer values."""
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer value: {value!r}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="waymark",
        description="Inspect and edit waymark bookmarks from the command line.",
    )
    parser.add_argument("--bookmarks", metavar="PATH", default=None, help="Bookmark file (default: platform data dir).")
    parser.add_argument("--config", metavar="PATH", default=None, help="JSON config file (default: platform config dir).")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to stderr.")
    commands = parser.add_subparsers(dest="command", required=True)

    list_parser = commands.add_parser("list", help="Print bookmarks, newest first.")
    list_parser.add_argument("--no-color", action="store_true", help="Disable highlighted previews.")
    list_parser.add_argument("--style", default=None, help="Pygments style name for previews.")

    add_parser = commands.add_parser("add", help="Bookmark FILE at ROW.")
    add_parser.add_argument("file")
    add_parser.add_argument("row", type=_positive_int)
    add_parser.add_argument("col", type=_positive_int, nargs="?", default=1)

    remove_parser = commands.add_parser("remove", help="Remove the bookmark shown at INDEX by 'list'.")
    remove_parser.add_argument("index", type=_positive_int)

    commands.add_parser("prune", help="Drop bookmarks whose files were deleted.")
    commands.add_parser("clear", help="Remove every bookmark.")
    commands.add_parser("path", help="Print the bookmark file location.")
    return parser


def _open_session(args: argparse.Namespace) -> tuple[Waymark, HeadlessHost]:
    config = load_config(Path(args.config)) if args.config else load_config()
    if args.bookmarks:
        config = replace(config, bookmarks_file=Path(args.bookmarks).expanduser())
    host = HeadlessHost(buffer_filter=BufferFilter(config))
    return Waymark(host.callbacks(), config), host


def _flush_messages(host: HeadlessHost) -> None:
    for message in host.messages:
        sys.stdout.write(message + "\n")
    for level, message in host.notifications:
        stream = sys.stderr if level >= logging.WARNING else sys.stdout
        stream.write(message + "\n")
    host.messages.clear()
    host.notifications.clear()


def render_listing(session: Waymark, color: bool, style: str) -> str:
    """Indexed bookmark lines with optional Pygments-highlighted previews."""
    out: list[str] = []
    for index, mark in enumerate(session.state.bookmarks, start=1):
        line = f"{index:>3}. {format_path(mark.fname)}:{mark.row}"
        preview = line_preview(mark.fname, mark.row)
        if preview:
            shown = highlight_line(preview, mark.fname, style) if color else preview
            line += f"  │ {shown}"
        out.append(line)
    if not out:
        return "No bookmarks saved\n"
    return "\n".join(out) + "\n"


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run one bookmark command."""
    args = _build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s:%(name)s:%(message)s")

    session, host = _open_session(args)

    if args.command == "path":
        sys.stdout.write(f"{session.bookmarks_path}\n")
        return

    if args.command == "list":
        session.bookmarks.load()
        color = not args.no_color and sys.stdout.isatty()
        style = args.style or session.config.preview_style
        _flush_messages(host)
        sys.stdout.write(render_listing(session, color, style))
        return

    session.startup()
    if args.command == "add":
        target = Path(args.file)
        if not target.is_file():
            raise SystemExit(f"Path not found: {target}")
        host.set_cursor(str(target), args.row, args.col)
        session.add_bookmark()
    elif args.command == "remove":
        if args.index > len(session.state.bookmarks):
            raise SystemExit(f"Invalid bookmark index: {args.index}")
        session.bookmarks.remove_by_id(session.state.bookmarks[args.index - 1].id)
        host.echo(f"Removed bookmark {args.index}")
    elif args.command == "clear":
        session.clear_bookmarks()
    elif args.command == "prune":
        # startup() already pruned; report the outcome.
        host.echo(f"{len(session.state.bookmarks)} bookmarks remain")

    if not session.shutdown():
        _flush_messages(host)
        raise SystemExit(f"Failed to save bookmarks to {session.bookmarks_path}")
    _flush_messages(host)


if __name__ == "__main__":
    main()
