"""CLI for scholia - a small notes backend."""

import argparse
import platform
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .adapters.markdown_export import MarkdownExporter
from .core.errors import NotFoundError, ScholiaError
from .core.model import Note
from .logs import setup_logging
from .runtime import build_runtime


def _user(args: argparse.Namespace, rt: Any) -> str:
    return args.user or rt.config.auth.default_user


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


def cmd_ls(args: argparse.Namespace, rt: Any) -> int:
    """List notes, most recently modified first."""
    notes = rt.store.list_all(_user(args, rt))

    if args.format == "json":
        print(rt.codec.encode_many(notes))
        return 0

    for note in notes:
        print(f"{note.id}\t{note.last_modified}\t{_first_line(note.content)}")
    return 0


def cmd_find(args: argparse.Namespace, rt: Any) -> int:
    """Substring search over note content."""
    notes = rt.store.search(args.query, _user(args, rt))
    for note in notes:
        print(f"{note.id}\t{_first_line(note.content)}")
    return 0


def cmd_show(args: argparse.Namespace, rt: Any) -> int:
    """Print a note as JSON."""
    try:
        note = rt.store.get(args.id, _user(args, rt))
    except NotFoundError:
        print(f"Note {args.id} not found", file=sys.stderr)
        return 1
    print(rt.codec.encode(note))
    return 0


def cmd_new(args: argparse.Namespace, rt: Any) -> int:
    """Create a new note."""
    note = Note(content=args.content, tags=list(args.tag))
    created = rt.store.create(note, _user(args, rt))
    print(created.id)
    return 0


def cmd_rm(args: argparse.Namespace, rt: Any) -> int:
    """Delete a note."""
    try:
        rt.store.delete(args.id, _user(args, rt))
    except NotFoundError:
        print(f"Note {args.id} not found", file=sys.stderr)
        return 1
    return 0


def cmd_export(args: argparse.Namespace, rt: Any) -> int:
    """Export notes as Markdown files with YAML frontmatter."""
    notes = rt.store.list_all(_user(args, rt))
    written = MarkdownExporter(args.out).export(notes)
    print(f"Exported {len(written)} notes to {args.out}")
    return 0


def cmd_serve(args: argparse.Namespace, rt: Any) -> int:
    """Start the JSON API server."""
    import uvicorn

    from .api.app import create_app, generate_token

    # Determine token
    token_arg = args.token
    token = None

    if token_arg == "auto":
        token = generate_token()
        print(f"Generated bearer token: {token}")
        print(f"Use in requests: Authorization: Bearer {token}")
    elif token_arg == "none":
        print("Warning: Running without authentication. Only use in trusted environments.")
        token = None
    else:
        token = token_arg

    enable_cors = args.cors or rt.config.server.cors
    app = create_app(rt, token=token, enable_cors=enable_cors)

    host = args.host or rt.config.server.host
    port = args.port or rt.config.server.port

    print(f"Starting server on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())

    return 0


def _version_string() -> str:
    return (
        f"scholia {__version__} "
        f"(python {platform.python_version()}, platform {platform.system().lower()})"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scholia", description="Scholia notes backend")
    parser.add_argument("--version", action="version", version=_version_string())
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/scholia.toml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to SQLite database (overrides config)",
    )
    parser.add_argument(
        "--user", default=None, help="Owner of the notes (default: auth.default_user)"
    )
    parser.add_argument(
        "--log-level", default=None, help="Logging level (default: log.level from config)"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # ls command
    parser_ls = subparsers.add_parser("ls", help="List notes")
    parser_ls.add_argument("--format", choices=["json"], help="Output format (json)")

    # find command
    parser_find = subparsers.add_parser("find", help="Substring search")
    parser_find.add_argument("query", help="Text to look for (case-sensitive)")

    # show command
    parser_show = subparsers.add_parser("show", help="Print a note as JSON")
    parser_show.add_argument("id", help="Note ID")

    # new command
    parser_new = subparsers.add_parser("new", help="Create a note")
    parser_new.add_argument("content", help="Note content")
    parser_new.add_argument(
        "--tag", action="append", default=[], help="Tag (repeatable)"
    )

    # rm command
    parser_rm = subparsers.add_parser("rm", help="Delete a note")
    parser_rm.add_argument("id", help="Note ID")

    # export command
    parser_export = subparsers.add_parser("export", help="Export notes to Markdown")
    parser_export.add_argument("--out", type=Path, required=True, help="Output directory")

    # serve command
    parser_serve = subparsers.add_parser("serve", help="Start the JSON API server")
    parser_serve.add_argument("--host", default=None, help="Bind host (default: server.host)")
    parser_serve.add_argument("--port", type=int, default=None, help="Bind port (default: server.port)")
    parser_serve.add_argument(
        "--token", default="auto",
        help="Bearer token: 'auto' to generate, 'none' to disable, or a literal token",
    )
    parser_serve.add_argument("--cors", action="store_true", help="Enable CORS")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    handlers = {
        "ls": cmd_ls,
        "find": cmd_find,
        "show": cmd_show,
        "new": cmd_new,
        "rm": cmd_rm,
        "export": cmd_export,
        "serve": cmd_serve,
    }

    try:
        rt = build_runtime(config_path=args.config, db_path=args.db)
    except ScholiaError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    args.log_level = args.log_level or rt.config.log.level
    setup_logging(args.log_level)

    handler = handlers[args.cmd]
    try:
        exit_code = handler(args, rt)
    except ScholiaError as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    finally:
        rt.close()
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
