"""Command-line front door for tapr.

Parses CLI options, merges them over the JSON config, and builds the
run controller. Then dispatches into the interactive UI or a plain report.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .app import ViewOptions, run_interactive, run_once
from .config import load_settings
from .diagnostics import QueryError, compile_query
from .logs import configure_logging
from .runner import RunController, split_command


def stdio_is_tty() -> bool:
    try:
        return os.isatty(sys.stdin.fileno()) and os.isatty(sys.stdout.fileno())
    except (OSError, ValueError):
        return False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tapr",
        description="Run a test command, parse its TAP output, and browse the failures.",
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Test command producing TAP on stdout.")
    parser.add_argument("--build", metavar="CMD", default=None, help="Command to run before each test run.")
    parser.add_argument(
        "--location-query",
        metavar="EXPR",
        default=None,
        help="jq program over diagnostic YAML yielding file:line strings (default: .failure.location).",
    )
    parser.add_argument("--style", default=None, help="Pygments style name for previews.")
    parser.add_argument("--no-preview", action="store_true", help="Do not show source previews.")
    parser.add_argument("--no-color", action="store_true", help="Disable syntax colors in previews.")
    parser.add_argument("--no-tui", action="store_true", help="Run once and print a plain report.")
    parser.add_argument("--cwd", metavar="DIR", default=None, help="Directory to run commands in.")
    parser.add_argument("--log-file", metavar="PATH", default=None, help="Write debug logs to PATH.")
    parser.add_argument("--log-level", metavar="LEVEL", default=None, help="Log level for --log-file.")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run tapr; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("a test command is required, e.g. tapr -- node --test")

    configure_logging(Path(args.log_file) if args.log_file else None, args.log_level)
    settings = load_settings()

    location_query = args.location_query or settings.location_query
    try:
        compile_query(location_query)
    except QueryError as exc:
        parser.error(str(exc))

    cwd = Path(args.cwd).resolve() if args.cwd else None
    if cwd is not None and not cwd.is_dir():
        parser.error(f"not a directory: {cwd}")

    build_text = args.build if args.build is not None else settings.build_command
    build_command = split_command(build_text) if build_text else None

    controller = RunController(tuple(command), build_command, cwd=cwd)

    if args.no_tui or not stdio_is_tty():
        return run_once(controller, location_query)

    options = ViewOptions(
        location_query=location_query,
        style=args.style or settings.style,
        preview=settings.preview and not args.no_preview,
        no_color=args.no_color,
        base_dir=cwd or Path.cwd(),
    )
    run_interactive(controller, options)
    return 0


def entrypoint() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    entrypoint()
