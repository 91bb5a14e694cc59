"""Command-line interface for the teleprompter.

WHY: Operators need to run the HTTP service, and authors want to see how
a text scrolls at a given width and speed without wiring up a display
service. Both go through one command.

HOW: argparse with two subcommands:
  serve   — run the FastAPI app under uvicorn
  preview — scroll a text file in this terminal. Builds a coordinator
            with an in-memory settings source holding the command-line
            values and a ConsoleTransport, opens one session and runs the
            asyncio event loop until the session stops (IDLE) or Ctrl-C.

RULES:
- Status and log output go to stderr; frames go to stdout
- --verbose switches logging to DEBUG
- Exit code 1 for unreadable input, 130 for Ctrl-C
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from teleprompter.api.settings_client import InMemorySettingsSource
from teleprompter.config import (
    DEFAULT_LINE_WIDTH_SETTING,
    DEFAULT_NUMBER_OF_LINES,
    DEFAULT_SCROLL_SPEED,
    DEFAULT_TICK_INTERVAL_MS,
    HOST,
    PORT,
)
from teleprompter.session.coordinator import TeleprompterCoordinator
from teleprompter.session.scheduler import AsyncioScheduler
from teleprompter.transport.console import ConsoleTransport

logger = logging.getLogger(__name__)

PREVIEW_VIEWER_ID = "preview"
PREVIEW_SESSION_ID = "preview-session"

# How often the preview checks whether its session is still running
_POLL_INTERVAL_S = 0.2


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _preview_settings(args: argparse.Namespace, text: str) -> dict:
    return {
        "custom_text": text,
        "line_width": args.width,
        "number_of_lines": args.lines,
        "scroll_speed": args.wpm,
        "auto_replay": args.replay,
    }


async def _run_preview(args: argparse.Namespace, text: str) -> None:
    """Scroll ``text`` in the terminal until the teleprompter goes idle."""
    coordinator = TeleprompterCoordinator(
        scheduler=AsyncioScheduler(),
        transport=ConsoleTransport(),
        settings_source=InMemorySettingsSource({PREVIEW_VIEWER_ID: _preview_settings(args, text)}),
        startup_delay_ms=args.startup_delay,
    )
    session = await coordinator.on_session_start(PREVIEW_SESSION_ID, PREVIEW_VIEWER_ID)
    engine = coordinator.store.get_engine(PREVIEW_VIEWER_ID)
    if engine is not None:
        engine.set_tick_interval(args.interval)

    try:
        while coordinator.loop.is_running(session):
            await asyncio.sleep(_POLL_INTERVAL_S)
    finally:
        coordinator.shutdown()


def _cmd_serve(args: argparse.Namespace) -> None:
    from teleprompter.server.app import run_api

    run_api(host=args.host, port=args.port)


def _cmd_preview(args: argparse.Namespace) -> None:
    path = Path(args.file)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _status("Error: cannot read {}: {}".format(path, e))
        sys.exit(1)

    try:
        asyncio.run(_run_preview(args, text))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() lets tests inspect
    the parser without starting a server or an event loop.
    """
    parser = argparse.ArgumentParser(
        prog="teleprompter",
        description="Timed scrolling text for per-viewer display sessions.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=HOST, help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=PORT, help="Port (default: %(default)s).")
    serve.set_defaults(func=_cmd_serve)

    preview = subparsers.add_parser("preview", help="Scroll a text file in this terminal.")
    preview.add_argument("file", help="Path to a UTF-8 text file.")
    preview.add_argument(
        "--width",
        default=DEFAULT_LINE_WIDTH_SETTING,
        help="Width preset (Very Narrow, Narrow, Medium, Wide, Very Wide) or characters "
             "(default: %(default)s).",
    )
    preview.add_argument(
        "--lines",
        type=int,
        default=DEFAULT_NUMBER_OF_LINES,
        help="Number of visible lines (default: %(default)s).",
    )
    preview.add_argument(
        "--wpm",
        type=float,
        default=DEFAULT_SCROLL_SPEED,
        help="Scroll speed in words per minute (default: %(default)s).",
    )
    preview.add_argument(
        "--interval",
        type=int,
        default=DEFAULT_TICK_INTERVAL_MS,
        help="Milliseconds between scroll ticks (default: %(default)s).",
    )
    preview.add_argument(
        "--replay",
        action="store_true",
        help="Restart from the top after the end banner (stop with Ctrl-C).",
    )
    preview.add_argument(
        "--startup-delay",
        type=int,
        default=1000,
        help="Milliseconds before scrolling starts (default: %(default)s).",
    )
    preview.set_defaults(func=_cmd_preview)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m teleprompter`` and the console script.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
