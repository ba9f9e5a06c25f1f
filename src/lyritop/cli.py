"""CLI entry point for lyritop."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import NoReturn

import dbus

from lyritop.config import UPDATE_INTERVAL, ConfigManager
from lyritop.core import LyriTop
from lyritop.display import PipeSink, TerminalSink
from lyritop.exceptions import ConfigurationError, LyriTopError
from lyritop.logging_config import setup_logging
from lyritop.mpris import MprisProvider, friendly_name, list_players

_DIM = "\033[2m"
_BOLD = "\033[1m"
_RESET = "\033[0m"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lyritop",
        description="Show the current line of local synced lyrics for whatever is playing.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.json (default: ~/.config/lyritop/config.json).",
    )
    parser.add_argument(
        "--lyric-file",
        action="append",
        default=[],
        metavar="PATH",
        help="Extra lyric mapping file, loaded after the configured ones. Repeatable.",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        metavar="MS",
        help="Override the position poll interval in milliseconds.",
    )
    parser.add_argument(
        "--pipe",
        action="store_true",
        help="Plain text mode: output each new line on stdout (pipeable).",
    )
    parser.add_argument(
        "--list-players",
        action="store_true",
        help="List available MPRIS2 players and exit.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging on stderr.",
    )
    return parser


def _bus_unavailable(e: dbus.DBusException) -> NoReturn:
    print(f"lyritop: cannot connect to the session bus: {e}", file=sys.stderr)
    sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose, interactive=not args.pipe)

    if args.list_players:
        try:
            players = list_players()
        except dbus.DBusException as e:
            _bus_unavailable(e)
        if not players:
            print("No MPRIS2 players found.")
        else:
            print(f"{_BOLD}Available players:{_RESET}")
            for p in players:
                print(f"  • {friendly_name(p)} {_DIM}({p}){_RESET}")
        return

    try:
        config = ConfigManager(config_path=args.config)
        if args.interval is not None:
            config.set(UPDATE_INTERVAL, args.interval)
    except ConfigurationError as e:
        print(f"lyritop: {e}", file=sys.stderr)
        sys.exit(1)

    # Connect before touching the terminal
    try:
        provider = MprisProvider()
    except dbus.DBusException as e:
        _bus_unavailable(e)

    sink = PipeSink() if args.pipe else TerminalSink()
    try:
        app = LyriTop(config, provider, sink, extra_lyric_files=args.lyric_file)
        asyncio.run(app.run())
    except KeyboardInterrupt:
        pass
    except LyriTopError as e:
        print(f"lyritop: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        provider.close()
        sink.close()
        if not args.pipe:
            print(f"{_DIM}Bye!{_RESET}")


if __name__ == "__main__":
    main()
