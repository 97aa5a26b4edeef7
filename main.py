"""Command-line entry point for Key Macros."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent
SRC_DIR = ROOT_DIR / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from keymacros import application  # noqa: E402

_LOGGER = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=None,
        help="Configuration document (default: config/keymacros.json)",
    )
    parser.add_argument(
        "--connect",
        metavar="KIND:IDENTIFIER",
        default=None,
        help="Initial connection, e.g. multiplayer:play.example.com",
    )
    parser.add_argument(
        "--tick-ms",
        type=int,
        default=application.DEFAULT_TICK_MS,
        help="Scheduler tick length in milliseconds (default: 50)",
    )
    parser.add_argument(
        "--chat-key",
        default="t",
        help="Key that opens the chat input (default: t)",
    )
    parser.add_argument(
        "--command-key",
        default="/",
        help="Key that opens the command input (default: /)",
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main() -> None:
    args = parse_args()
    configure_logging(args.log_level)

    connection = None
    if args.connect:
        try:
            connection = application.parse_connection(args.connect)
        except ValueError as exc:
            _LOGGER.error("Ignoring --connect %s: %s", args.connect, exc)

    application.run_application(
        args.config_file,
        tick_ms=args.tick_ms,
        chat_key=args.chat_key,
        command_key=args.command_key,
        connection=connection,
    )


if __name__ == "__main__":
    main()
