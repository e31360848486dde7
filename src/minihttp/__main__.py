"""
=============================================================================
CLI ENTRY POINT
=============================================================================

=============================================================================
USAGE
=============================================================================

    # Serve ./ on 127.0.0.1:4221
    python -m minihttp

    # Serve files from a directory (created if missing)
    python -m minihttp --directory /tmp/data

    # Listen on all interfaces, one asyncio task per connection
    python -m minihttp --host 0.0.0.0 --concurrency async

    # JSON access log
    python -m minihttp --log-format json

Every option can also come from the environment (see ServerConfig.from_env);
command-line flags win over environment variables.

=============================================================================
"""

import argparse
import os
import sys
from typing import List, Optional

from . import __version__
from .config import CONCURRENCY_MODES, LOG_FORMATS, LOG_LEVELS, ServerConfig
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="minihttp",
        description="Minimal HTTP/1.1 server on raw TCP sockets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m minihttp                           # Serve ./ on port 4221
  python -m minihttp --directory /tmp/data     # Root for /files/*
  python -m minihttp --port 0                  # Any free port
  python -m minihttp --concurrency async       # asyncio instead of threads
        """
    )

    # Defaults are None so that unset flags fall through to the environment

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 4221, 0 picks a free port)"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds allowed to deliver the whole request (default: 10)"
    )

    parser.add_argument(
        "--concurrency", "-c",
        choices=CONCURRENCY_MODES,
        default=None,
        help="One thread or one asyncio task per connection (default: thread)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # FILES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--directory", "-d",
        default=None,
        help="Directory served under /files/ (default: current directory)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=LOG_LEVELS,
        type=str.upper,
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"minihttp {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then every flag that was given on the command line."""
    config = ServerConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "timeout": args.timeout,
        "concurrency": args.concurrency,
        "directory": args.directory,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    os.makedirs(config.directory, exist_ok=True)

    server = HTTPServer(config)
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
