"""
=============================================================================
COMMAND-LINE ENTRY POINT
=============================================================================

    staticserve [options] [dir]
    python -m staticserve [options] [dir]

Serves ``dir`` (default: the current directory) over HTTP. Every feature
is off unless its flag is given.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ConfigError, ServerConfig
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="staticserve",
        description="Serve a directory over HTTP with optional logging, CORS, gzip and basic auth.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  staticserve                                    # ./ at 127.0.0.1:8080
  staticserve -b :8000 ./public                  # all interfaces, port 8000
  staticserve --log --gzip --cors ./dist
  staticserve --auth 'basic?realm=Team&secrets=/etc/team.htpasswd' ./docs
        """,
    )

    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        metavar="dir",
        help="Directory to serve (default: .)",
    )

    parser.add_argument(
        "--bind", "-b",
        default="127.0.0.1:8080",
        help="Address to listen on, host:port (default: 127.0.0.1:8080)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # FEATURES
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--log", action="store_true", help="Log every request")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Access log format (default: text)",
    )
    parser.add_argument("--cors", action="store_true", help="Add permissive CORS headers")
    parser.add_argument("--gzip", action="store_true", help="Gzip responses when the client accepts it")
    parser.add_argument(
        "--gzip-level",
        type=int,
        default=6,
        help="Gzip compression level 1-9 (default: 6)",
    )
    parser.add_argument(
        "--auth",
        default="",
        help="Authenticator spec, e.g. 'basic?realm=Private&secrets=/path/to/htpasswd'",
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=__version__,
    )

    return parser


def main(argv=None) -> None:
    """
    Parse arguments, build the server and run it.

    Startup problems (bad bind address, missing directory, invalid auth
    spec, port in use) print one "Error: ..." line and exit with status 1.
    """
    args = build_parser().parse_args(argv)

    try:
        config = ServerConfig.from_args(args)
        config.validate()
        server = HTTPServer(config)
        server.run()
    except (ConfigError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
