"""
=============================================================================
COMMAND LINE ENTRY POINT
=============================================================================

    hs                          # serve the current directory on :8080
    hs -p 3000 -d ./public      # another port and directory
    hs -c last-modified         # mtime validation instead of content hashes
    hs --no-compression         # never gzip/deflate
    python -m staticserver ...  # same thing without the console script

Flags override HTTP_* environment variables, which override the defaults
(see ServerConfig.from_env).

=============================================================================
"""

import argparse
import sys
from typing import Optional, Sequence

from . import __version__
from .config import CacheStrategy, ServerConfig
from .server import start


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hs",
        description="Serve a directory over HTTP with listings, caching and compression",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hs                          # current directory on port 8080
  hs -p 3000                  # custom port
  hs -d ./public -H 127.0.0.1 # local-only, another directory
  hs -c last-modified         # Last-Modified instead of ETag
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # WHAT AND WHERE
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080, 0 picks a free port)",
    )
    parser.add_argument(
        "--directory", "-d",
        default=None,
        help="Directory to serve (default: current directory)",
    )
    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Address to bind (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Maximum worker threads (default: 16)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # BEHAVIOUR
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--cache", "-c",
        choices=[strategy.value for strategy in CacheStrategy],
        default=None,
        help="Validator for conditional requests (default: etag)",
    )
    parser.add_argument(
        "--no-compression",
        action="store_true",
        help="Disable gzip/deflate content encoding",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"staticserver {__version__}",
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Layer parsed flags over the environment."""
    return ServerConfig.from_env(
        host=args.host,
        port=args.port,
        root_directory=args.directory,
        max_workers=args.workers,
        cache_strategy=args.cache,
        compression=False if args.no_compression else None,
        log_level=args.log_level,
        log_format=args.log_format,
    )


def main(argv: Optional[Sequence[str]] = None):
    args = build_parser().parse_args(argv)

    try:
        start(config_from_args(args))
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
