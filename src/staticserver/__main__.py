"""
=============================================================================
COMMAND LINE ENTRY POINT
=============================================================================

    python -m staticserver [options]
    staticserver [options]

Settings resolve as: CLI flag, else STATIC_* environment variable, else the
ServerConfig default.

=============================================================================
"""

from typing import List, Optional
import argparse
import dataclasses
import logging
import sys

from . import __version__
from .config import LOG_FORMATS, LOG_LEVELS, ServerConfig
from .logs import configure_logging
from .server import create_server


logger = logging.getLogger("staticserver.server")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="staticserver",
        description="Serve the bundled page, images and robots.txt over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  staticserver                          # 0.0.0.0:8080, bundled assets
  staticserver --port 3000              # Custom port
  staticserver --assets-dir ./public    # Serve assets from a directory
  staticserver --log-format json        # JSON log lines
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Address to bind (default: 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (default: 8)"
    )

    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Most worker threads under load (default: 128)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT & LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--assets-dir", "-s",
        default=None,
        help="Directory holding index.html, robots.txt, cash.avif, cash-small.avif"
    )

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
        help="Log line format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"staticserver {__version__}"
    )

    return parser


def load_config(args: argparse.Namespace) -> ServerConfig:
    """Environment config with any CLI flags laid over it."""
    config = ServerConfig.from_env()

    overrides = {
        "host": args.host,
        "port": args.port,
        "workers": args.workers,
        "max_workers": args.max_workers,
        "assets_dir": args.assets_dir,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    config = dataclasses.replace(
        config, **{key: value for key, value in overrides.items() if value is not None}
    )
    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        parser.error(str(e))

    configure_logging(config.log_level, config.log_format)

    try:
        server = create_server(config)
        server.run()
    except (OSError, ValueError) as e:
        logger.error("server failed", extra={"context": {"error": str(e)}})
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
