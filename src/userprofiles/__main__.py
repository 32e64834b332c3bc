"""
=============================================================================
USER PROFILE SERVICE CLI
=============================================================================

    python -m userprofiles
    python -m userprofiles --port 4000
    python -m userprofiles --data-file /var/lib/users.json --token s3cret
    python -m userprofiles --host 0.0.0.0 --workers 8

Flags override environment variables, which override the defaults in
ServiceConfig (see config.py for the HTTP_* variables).

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import ServiceConfig
from .server import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="userprofiles",
        description="User profile CRUD service with bearer-token auth",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m userprofiles                          # 127.0.0.1:3000, ./users.json
  python -m userprofiles --port 4000              # Custom port
  python -m userprofiles --host 0.0.0.0           # Listen on all interfaces
  python -m userprofiles --token s3cret           # Custom bearer token
  python -m userprofiles --data-file data/u.json  # Custom data file
        """
    )

    # Every default is None: an unset flag leaves the environment value alone
    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: $HTTP_HOST or 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: $HTTP_PORT or 3000)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Number of worker threads (max will be 2x this)"
    )

    parser.add_argument(
        "--data-file", "-d",
        default=None,
        help="JSON file holding the users (default: $HTTP_DATA_FILE or users.json)"
    )

    parser.add_argument(
        "--token", "-t",
        default=None,
        help="Bearer token clients must send (default: $HTTP_AUTH_TOKEN)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: $HTTP_LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"userprofiles {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServiceConfig:
    """Environment-based config with the given flags applied on top."""
    config = ServiceConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 2
    if args.data_file is not None:
        config.data_file = args.data_file
    if args.token is not None:
        config.auth_token = args.token
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = create_app(config)
        server.run()
    except Exception as e:
        # Unreadable data file, port in use, bad config value
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
