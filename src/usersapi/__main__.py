"""
Command-line entry point.

    python -m usersapi
    python -m usersapi --port 8080 --https-port 8443
    python -m usersapi --port 8443 --certfile cert.pem --keyfile key.pem --https-port 8443
    ApiSettings__ApiKey=s3cret APP_ENVIRONMENT=Development python -m usersapi

Flags override environment variables (HTTP_PORT, HTTPS_PORT, ...), which
override the defaults. The API key comes from the settings file or from
``ApiSettings__ApiKey``; without one the process exits with status 1.
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .app import create_app
from .config import ApiSettings, ServerConfig, DEFAULT_SETTINGS_FILE
from .errors import ConfigError


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="usersapi",
        description="In-memory users CRUD API with API-key authentication",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m usersapi                              # defaults, appsettings.json
  python -m usersapi --port 3000                  # custom port
  python -m usersapi --host 0.0.0.0               # listen on all interfaces
  python -m usersapi --settings /etc/usersapi.json
  python -m usersapi --https-port 8443            # redirect plain HTTP there
        """,
    )

    # Network
    parser.add_argument("--host", "-H", default=None,
                        help="Host to bind to (default: $HTTP_HOST or 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None,
                        help="Port to listen on (default: $HTTP_PORT or 8080)")
    parser.add_argument("--workers", "-w", type=int, default=None,
                        help="Minimum worker threads; the maximum is twice this")

    # TLS
    parser.add_argument("--https-port", type=int, default=None,
                        help="Port plain-HTTP requests are redirected to (default: $HTTPS_PORT)")
    parser.add_argument("--certfile", default=None,
                        help="PEM certificate; serve HTTPS on --port")
    parser.add_argument("--keyfile", default=None,
                        help="PEM private key for --certfile")

    # Application
    parser.add_argument("--settings", "-c", default=DEFAULT_SETTINGS_FILE,
                        help=f"Settings file with ApiSettings:ApiKey (default: {DEFAULT_SETTINGS_FILE})")
    parser.add_argument("--log-level", "-l", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default=None, help="Logging level (default: $HTTP_LOG_LEVEL or INFO)")

    parser.add_argument("--version", "-v", action="version", version=f"usersapi {__version__}")

    return parser


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Environment first, then whatever flags were given on top."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.workers is not None:
        config.min_workers = args.workers
        config.max_workers = args.workers * 2
    if args.https_port is not None:
        config.https_port = args.https_port
    if args.certfile is not None:
        config.tls_certfile = args.certfile
    if args.keyfile is not None:
        config.tls_keyfile = args.keyfile
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        settings = ApiSettings.load(args.settings)
        server = create_app(settings, config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        # Bind failure, unreadable certificate, ...
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
