"""
=============================================================================
CLI ENTRY POINT
=============================================================================

    hello-server                      # standard mode, INFO logs
    hello-server --dev                # development mode, DEBUG logs
    hello-server --log-level warning  # override the mode's level
    python -m helloserver             # same as hello-server

Listening address comes from the environment, not from flags:

    PORT=8080 HOST=0.0.0.0 APP_ENV=production hello-server

=============================================================================
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from . import __version__
from .server import Mode, serve


logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse arguments and run the server. Returns the process exit status."""
    parser = argparse.ArgumentParser(
        prog="hello-server",
        description="Single-endpoint HTTP server: GET /hello answers 'Hello world'",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  PORT      Port to listen on, 1025-65535 (default: 3000)
  HOST      Host to bind to (default: localhost)
  APP_ENV   Deployment label (default: development)
        """,
    )

    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode: verbose logs, shorter shutdown timeout",
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO, or DEBUG with --dev)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"hello-server {__version__}",
    )

    args = parser.parse_args(argv)
    mode = Mode.DEVELOPMENT if args.dev else Mode.STANDARD

    try:
        serve(mode=mode, log_level=args.log_level)
    except OSError as e:
        logger.critical("Server failed to start: %s", e)
        return 1
    except KeyboardInterrupt:
        # interrupted before the signal handlers were installed
        logger.info("Interrupted")

    return 0


if __name__ == "__main__":
    sys.exit(main())
