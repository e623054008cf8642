# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Kimi Proxy - entry point.

Usage:
    python main.py
    python main.py --port 9000
    python main.py --host 127.0.0.1 --port 9000

Priority for host/port: CLI arguments > environment variables > defaults.
"""

import argparse
import logging
import sys
from typing import Tuple

import uvicorn
from loguru import logger

from kimi.app import create_app
from kimi.config import (
    APP_TITLE,
    APP_VERSION,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    LOG_LEVEL,
    SERVER_HOST,
    SERVER_PORT,
    get_upstream_base_url,
)


class InterceptHandler(logging.Handler):
    """Route standard logging records (uvicorn, httpx) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module so loguru reports the right origin
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure loguru as the only log sink."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        colorize=True,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<level>{message}</level>"
        ),
    )
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False


app = create_app()


def parse_cli_args() -> argparse.Namespace:
    """
    Parse command-line arguments.

    Host and port default to None so that resolve_server_config() can tell
    "not given" apart from an explicit value.
    """
    parser = argparse.ArgumentParser(
        prog="main.py",
        description=f"{APP_TITLE} - compatibility proxy for the Moonshot AI API",
    )
    parser.add_argument(
        "-H",
        "--host",
        type=str,
        default=None,
        help=f"Server host (default: {DEFAULT_SERVER_HOST}, env: SERVER_HOST)",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help=f"Server port (default: {DEFAULT_SERVER_PORT}, env: SERVER_PORT)",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"{APP_TITLE} {APP_VERSION}",
    )
    return parser.parse_args()


def resolve_server_config(args: argparse.Namespace) -> Tuple[str, int]:
    """
    Resolve final host and port.

    Each value is resolved independently: CLI > environment > default.
    SERVER_HOST/SERVER_PORT already hold the default when the environment
    variable is unset.

    Args:
        args: Parsed CLI arguments

    Returns:
        (host, port)
    """
    host = args.host if args.host is not None else SERVER_HOST
    port = args.port if args.port is not None else SERVER_PORT
    return host, port


def print_startup_banner(host: str, port: int) -> None:
    """Print the listening address and upstream target."""
    display_host = "localhost" if host == "0.0.0.0" else host
    print()
    print(f"  {APP_TITLE} v{APP_VERSION}")
    print(f"  Listening on:   http://{display_host}:{port}")
    print(f"  Forwarding to:  {get_upstream_base_url()}")
    print()


def main() -> None:
    args = parse_cli_args()
    setup_logging()
    host, port = resolve_server_config(args)
    print_startup_banner(host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
