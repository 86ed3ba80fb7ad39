#!/usr/bin/env python3
"""
Run the calendar API with uvicorn
Usage: python -m econ_calendar.server [--host HOST] [--port PORT]
"""

import argparse
import logging

import uvicorn

from .api import create_app
from .config import get_config, setup_logging

logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Economic calendar cache API")
    parser.add_argument('--host', default=None, help="Bind address (default: API_HOST)")
    parser.add_argument('--port', type=int, default=None, help="Port (default: API_PORT)")
    args = parser.parse_args()

    config = get_config()
    setup_logging(config)
    logger.info(repr(config))

    app = create_app(config)
    uvicorn.run(
        app,
        host=args.host or config.API_HOST,
        port=args.port or config.API_PORT,
        log_level=str(config.LOG_LEVEL).lower(),
    )
    return 0


if __name__ == '__main__':
    exit(main())
