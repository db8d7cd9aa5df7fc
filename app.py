#!/usr/bin/env python3
"""
Run script for Stockroom
"""

import argparse
import os
import sys

from dotenv import load_dotenv

# Load environment variables from .env file before the app reads them
load_dotenv()

from stockroom import create_app
from stockroom.build import build_database
from stockroom.logger import get_logger

# Note: SECRET_KEY and the admin password come from the environment.
# Run 'python generate_env.py' to create a .env file.

logger = get_logger("stockroom.run")


def parse_arguments():
    parser = argparse.ArgumentParser(description='Stockroom inventory and supplier orders')
    parser.add_argument('--build-only', action='store_true',
                        help='Create tables and the admin user, then exit without starting the web server')
    parser.add_argument('--demo-data', action='store_true',
                        help='Insert a few demo products and an order on an empty database')
    return parser.parse_args()


def _flag(name, default='False'):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


if __name__ == '__main__':
    args = parse_arguments()
    app = create_app()

    build_database(app, demo_data=args.demo_data)

    if args.build_only:
        logger.info("Build completed. Exiting without starting web server.")
        sys.exit(0)

    debug_mode = _flag('FLASK_DEBUG')
    use_reloader = _flag('USE_RELOADER')
    host = os.environ.get('FLASK_HOST', '127.0.0.1')
    port = int(os.environ.get('FLASK_PORT', '5000'))

    if debug_mode:
        logger.warning("DEBUG MODE ENABLED - Do not use in production!")

    logger.info(f"Starting server on {host}:{port} (debug={debug_mode}, reloader={use_reloader})")
    app.run(debug=debug_mode, host=host, port=port, use_reloader=use_reloader)
