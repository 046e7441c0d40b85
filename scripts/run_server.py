#!/usr/bin/env python3
"""
Run the record store API with uvicorn.
Command-line flags override the environment-derived settings.
"""

import sys
import argparse
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from recordstore.api.main import create_app
from recordstore.core.config import Settings, validate_config


def build_settings(argv=None):
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description='Run the record store API server')
    parser.add_argument('--db', default=settings.db_path,
                        help=f'Path to SQLite database file (default: {settings.db_path})')
    parser.add_argument('--logfile', default=settings.log_path,
                        help=f'Path to append log file (default: {settings.log_path})')
    parser.add_argument('--import-log', action='store_true', default=settings.import_log,
                        help='Replay the append log into the store before serving')
    parser.add_argument('--workers', type=int, default=settings.replay_workers,
                        help=f'Replay worker threads (default: {settings.replay_workers})')
    parser.add_argument('--apikey', default=settings.api_key,
                        help='API key required for all requests')
    parser.add_argument('--host', default='0.0.0.0',
                        help='Host to bind to (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=8080,
                        help='Port to serve on (default: 8080)')

    args = parser.parse_args(argv)

    settings.db_path = args.db
    settings.log_path = args.logfile
    settings.import_log = args.import_log
    settings.replay_workers = args.workers
    settings.api_key = args.apikey
    return settings, args


def main(argv=None):
    settings, args = build_settings(argv)

    issues = validate_config(settings)
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        sys.exit(2)

    print(f"Starting record store on {args.host}:{args.port}")
    print(f"  database: {settings.db_path}")
    print(f"  append log: {settings.log_path} (replay at startup: {settings.import_log})")

    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
