#!/usr/bin/env python3
"""
Start the web server for the Election Lens API.

Refuses to serve a store with nothing loaded; partially loaded stores
start with a warning naming the empty collections.
"""

import argparse
import logging
import socket
import sys
from pathlib import Path

import duckdb
import uvicorn

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from data.database import close_database  # noqa: E402
from data.loader import LOADED_COLLECTIONS, ElectionDataLoader  # noqa: E402
from web.main import set_database_path  # noqa: E402

logger = logging.getLogger(__name__)


def find_available_port(host, start_port, max_attempts=10):
    """Find an available port starting from start_port."""
    for port in range(start_port, start_port + max_attempts):
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.bind((host, port))
                return port
        except OSError:
            continue
    return None


def check_store(db_path: Path, allow_empty: bool) -> bool:
    """Report empty collections; False when the store cannot be served."""
    try:
        with ElectionDataLoader(str(db_path)) as loader:
            empty = loader.get_empty_collections()
    except duckdb.Error as e:
        logger.error(f"Cannot read {db_path}: {e}")
        return False
    finally:
        # Reload workers open the file from another process
        close_database(str(db_path))

    if len(empty) == len(LOADED_COLLECTIONS) and not allow_empty:
        logger.error(f"No election data loaded in {db_path}")
        print("Run load_data.py first, or pass --allow-empty to serve it anyway.")
        return False
    for collection in empty:
        logger.warning(f"Collection '{collection}' is empty")
    return True


def main():
    parser = argparse.ArgumentParser(description="Start the Election Lens API server")
    parser.add_argument("--db", required=True, help="Path to DuckDB database file")
    parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )
    parser.add_argument(
        "--auto-port",
        action="store_true",
        help="Automatically find available port if default is taken",
    )
    parser.add_argument(
        "--allow-empty",
        action="store_true",
        help="Start even when no election data has been loaded",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level for the app and uvicorn (default: info)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    db_path = Path(args.db).absolute()
    if not db_path.exists():
        logger.error(f"Database file not found: {db_path}")
        print("Run load_data.py first to create the database.")
        sys.exit(1)

    if not check_store(db_path, args.allow_empty):
        sys.exit(1)

    # Exported through ELECTION_DB_PATH as well, so reload workers see it
    set_database_path(str(db_path))
    if args.reload:
        close_database(str(db_path))

    port = args.port
    if args.auto_port:
        available_port = find_available_port(args.host, args.port)
        if available_port is None:
            logger.error(f"No available ports found starting from {args.port}")
            sys.exit(1)
        if available_port != args.port:
            logger.warning(f"Port {args.port} is taken, using port {available_port}")
        port = available_port

    logger.info(f"Serving {db_path} at http://{args.host}:{port}")
    uvicorn.run(
        "web.main:app",
        host=args.host,
        port=port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
