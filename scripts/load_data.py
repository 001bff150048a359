#!/usr/bin/env python3
"""
Data loading pipeline for election documents.
Loads historical results, seat maps, 2026 candidates and polls into DuckDB.
"""

import argparse
import logging
import sys
from pathlib import Path

import duckdb

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from data.loader import ElectionDataLoader  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Load election data")
    parser.add_argument("json_file", help="Path to election data JSON file")
    parser.add_argument("--db", required=True, help="Path to DuckDB database file")
    parser.add_argument(
        "--reset-polls",
        action="store_true",
        help="Delete recorded votes for the polls being loaded",
    )

    args = parser.parse_args()

    json_path = Path(args.json_file)
    if not json_path.exists():
        logger.error(f"JSON file not found: {json_path}")
        sys.exit(1)

    try:
        with ElectionDataLoader(args.db) as loader:
            logger.info("=== Step 1: Preparing Schema ===")
            table_count = loader.ensure_schema()
            print(f"✓ Schema ready ({table_count} tables)")

            logger.info("=== Step 2: Loading Collections ===")
            stats = loader.load_file(str(json_path), reset_polls=args.reset_polls)
            for collection, count in stats.items():
                print(f"✓ Loaded {count} {collection} records")

            if args.reset_polls and "polls" in stats:
                print("⚠️  Recorded votes for loaded polls were discarded")

            logger.info("=== Step 3: Summary ===")
            summary = loader.get_summary()
            print("\nStore contents:")
            for _, row in summary.iterrows():
                print(f"  {row['collection']:18s}: {row['row_count']:6d} rows")

    except (OSError, ValueError, KeyError, duckdb.Error) as e:
        logger.error(f"Error loading data: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
