#!/usr/bin/env python3
"""
Initialize the agent database - creates messages, checkpoints and
routing_metrics tables.

Usage:
    PYTHONPATH=src python scripts/init_db.py
    PYTHONPATH=src python scripts/init_db.py --check
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from loguru import logger
from infrastructure import config
from infrastructure.log import setup_logging
from infrastructure.db.sql_client import create_tables, test_connection


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the agent routing tables")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only test the database connection",
    )
    args = parser.parse_args()

    setup_logging(config.LOG_LEVEL)
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)

    if not test_connection():
        logger.error("Database is not reachable. See errors above.")
        return 1
    if args.check:
        logger.success("Database connection OK.")
        return 0

    try:
        create_tables()
    except Exception as e:
        logger.error(f"Failed to initialize schema: {e}")
        return 1
    logger.success("Tables ready.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
