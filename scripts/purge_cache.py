#!/usr/bin/env python3
"""
Maintenance sweep: remove cached drugs older than a given number of hours.
Run from cron or by hand; it never touches search history.
"""

import argparse
import sys
from pathlib import Path

# Add the parent directory to the path
sys.path.append(str(Path(__file__).parent.parent))

from medbot.config import settings
from medbot.database import DatabaseManager
from medbot.drug_cache import DrugCache
from medbot.logging import setup_logging

logger = setup_logging(settings)


def purge(hours: float, clear_all: bool = False) -> int:
    """Purge the cache and return the number of drugs removed."""
    db = DatabaseManager(settings)
    db.initialize()

    if clear_all:
        return db.clear_cache()

    cache = DrugCache(db, ttl_hours=settings.CACHE_TTL_HOURS)
    before = cache.count()
    deleted = cache.purge_older_than(hours)
    logger.info(f"Drug cache: {before} before, {before - deleted} after")
    return deleted


def main():
    parser = argparse.ArgumentParser(description="Purge old entries from the MedBot drug cache")
    parser.add_argument("--hours", type=float, default=settings.CACHE_TTL_HOURS,
                        help="remove drugs fetched more than this many hours ago")
    parser.add_argument("--all", action="store_true", help="remove every cached drug")
    args = parser.parse_args()

    if args.hours <= 0:
        parser.error("--hours must be positive")

    deleted = purge(args.hours, clear_all=args.all)
    logger.info(f"Removed {deleted} cached drugs")


if __name__ == "__main__":
    main()
