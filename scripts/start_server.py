#!/usr/bin/env python3
"""Startup script for the MedBot API."""

import sys
import uvicorn
from pathlib import Path

# Add the parent directory to the path
sys.path.append(str(Path(__file__).parent.parent))

from medbot.config import settings
from medbot.logging import setup_logging

logger = setup_logging(settings)


def main():
    """Start the API server."""
    logger.info("Starting MedBot API server...")
    settings.validate()

    logger.info("Server Configuration:")
    logger.info(f"  Host: {settings.API_HOST}")
    logger.info(f"  Port: {settings.API_PORT}")
    logger.info(f"  Workers: {settings.API_WORKERS}")
    logger.info(f"  Database: {settings.DB_PATH}")
    logger.info(f"  Cache TTL: {settings.CACHE_TTL_HOURS}h")
    logger.info(f"  openFDA: {settings.OPENFDA_BASE_URL}")

    uvicorn.run(
        "medbot.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        workers=settings.API_WORKERS,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
        reload=False
    )


if __name__ == "__main__":
    main()
