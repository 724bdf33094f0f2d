"""
SQLite database manager for MedBot.
Owns the database file, the schema and the connection lifecycle. One instance
is created at process start and handed to the cache and accounting components.
"""

import sqlite3
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from medbot.config import Settings, settings as default_settings
from medbot.exceptions import StorageError
from medbot.models import utcnow

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        telegram_id INTEGER PRIMARY KEY,
        search_count INTEGER NOT NULL DEFAULT 0,
        created_at REAL NOT NULL,
        last_active REAL NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS searches (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        telegram_id INTEGER NOT NULL,
        query_text TEXT NOT NULL,
        result_count INTEGER NOT NULL DEFAULT 0,
        created_at REAL NOT NULL,
        FOREIGN KEY(telegram_id) REFERENCES users(telegram_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS drugs_cache (
        drug_id TEXT PRIMARY KEY,
        brand_name TEXT,
        generic_name TEXT,
        manufacturer TEXT,
        indications TEXT,
        last_fetched REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_searches_telegram_id ON searches(telegram_id)",
    "CREATE INDEX IF NOT EXISTS idx_searches_created_at ON searches(created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_drugs_brand_name ON drugs_cache(brand_name)",
    "CREATE INDEX IF NOT EXISTS idx_drugs_generic_name ON drugs_cache(generic_name)",
    "CREATE INDEX IF NOT EXISTS idx_drugs_last_fetched ON drugs_cache(last_fetched DESC)",
]

SAMPLE_DRUGS = [
    ("aspirin-001", "Aspirin", "Acetylsalicylic acid", "Bayer",
     "Pain reliever and fever reducer. Used for headaches, muscle aches, and reducing fever."),
    ("ibuprofen-001", "Advil", "Ibuprofen", "Pfizer",
     "Nonsteroidal anti-inflammatory drug (NSAID) used to reduce fever and treat pain or inflammation."),
    ("acetaminophen-001", "Tylenol", "Acetaminophen", "Johnson & Johnson",
     "Pain reliever and fever reducer used to treat mild to moderate pain."),
    ("amoxicillin-001", "Amoxil", "Amoxicillin", "GlaxoSmithKline",
     "Antibiotic used to treat bacterial infections including pneumonia, bronchitis, and infections "
     "of ear, nose, throat, skin, or urinary tract."),
]


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


class DatabaseManager:
    """Manages the SQLite database shared by the drug cache and search accounting."""

    def __init__(self, config: Optional[Settings] = None):
        self.settings = config or default_settings
        self.db_path = Path(self.settings.DB_PATH)
        self.timeout = self.settings.DB_TIMEOUT_SECONDS

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """
        Yield a connection that commits when the block succeeds, rolls back
        when it raises, and is always closed. sqlite3 errors and parameter
        binding failures surface as StorageError.
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self.db_path}: {e}") from e

        conn.row_factory = sqlite3.Row
        # SQLite's LOWER() only folds ASCII
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        try:
            yield conn
            conn.commit()
        except (sqlite3.Error, OverflowError, UnicodeError) as e:
            # OverflowError/UnicodeError come from binding params sqlite cannot store
            conn.rollback()
            raise StorageError(str(e)) from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the schema if it does not exist."""
        logger.info(f"Initializing database at: {self.db_path}")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self.connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            for statement in SCHEMA:
                conn.execute(statement)
        logger.info("Database schema initialized successfully")

        if self.settings.SEED_SAMPLE_DATA:
            self.insert_sample_data()

    def insert_sample_data(self) -> int:
        """Seed demo drugs into an empty cache. Returns the number inserted."""
        with self.connection() as conn:
            total = conn.execute("SELECT COUNT(*) FROM drugs_cache").fetchone()[0]
            if total > 0:
                logger.debug("Sample data already exists, skipping insertion")
                return 0

            now = utcnow().timestamp()
            conn.executemany("""
                INSERT OR IGNORE INTO drugs_cache
                (drug_id, brand_name, generic_name, manufacturer, indications, last_fetched)
                VALUES (?, ?, ?, ?, ?, ?)
            """, [row + (now,) for row in SAMPLE_DRUGS])

        logger.info(f"Inserted {len(SAMPLE_DRUGS)} sample drugs")
        return len(SAMPLE_DRUGS)

    def clear_cache(self) -> int:
        """Delete every cached drug (admin). Returns the number removed."""
        with self.connection() as conn:
            deleted = conn.execute("DELETE FROM drugs_cache").rowcount
        logger.info(f"Cache cleared ({deleted} drugs removed)")
        return deleted
