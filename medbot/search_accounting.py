"""
Search Accounting
Append-only log of who searched for what, with a per-caller running counter.
Failures here are logged and absorbed so they never affect a search result.
"""

from typing import Optional

from medbot.database import DatabaseManager
from medbot.exceptions import StorageError
from medbot.logging import get_logger
from medbot.models import utcnow

logger = get_logger(__name__)


class SearchAccounting:
    """Records search events and serves per-caller search counts."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def record_search(self, caller_id: int, query_text: str, result_count: int = 0) -> Optional[int]:
        """
        Append a search event and bump the caller's counter in one
        transaction. Returns the id of the new search row, or None (after
        logging) if either write fails, in which case neither is kept.
        """
        now = utcnow().timestamp()
        try:
            with self.db.connection() as conn:
                search_id = conn.execute("""
                    INSERT INTO searches (telegram_id, query_text, result_count, created_at)
                    VALUES (?, ?, ?, ?)
                """, (caller_id, query_text, result_count, now)).lastrowid

                conn.execute("""
                    INSERT INTO users (telegram_id, search_count, created_at, last_active)
                    VALUES (?, 1, ?, ?)
                    ON CONFLICT(telegram_id) DO UPDATE SET
                        search_count = users.search_count + 1,
                        last_active = excluded.last_active
                """, (caller_id, now, now))
        except StorageError as e:
            logger.error(f"Error recording search for user {caller_id}: {e}")
            return None

        logger.debug(f"Search recorded for user {caller_id}: {query_text}")
        return search_id

    def set_result_count(self, search_id: int, result_count: int) -> bool:
        """Fill in how many results a recorded search produced."""
        try:
            with self.db.connection() as conn:
                updated = conn.execute(
                    "UPDATE searches SET result_count = ? WHERE id = ?", (result_count, search_id)
                ).rowcount
        except StorageError as e:
            logger.error(f"Error updating result count for search {search_id}: {e}")
            return False
        return updated == 1

    def get_search_count(self, caller_id: int) -> int:
        """Total searches for a caller; 0 for unknown callers."""
        try:
            with self.db.connection() as conn:
                row = conn.execute(
                    "SELECT search_count FROM users WHERE telegram_id = ?", (caller_id,)
                ).fetchone()
        except StorageError as e:
            logger.error(f"Error getting search count for user {caller_id}: {e}")
            return 0
        return row["search_count"] if row else 0

    def get_total_users(self) -> int:
        try:
            with self.db.connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
        except StorageError as e:
            logger.error(f"Error getting total users: {e}")
            return 0

    def get_total_searches(self) -> int:
        try:
            with self.db.connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM searches").fetchone()[0]
        except StorageError as e:
            logger.error(f"Error getting total searches: {e}")
            return 0
