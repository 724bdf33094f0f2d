"""
Drug Cache
Stores drug records fetched from openFDA so repeated searches for the same
product are answered locally. Lookups are case-insensitive substring matches
on brand or generic name; expired rows stay on disk until purged.
"""

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from medbot.database import DatabaseManager
from medbot.logging import get_logger
from medbot.models import DrugRecord, utcnow

logger = get_logger(__name__)

_HAS_NAME = """
    (COALESCE(TRIM(brand_name), '') != '' OR COALESCE(TRIM(generic_name), '') != '')
"""


class DrugCache:
    """Keyed store of DrugRecords with partial-name lookup and TTL-aware reads."""

    def __init__(self, db: DatabaseManager, ttl_hours: float = 24,
                 clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.ttl = timedelta(hours=ttl_hours)
        self._clock = clock

    def put(self, record: DrugRecord) -> DrugRecord:
        """
        Upsert a record by drug_id. fetched_at defaults to the write time; the
        stored timestamp never moves backwards for an existing id.
        """
        if not record.drug_id:
            raise ValueError("drug_id is required before caching a drug")
        if record.is_nameless():
            raise ValueError(f"Refusing to cache nameless drug {record.drug_id}")

        fetched_at = record.fetched_at or self._clock()
        with self.db.connection() as conn:
            conn.execute("""
                INSERT INTO drugs_cache
                (drug_id, brand_name, generic_name, manufacturer, indications, last_fetched)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(drug_id) DO UPDATE SET
                    brand_name = excluded.brand_name,
                    generic_name = excluded.generic_name,
                    manufacturer = excluded.manufacturer,
                    indications = excluded.indications,
                    last_fetched = MAX(drugs_cache.last_fetched, excluded.last_fetched)
            """, (
                record.drug_id,
                record.brand_name,
                record.generic_name,
                record.manufacturer,
                record.indications,
                fetched_at.timestamp(),
            ))

        logger.debug(f"Drug cached: {record.primary_name} ({record.drug_id})")
        return record.model_copy(update={"fetched_at": fetched_at})

    def find_by_name_fragment(self, term: str, include_stale: bool = False) -> Optional[DrugRecord]:
        """
        Most recently fetched drug whose brand or generic name contains term.
        Expired rows are skipped unless include_stale is set.
        """
        needle = (term or "").strip().casefold()
        if not needle:
            return None

        sql = f"""
            SELECT * FROM drugs_cache
            WHERE (instr(casefold(COALESCE(brand_name, '')), ?) > 0
                   OR instr(casefold(COALESCE(generic_name, '')), ?) > 0)
              AND {_HAS_NAME}
        """
        params: list = [needle, needle]
        if not include_stale:
            sql += " AND last_fetched > ?"
            params.append(self._cutoff(self.ttl))
        sql += " ORDER BY last_fetched DESC LIMIT 1"

        with self.db.connection() as conn:
            row = conn.execute(sql, params).fetchone()

        return self._row_to_drug(row) if row else None

    def get(self, drug_id: str) -> Optional[DrugRecord]:
        """Get a cached drug by id regardless of age."""
        with self.db.connection() as conn:
            row = conn.execute(
                f"SELECT * FROM drugs_cache WHERE drug_id = ? AND {_HAS_NAME}", (drug_id,)
            ).fetchone()
        return self._row_to_drug(row) if row else None

    def list_all(self) -> List[DrugRecord]:
        """All cached drugs ordered by brand name (admin/stats)."""
        with self.db.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM drugs_cache WHERE {_HAS_NAME} ORDER BY brand_name, generic_name"
            ).fetchall()
        return [self._row_to_drug(row) for row in rows]

    def count(self) -> int:
        with self.db.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM drugs_cache").fetchone()[0]

    def purge_older_than(self, hours: float) -> int:
        """Delete drugs fetched more than `hours` ago. Returns the number removed."""
        with self.db.connection() as conn:
            deleted = conn.execute(
                "DELETE FROM drugs_cache WHERE last_fetched < ?",
                (self._cutoff(timedelta(hours=hours)),),
            ).rowcount

        logger.info(f"Cleared {deleted} cache entries older than {hours}h")
        return deleted

    def _cutoff(self, age: timedelta) -> float:
        return (self._clock() - age).timestamp()

    @staticmethod
    def _row_to_drug(row: sqlite3.Row) -> DrugRecord:
        return DrugRecord(
            drug_id=row["drug_id"],
            brand_name=row["brand_name"],
            generic_name=row["generic_name"],
            manufacturer=row["manufacturer"],
            indications=row["indications"],
            fetched_at=datetime.fromtimestamp(row["last_fetched"], tz=timezone.utc),
        )
