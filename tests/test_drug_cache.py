"""
Tests for the drug cache.
"""

import pytest
from datetime import timedelta

from medbot.database import DatabaseManager
from medbot.drug_cache import DrugCache
from medbot.exceptions import StorageError
from medbot.models import DrugRecord, utcnow


class TestDrugCache:
    """Test cases for DrugCache."""

    @pytest.fixture
    def aspirin(self):
        return DrugRecord(
            drug_id="aspirin-1",
            brand_name="Aspirin",
            generic_name="Acetylsalicylic acid",
            manufacturer="Bayer",
            indications="Pain reliever and fever reducer.",
        )

    @pytest.fixture
    def advil(self):
        return DrugRecord(
            drug_id="advil-1",
            brand_name="Advil",
            generic_name="Ibuprofen",
            manufacturer="Pfizer",
        )

    def test_empty_cache(self, cache):
        assert cache.count() == 0
        assert cache.find_by_name_fragment("aspirin") is None

    def test_put_and_get(self, cache, aspirin):
        stored = cache.put(aspirin)

        assert stored.fetched_at is not None
        assert cache.count() == 1

        retrieved = cache.get("aspirin-1")
        assert retrieved.brand_name == "Aspirin"
        assert retrieved.generic_name == "Acetylsalicylic acid"
        assert retrieved.manufacturer == "Bayer"
        assert retrieved.indications == "Pain reliever and fever reducer."
        assert abs((retrieved.fetched_at - stored.fetched_at).total_seconds()) < 0.001

    @pytest.mark.parametrize("term", [
        "aspirin", "ASPIRIN", "spir", "Asp", "acetylsalicylic", "SALICYLIC ACID", "cid",
    ])
    def test_find_by_any_case_insensitive_substring(self, cache, aspirin, term):
        cache.put(aspirin)

        found = cache.find_by_name_fragment(term)
        assert found is not None
        assert found.drug_id == "aspirin-1"

    def test_find_no_match(self, cache, aspirin, advil):
        cache.put(aspirin)
        cache.put(advil)

        assert cache.find_by_name_fragment("tylenol") is None
        assert cache.find_by_name_fragment("") is None
        assert cache.find_by_name_fragment("   ") is None

    def test_like_wildcards_are_literal(self, cache, aspirin):
        cache.put(aspirin)

        assert cache.find_by_name_fragment("%") is None
        assert cache.find_by_name_fragment("_") is None

    def test_non_ascii_names_fold_case(self, cache):
        cache.put(DrugRecord(drug_id="eau-1", brand_name="ÉAU THERMALE", generic_name=None))

        assert cache.find_by_name_fragment("éau").drug_id == "eau-1"

    def test_most_recently_fetched_match_wins(self, cache):
        now = utcnow()
        cache.put(DrugRecord(drug_id="old", brand_name="Aspirin Low Dose",
                             fetched_at=now - timedelta(hours=3)))
        cache.put(DrugRecord(drug_id="new", brand_name="Aspirin Extra",
                             fetched_at=now - timedelta(hours=1)))
        cache.put(DrugRecord(drug_id="mid", brand_name="Aspirin Regular",
                             fetched_at=now - timedelta(hours=2)))

        assert cache.find_by_name_fragment("aspirin").drug_id == "new"

    def test_stale_record_is_hidden_but_kept(self, cache, aspirin):
        stale = aspirin.model_copy(update={"fetched_at": utcnow() - timedelta(hours=25)})
        cache.put(stale)

        assert cache.find_by_name_fragment("aspirin") is None
        assert cache.count() == 1
        assert cache.find_by_name_fragment("aspirin", include_stale=True).drug_id == "aspirin-1"

    def test_stale_newer_row_does_not_hide_fresh_older_match(self, db):
        # Fresh within a 2h TTL, the other row is outside it
        cache = DrugCache(db, ttl_hours=2)
        now = utcnow()
        cache.put(DrugRecord(drug_id="fresh", brand_name="Aspirin", fetched_at=now - timedelta(hours=1)))
        cache.put(DrugRecord(drug_id="stale", brand_name="Aspirin", fetched_at=now - timedelta(hours=5)))

        assert cache.find_by_name_fragment("aspirin").drug_id == "fresh"

    def test_ttl_uses_injected_clock(self, db, aspirin):
        now = utcnow()
        clock = {"now": now}
        cache = DrugCache(db, ttl_hours=24, clock=lambda: clock["now"])
        cache.put(aspirin.model_copy(update={"fetched_at": now}))

        clock["now"] = now + timedelta(hours=23, minutes=59)
        assert cache.find_by_name_fragment("aspirin") is not None

        clock["now"] = now + timedelta(hours=24)
        assert cache.find_by_name_fragment("aspirin") is None

    def test_put_same_id_twice_is_upsert(self, cache, aspirin):
        first = cache.put(aspirin.model_copy(update={"fetched_at": utcnow() - timedelta(minutes=5)}))
        second = cache.put(aspirin.model_copy(update={"fetched_at": utcnow()}))

        assert cache.count() == 1
        stored = cache.get("aspirin-1")
        assert stored.fetched_at > first.fetched_at
        assert abs((stored.fetched_at - second.fetched_at).total_seconds()) < 0.001

    def test_put_overwrites_content(self, cache, aspirin):
        cache.put(aspirin)
        cache.put(aspirin.model_copy(update={"manufacturer": "Bayer AG", "indications": None}))

        stored = cache.get("aspirin-1")
        assert stored.manufacturer == "Bayer AG"
        assert stored.indications is None

    def test_fetched_at_never_moves_backwards(self, cache, aspirin):
        now = utcnow()
        cache.put(aspirin.model_copy(update={"fetched_at": now}))
        cache.put(aspirin.model_copy(update={"fetched_at": now - timedelta(hours=2), "manufacturer": "Other"}))

        stored = cache.get("aspirin-1")
        assert abs((stored.fetched_at - now).total_seconds()) < 0.001
        assert stored.manufacturer == "Other"

    def test_put_requires_id(self, cache):
        with pytest.raises(ValueError):
            cache.put(DrugRecord(brand_name="Aspirin"))

    def test_put_rejects_nameless_record(self, cache):
        with pytest.raises(ValueError):
            cache.put(DrugRecord(drug_id="x", brand_name=" ", generic_name=None))
        assert cache.count() == 0

    def test_nameless_rows_are_never_returned(self, db, cache):
        with db.connection() as conn:
            conn.execute(
                "INSERT INTO drugs_cache (drug_id, brand_name, generic_name, manufacturer, last_fetched) "
                "VALUES ('ghost', '', NULL, 'Aspirin Labs', ?)",
                (utcnow().timestamp(),),
            )

        assert cache.get("ghost") is None
        assert cache.find_by_name_fragment("") is None
        assert cache.list_all() == []

    def test_list_all_sorted_by_brand(self, cache, aspirin, advil):
        cache.put(aspirin)
        cache.put(advil)

        assert [d.brand_name for d in cache.list_all()] == ["Advil", "Aspirin"]

    def test_purge_older_than(self, cache, aspirin, advil):
        now = utcnow()
        cache.put(aspirin.model_copy(update={"fetched_at": now - timedelta(hours=48)}))
        cache.put(advil.model_copy(update={"fetched_at": now - timedelta(hours=1)}))

        deleted = cache.purge_older_than(24)

        assert deleted == 1
        assert cache.count() == 1
        assert cache.get("aspirin-1") is None
        assert cache.get("advil-1") is not None

    def test_purge_nothing_to_remove(self, cache, aspirin):
        cache.put(aspirin)
        assert cache.purge_older_than(24) == 0
        assert cache.count() == 1

    def test_unencodable_term_raises_storage_error(self, cache, aspirin):
        cache.put(aspirin)

        with pytest.raises(StorageError):
            cache.find_by_name_fragment("asp\ud800")

    def test_unencodable_record_raises_storage_error(self, cache):
        with pytest.raises(StorageError):
            cache.put(DrugRecord(drug_id="x-1", brand_name="Bad \udcff Name"))
        assert cache.count() == 0

    def test_uninitialized_database_raises_storage_error(self, test_settings):
        cache = DrugCache(DatabaseManager(test_settings))

        with pytest.raises(StorageError):
            cache.find_by_name_fragment("aspirin")
        with pytest.raises(StorageError):
            cache.put(DrugRecord(drug_id="a", brand_name="Aspirin"))
