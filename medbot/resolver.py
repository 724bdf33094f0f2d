"""Cache-or-fetch resolution of drug and recall searches."""

import asyncio
import re
import time
import logging
from datetime import datetime
from typing import List, Optional

from medbot.drug_cache import DrugCache
from medbot.exceptions import DrugNotFoundError, StorageError, UpstreamError
from medbot.models import DrugRecord, RecallRecord, utcnow
from medbot.openfda_client import OpenFDAClient

logger = logging.getLogger(__name__)

RECENT_RECALLS_SENTINEL = "all"


def generate_drug_id(drug: DrugRecord, fetched_at: Optional[datetime] = None) -> str:
    """
    Slug of the primary name plus the fetch time in milliseconds, e.g.
    "aspirin-1718000000000". The same drug found through different search
    terms gets different ids.
    """
    name = drug.primary_name or "unknown"
    normalized = re.sub(r"[^a-z0-9]", "-", name.lower())
    millis = int((fetched_at or drug.fetched_at or utcnow()).timestamp() * 1000)
    return f"{normalized}-{millis}"


class DrugResolver:
    """Answers drug searches from the cache when fresh, otherwise from openFDA."""

    def __init__(self, cache: DrugCache, client: OpenFDAClient,
                 recent_recalls_limit: int = 10, serve_stale_on_error: bool = False):
        self.cache = cache
        self.client = client
        self.recent_recalls_limit = recent_recalls_limit
        self.serve_stale_on_error = serve_stale_on_error

    async def resolve_drug(self, term: str) -> List[DrugRecord]:
        """
        Drugs matching term. A fresh cache hit returns a single record without
        calling openFDA; on a miss the first openFDA result is cached and the
        full list returned. No match yields []. Raises UpstreamError when
        openFDA fails.
        """
        start_time = time.time()
        term = (term or "").strip()
        if not term:
            return []

        logger.info(f"Searching drug: {term}")
        # sqlite calls run off the event loop so a busy database cannot stall it
        cached = await asyncio.to_thread(self._read_cache, term)
        if cached is not None:
            processing_time = (time.time() - start_time) * 1000
            logger.info(f"Cache HIT for '{term}' in {processing_time:.2f}ms")
            return [cached]

        logger.info(f"Cache MISS for '{term}', calling openFDA")
        try:
            drugs = await self.client.lookup_drug(term)
        except DrugNotFoundError:
            return []
        except UpstreamError as e:
            stale = await asyncio.to_thread(self._stale_fallback, term)
            if stale is not None:
                logger.warning(f"openFDA unavailable ({e}); serving stale cache entry for '{term}'")
                return [stale]
            logger.error(f"Drug search failed for '{term}': {e}")
            raise

        if not drugs:
            return []

        first = drugs[0]
        if not first.drug_id:
            first = first.model_copy(update={"drug_id": generate_drug_id(first)})
            drugs = [first] + drugs[1:]
        await asyncio.to_thread(self._write_cache, first)

        processing_time = (time.time() - start_time) * 1000
        logger.info(f"openFDA search returned {len(drugs)} drugs in {processing_time:.2f}ms for '{term}'")
        return drugs

    async def resolve_recalls(self, term: str) -> List[RecallRecord]:
        """
        Recalls for term, or the most recent recalls when term is "all".
        Always goes to openFDA; recalls are never cached.
        """
        term = (term or "").strip()
        if not term:
            return []

        logger.info(f"Searching recalls for: {term}")
        if term.lower() == RECENT_RECALLS_SENTINEL:
            return await self.client.lookup_recent_recalls(self.recent_recalls_limit)
        return await self.client.lookup_recalls(term)

    def _read_cache(self, term: str) -> Optional[DrugRecord]:
        try:
            return self.cache.find_by_name_fragment(term)
        except StorageError as e:
            logger.error(f"Cache lookup failed for '{term}', falling back to openFDA: {e}")
            return None

    def _write_cache(self, drug: DrugRecord) -> None:
        try:
            self.cache.put(drug)
        except StorageError as e:
            logger.error(f"Error caching drug {drug.drug_id}: {e}")

    def _stale_fallback(self, term: str) -> Optional[DrugRecord]:
        if not self.serve_stale_on_error:
            return None
        try:
            return self.cache.find_by_name_fragment(term, include_stale=True)
        except StorageError as e:
            logger.error(f"Stale cache lookup failed for '{term}': {e}")
            return None
