import asyncio
import time
import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Path, Query, Request

from medbot.config import Settings, settings as default_settings
from medbot.database import DatabaseManager
from medbot.drug_cache import DrugCache
from medbot.exceptions import StorageError, UpstreamError
from medbot.logging import setup_logging
from medbot.models import (
    CacheStats, DrugRecord, DrugSearchResponse, RecallSearchResponse, UserStats
)
from medbot.openfda_client import OpenFDAClient
from medbot.resolver import DrugResolver
from medbot.search_accounting import SearchAccounting

logger = logging.getLogger(__name__)

UNAVAILABLE_DETAIL = "openFDA is unavailable, try again later"

# Caller ids are stored as SQLite INTEGER
CALLER_ID_MIN = -2**63
CALLER_ID_MAX = 2**63 - 1


def create_app(config: Optional[Settings] = None,
               client: Optional[OpenFDAClient] = None) -> FastAPI:
    """Build the API with its own database handle, cache, client and resolver."""
    config = config or default_settings
    config.validate()

    db = DatabaseManager(config)
    cache = DrugCache(db, ttl_hours=config.CACHE_TTL_HOURS)
    client = client or OpenFDAClient(config)

    app = FastAPI(
        title="MedBot - openFDA Drug Safety Lookup",
        description="Drug label and recall search against openFDA with a local SQLite cache",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = config
    app.state.db = db
    app.state.cache = cache
    app.state.client = client
    app.state.resolver = DrugResolver(
        cache,
        client,
        recent_recalls_limit=config.RECENT_RECALLS_LIMIT,
        serve_stale_on_error=config.SERVE_STALE_ON_ERROR,
    )
    app.state.accounting = SearchAccounting(db)

    @app.on_event("startup")
    async def startup_event():
        """Initialize resources on startup."""
        setup_logging(config)
        logger.info("MedBot starting up")
        db.initialize()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Clean up resources on shutdown."""
        logger.info("MedBot shutting down - closing openFDA client")
        await client.close()

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time to response headers."""
        start_time = time.time()
        response = await call_next(request)
        response.headers["X-Process-Time"] = str(time.time() - start_time)
        return response

    @app.get("/health")
    async def health():
        """Basic health check endpoint."""
        return {"status": "healthy", "timestamp": time.time()}

    @app.get("/drugs/search", response_model=DrugSearchResponse)
    async def search_drugs(request: Request,
                           q: str = Query(..., min_length=1, max_length=200),
                           user_id: Optional[int] = Query(None, ge=CALLER_ID_MIN, le=CALLER_ID_MAX)):
        """Resolve a drug search, recording it for user_id when given."""
        start_time = time.time()
        state = request.app.state

        record_task = None
        if user_id is not None:
            record_task = asyncio.create_task(
                asyncio.to_thread(state.accounting.record_search, user_id, q)
            )

        results = None
        try:
            results = await state.resolver.resolve_drug(q)
        except UpstreamError as e:
            raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL) from e
        finally:
            if record_task is not None:
                search_id = await record_task
                if search_id is not None and results:
                    await asyncio.to_thread(state.accounting.set_result_count, search_id, len(results))

        return DrugSearchResponse(
            query=q,
            results=results,
            total_found=len(results),
            processing_time_ms=(time.time() - start_time) * 1000,
        )

    @app.get("/recalls", response_model=RecallSearchResponse)
    async def search_recalls(request: Request,
                             q: str = Query(..., min_length=1, max_length=200)):
        """Recalls for a product, or the most recent ones when q is "all"."""
        start_time = time.time()
        try:
            results = await request.app.state.resolver.resolve_recalls(q)
        except UpstreamError as e:
            raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL) from e

        return RecallSearchResponse(
            query=q,
            results=results,
            total_found=len(results),
            processing_time_ms=(time.time() - start_time) * 1000,
        )

    @app.get("/users/{caller_id}/stats", response_model=UserStats)
    async def user_stats(request: Request,
                         caller_id: int = Path(..., ge=CALLER_ID_MIN, le=CALLER_ID_MAX)):
        count = request.app.state.accounting.get_search_count(caller_id)
        return UserStats(caller_id=caller_id, search_count=count)

    @app.get("/cache/stats", response_model=CacheStats)
    async def cache_stats(request: Request):
        """Cached drug count and usage totals."""
        state = request.app.state
        try:
            cached = state.cache.count()
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        return CacheStats(
            cached_drugs=cached,
            total_users=state.accounting.get_total_users(),
            total_searches=state.accounting.get_total_searches(),
            ttl_hours=state.settings.CACHE_TTL_HOURS,
        )

    @app.get("/cache/drugs", response_model=List[DrugRecord])
    async def cached_drugs(request: Request):
        """Every cached drug, fresh or stale, ordered by brand name."""
        try:
            return request.app.state.cache.list_all()
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e

    @app.post("/cache/purge")
    async def purge_cache(request: Request,
                          older_than_hours: float = Query(..., gt=0)):
        """Delete cached drugs fetched more than older_than_hours ago."""
        try:
            deleted = request.app.state.cache.purge_older_than(older_than_hours)
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"status": "success", "deleted": deleted}

    @app.post("/cache/clear")
    async def clear_cache(request: Request):
        """Delete every cached drug."""
        try:
            deleted = request.app.state.db.clear_cache()
        except StorageError as e:
            raise HTTPException(status_code=500, detail=str(e)) from e
        return {"status": "success", "message": f"Cleared {deleted} cached drugs"}

    return app


app = create_app()
