"""
FastAPI application entry point.

Uses structured logging from contribux.logging.

    uvicorn backend.app.main:app --reload
"""

import asyncio

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from contribux.cache import CacheKeys, cache
from contribux.config import get_settings
from contribux.db import db
from contribux.index.registry import get_search_indexes
from contribux.logging import RequestLoggingMiddleware, configure_logging, get_logger

from .error_handlers import register_exception_handlers
from .routers import index as index_router
from .routers import repositories as repositories_router
from .routers import search as search_router
from .routers import trending as trending_router
from .routers import users as users_router

settings = get_settings()
configure_logging(level="DEBUG" if settings.debug else "INFO")
logger = get_logger("api")


def sync_search_indexes() -> bool:
    """Pick up index changes published by the workers."""
    with db.session() as session:
        return get_search_indexes().sync_with(cache, session)


async def _index_sync_loop(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(sync_search_indexes)
        except Exception as e:
            logger.error("index_sync_failed", error=str(e), exc_info=True)


def create_app() -> FastAPI:
    api_prefix = f"{settings.api_prefix}/v1"

    app = FastAPI(title=settings.app_name, debug=settings.debug)

    origins = [origin.strip() for origin in settings.cors_allowed_origins.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Accept-Encoding", "Origin"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    @app.on_event("startup")
    async def startup_event():
        """Initialize the database, the cache and the in-process search indexes."""
        logger.info("app_startup", app_name=settings.app_name)

        db.initialize(settings.database_url)
        db.create_all_tables()

        cache.initialize()
        if cache.is_available:
            logger.info("cache_initialized", redis_host=settings.redis_host)
        else:
            logger.warning("cache_unavailable")

        indexes = get_search_indexes()
        generation = cache.get_json(CacheKeys.index_generation())
        with db.session() as session:
            versions = indexes.rebuild_from_catalog(session)
        indexes.generation = generation
        logger.info("search_indexes_loaded", generation=generation, **versions)

        if settings.index_sync_interval_seconds > 0:
            app.state.index_sync = asyncio.create_task(_index_sync_loop(settings.index_sync_interval_seconds))

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("app_shutdown")
        task = getattr(app.state, "index_sync", None)
        if task is not None:
            task.cancel()

    @app.get("/health", tags=["health"])
    def health_check():
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/health/ready", tags=["health"])
    def readiness_check():
        """
        Readiness probe: the database must answer and the search indexes
        must be built. The cache is optional.
        """
        indexes = get_search_indexes()
        checks = {
            "database": db.health_check()["healthy"],
            "cache": cache.is_available,
            "indexes": indexes.opportunities.is_ready and indexes.repositories.is_ready,
        }
        if not (checks["database"] and checks["indexes"]):
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", "checks": checks},
            )
        return {"status": "ready", "checks": checks}

    app.include_router(search_router.router, prefix=api_prefix)
    app.include_router(users_router.router, prefix=api_prefix)
    app.include_router(trending_router.router, prefix=api_prefix)
    app.include_router(repositories_router.router, prefix=api_prefix)
    app.include_router(index_router.router, prefix=api_prefix)

    return app


app = create_app()
