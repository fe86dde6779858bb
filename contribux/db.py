"""
Database management layer.

Provides a singleton DatabaseManager for:
- Connection pooling (QueuePool for server databases, StaticPool for SQLite)
- Session management with commit/rollback context managers
- Schema creation for the catalog models

Usage:
    from contribux.db import db, Base

    db.initialize()
    with db.session() as session:
        catalog = CatalogStore(session)
"""

import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .config import get_settings
from .logging import get_logger

logger = get_logger("contribux.db")


class Base(DeclarativeBase):
    """Declarative base for all catalog models."""

    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # Opportunity rows cascade with their repository only when FKs are enforced.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """Singleton holder of the engine and session factory."""

    _instance: Optional["DatabaseManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "DatabaseManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def initialize(self, database_url: str | None = None) -> None:
        """
        Initialize the engine. Call once at startup; later calls are no-ops.

        Args:
            database_url: Optional override of ``settings.database_url``.
        """
        if self._initialized:
            return

        settings = get_settings()
        url = database_url or settings.database_url
        is_sqlite = url.startswith("sqlite")

        if is_sqlite:
            engine_kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        else:
            engine_kwargs = {
                "poolclass": QueuePool,
                "pool_size": settings.db_pool_size,
                "max_overflow": settings.db_max_overflow,
                "pool_pre_ping": settings.db_pool_pre_ping,
            }

        self.engine = create_engine(url, echo=settings.debug, **engine_kwargs)
        if is_sqlite:
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )
        self._initialized = True
        logger.info("database_initialized", dialect=self.engine.dialect.name)

    def create_all_tables(self) -> None:
        """Create all catalog tables."""
        self._ensure_initialized()
        # Import registers the mappers on Base.metadata.
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Session scope that commits on success and rolls back on error.

        Usage:
            with db.session() as session:
                ...
        """
        self._ensure_initialized()
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def health_check(self) -> dict:
        """
        Run ``SELECT 1`` against the engine.

        Returns:
            dict with 'healthy', 'latency_ms' and 'error'
        """
        if not self._initialized:
            return {"healthy": False, "latency_ms": 0, "error": "Database not initialized"}

        start = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("database_health_check_failed", error=str(e))
            latency = (time.perf_counter() - start) * 1000
            return {"healthy": False, "latency_ms": round(latency, 2), "error": str(e)}
        latency = (time.perf_counter() - start) * 1000
        return {"healthy": True, "latency_ms": round(latency, 2), "error": None}

    def reset(self) -> None:
        """Dispose the engine and clear the initialized flag."""
        if getattr(self, "engine", None) is not None:
            self.engine.dispose()
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")


# Global singleton
db = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a managed session."""
    with db.session() as session:
        yield session


__all__ = ["Base", "DatabaseManager", "db", "get_db"]
