"""
Application configuration using Pydantic settings.

Usage:
    from contribux.config import get_settings
    settings = get_settings()

Scoring defaults live here so they can be tuned per deployment; the
validated per-call records are built from them, e.g.
``RankingConfig.from_settings(settings)``.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Unified application settings loaded from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App settings
    app_name: str = "contribux"
    api_prefix: str = "/api"
    debug: bool = Field(default=False)
    cors_allowed_origins: str = Field(default="http://localhost:3000", validation_alias="CORS_ALLOWED_ORIGINS")

    # Database
    database_url: str = Field(default="sqlite:///contribux.db", validation_alias="DATABASE_URL")
    db_pool_size: int = Field(default=10, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, validation_alias="DB_MAX_OVERFLOW")
    db_pool_pre_ping: bool = Field(default=True, validation_alias="DB_POOL_PRE_PING")

    # Redis
    redis_host: str = Field(default="localhost", validation_alias="REDIS_HOST")
    redis_port: int = Field(default=6379, validation_alias="REDIS_PORT")
    redis_db: int = Field(default=0, validation_alias="REDIS_DB")
    redis_password: Optional[str] = Field(default=None, validation_alias="REDIS_PASSWORD")
    cache_enabled: bool = Field(default=True, validation_alias="CACHE_ENABLED")

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Celery
    celery_broker_url: str = Field(default="redis://localhost:6379/1", validation_alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field(default="redis://localhost:6379/2", validation_alias="CELERY_RESULT_BACKEND")

    # Embeddings
    embeddings_enabled: bool = Field(default=True, validation_alias="EMBEDDINGS_ENABLED")
    embedding_model: str = Field(default="all-MiniLM-L6-v2", validation_alias="EMBEDDING_MODEL")
    embedding_dimension: int = Field(default=384, gt=0, validation_alias="EMBEDDING_DIMENSION")
    embedding_requests_per_minute: int = Field(default=600, gt=0, validation_alias="EMBEDDING_REQUESTS_PER_MINUTE")
    embedding_max_retries: int = Field(default=3, ge=0, validation_alias="EMBEDDING_MAX_RETRIES")
    embedding_backoff_base_seconds: float = Field(default=0.5, ge=0, validation_alias="EMBEDDING_BACKOFF_BASE")
    embedding_backoff_max_seconds: float = Field(default=8.0, ge=0, validation_alias="EMBEDDING_BACKOFF_MAX")

    # Vector index (HNSW graph)
    vector_index_type: str = Field(default="hnsw", validation_alias="VECTOR_INDEX_TYPE")
    hnsw_m: int = Field(default=16, ge=2, validation_alias="HNSW_M")
    hnsw_ef_construction: int = Field(default=200, ge=1, validation_alias="HNSW_EF_CONSTRUCTION")
    hnsw_ef_search: int = Field(default=64, ge=1, validation_alias="HNSW_EF_SEARCH")
    index_sync_interval_seconds: float = Field(default=30.0, ge=0, validation_alias="INDEX_SYNC_INTERVAL")

    # Hybrid ranking defaults
    search_text_weight: float = Field(default=0.3, ge=0, validation_alias="SEARCH_TEXT_WEIGHT")
    search_vector_weight: float = Field(default=0.7, ge=0, validation_alias="SEARCH_VECTOR_WEIGHT")
    search_similarity_threshold: float = Field(default=0.1, ge=0, le=1, validation_alias="SEARCH_SIMILARITY_THRESHOLD")
    ranking_batch_size: int = Field(default=256, gt=0, validation_alias="RANKING_BATCH_SIZE")
    search_candidate_pool: int = Field(default=200, gt=0, validation_alias="SEARCH_CANDIDATE_POOL")

    # Preference matching weights
    match_base_weight: float = Field(default=0.4, ge=0, validation_alias="MATCH_BASE_WEIGHT")
    match_skill_weight: float = Field(default=0.3, ge=0, validation_alias="MATCH_SKILL_WEIGHT")
    match_type_weight: float = Field(default=0.2, ge=0, validation_alias="MATCH_TYPE_WEIGHT")
    match_time_weight: float = Field(default=0.2, ge=0, validation_alias="MATCH_TIME_WEIGHT")
    match_technology_weight: float = Field(default=0.2, ge=0, validation_alias="MATCH_TECHNOLOGY_WEIGHT")

    # Feed / trending
    feed_cache_ttl_seconds: int = Field(default=300, ge=0, validation_alias="FEED_CACHE_TTL")
    trending_cache_ttl_seconds: int = Field(default=120, ge=0, validation_alias="TRENDING_CACHE_TTL")
    max_candidates: int = Field(default=2000, gt=0, validation_alias="MAX_CANDIDATES")
    max_result_limit: int = Field(default=100, gt=0, validation_alias="MAX_RESULT_LIMIT")
    trending_window_hours: int = Field(default=168, gt=0, validation_alias="TRENDING_WINDOW_HOURS")
    trending_min_engagement: int = Field(default=1, ge=0, validation_alias="TRENDING_MIN_ENGAGEMENT")

    # Opportunity lifecycle
    stale_after_days: int = Field(default=30, gt=0, validation_alias="STALE_AFTER_DAYS")
    close_stale_after_days: int = Field(default=14, gt=0, validation_alias="CLOSE_STALE_AFTER_DAYS")

    # Scheduler
    enable_scheduler: bool = Field(default=True, validation_alias="ENABLE_SCHEDULER")
    scheduler_health_cron_hour: int = Field(default=4, ge=0, le=23, validation_alias="SCHEDULER_HEALTH_HOUR")
    scheduler_staleness_cron_hour: int = Field(default=5, ge=0, le=23, validation_alias="SCHEDULER_STALENESS_HOUR")
    scheduler_index_rebuild_cron_hour: int = Field(default=3, ge=0, le=23, validation_alias="SCHEDULER_INDEX_REBUILD_HOUR")

    @field_validator("vector_index_type")
    @classmethod
    def validate_index_type(cls, v: str) -> str:
        """Only the exact scan and the HNSW graph are implemented."""
        value = v.lower()
        if value not in ("hnsw", "brute_force"):
            raise ValueError(f"VECTOR_INDEX_TYPE must be 'hnsw' or 'brute_force' (got '{v}')")
        return value

    @field_validator("search_vector_weight")
    @classmethod
    def validate_weights(cls, v: float, info) -> float:
        text_weight = info.data.get("search_text_weight", 0.0)
        if v == 0 and text_weight == 0:
            raise ValueError("SEARCH_TEXT_WEIGHT and SEARCH_VECTOR_WEIGHT cannot both be zero")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


__all__ = ["Settings", "get_settings"]
