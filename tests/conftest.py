"""
Pytest fixtures for contribux tests.

Uses an in-memory SQLite database per test and a deterministic keyword
embedding provider in place of the sentence-transformers model.
"""

from datetime import timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from contribux.catalog import CatalogStore
from contribux.config import Settings
from contribux.db import Base, _enable_sqlite_foreign_keys
from contribux.index.registry import SearchIndexes
from contribux.index.vector_index import BruteForceIndex
from contribux.services import DiscoveryService, IngestionService
from contribux.utils import utcnow

from keyword_embeddings import DIMENSION, KeywordEmbeddingProvider, make_embedding_service
from memory_cache import MemoryCache


@pytest.fixture
def settings():
    """Settings isolated from the environment's .env file."""
    return Settings(_env_file=None, CACHE_ENABLED=False, EMBEDDING_DIMENSION=DIMENSION)


@pytest.fixture(scope="function")
def test_db():
    """Fresh in-memory SQLite database for each test."""
    import contribux.models  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    yield engine, TestingSessionLocal

    engine.dispose()


@pytest.fixture
def test_session(test_db):
    """Get a test session from the test database."""
    _, TestingSessionLocal = test_db
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture
def indexes():
    return SearchIndexes.create(DIMENSION, KeywordEmbeddingProvider.model_name, factory=BruteForceIndex)


@pytest.fixture
def embedding_provider():
    return KeywordEmbeddingProvider()


@pytest.fixture
def embedding_service(embedding_provider):
    return make_embedding_service(embedding_provider)


@pytest.fixture
def ingestion(test_session, indexes, embedding_service, settings):
    return IngestionService(test_session, indexes, embedding_service=embedding_service, settings=settings)


@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def catalog(test_session):
    return CatalogStore(test_session)


@pytest.fixture
def discovery(catalog, indexes, embedding_service, settings):
    return DiscoveryService(catalog, indexes, embedding_service=embedding_service, settings=settings)


@pytest.fixture
def seeded(ingestion):
    """
    Two repositories, three open opportunities and one user.

    Returns a dict of the created ORM objects keyed by short names.
    """
    now = utcnow()
    python_repo = ingestion.upsert_repository(
        "octo/pyweb",
        description="A python web framework",
        language="Python",
        topics=["python", "django"],
        stars=1200,
        last_activity_at=now - timedelta(days=2),
        median_response_hours=12,
        pr_merge_rate=0.8,
        issue_close_rate=0.6,
        has_contributing_guide=True,
        activity_score=85,
        community_score=75,
        documentation_score=40,
        contributor_friendliness=60,
    )
    rust_repo = ingestion.upsert_repository(
        "octo/rustc-lite",
        description="A small rust compiler",
        language="Rust",
        topics=["rust", "compiler"],
        stars=300,
    )
    docs = ingestion.upsert_opportunity(
        python_repo.id,
        "Improve python documentation",
        description="The docs for the django adapter are outdated",
        type="documentation",
        difficulty="beginner",
        technologies=["python"],
        estimated_hours=3,
        priority=60,
        good_first_issue=True,
    )
    flaky = ingestion.upsert_opportunity(
        python_repo.id,
        "Fix flaky test in scheduler",
        description="The scheduler tests fail intermittently on CI",
        type="test",
        difficulty="intermediate",
        technologies=["python"],
        estimated_hours=8,
        priority=80,
    )
    parser = ingestion.upsert_opportunity(
        rust_repo.id,
        "Speed up the compiler parser",
        description="Parsing large rust files is slow",
        type="feature",
        difficulty="advanced",
        technologies=["rust"],
        estimated_hours=20,
        priority=40,
    )
    user = ingestion.register_user(
        "alice",
        bio="python developer who enjoys docs and tests",
        skill_level="beginner",
        preferred_languages=["Python"],
        availability_hours=10,
    )
    return {
        "python_repo": python_repo,
        "rust_repo": rust_repo,
        "docs": docs,
        "flaky": flaky,
        "parser": parser,
        "user": user,
    }
