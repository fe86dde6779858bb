"""
Embedding Service - rate-limited, retrying client for the embedding model.

The model itself is a black box producing fixed-dimension vectors. This
service wraps it with:
1. A minimum interval between calls (requests per minute)
2. Exponential backoff between retries of transient failures
3. A dimension check on every vector returned

Exhausted retries raise EmbeddingUnavailable; callers degrade (lexical-only
search, embedding left empty until the next ingestion pass).
"""

import time
from collections.abc import Callable, Sequence
from typing import Optional, Protocol

import numpy as np

from contribux.config import get_settings
from contribux.exceptions import EmbeddingUnavailable, InvariantViolation, ValidationError
from contribux.logging import get_logger

logger = get_logger("embedding.service")


class EmbeddingProvider(Protocol):
    """Anything that turns text into a vector."""

    model_name: str

    def embed(self, text: str) -> Sequence[float]:
        ...


class SentenceTransformerProvider:
    """
    sentence-transformers backed provider.

    The model is loaded on first use so importing this module stays cheap.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise ImportError(
                    "sentence-transformers package is required for embeddings. "
                    "Install with: pip install 'contribux[embeddings]'"
                ) from e
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed(self, text: str) -> Sequence[float]:
        return self._get_model().encode(text, convert_to_numpy=True)


class RateLimiter:
    """
    Minimum-interval rate limiter with an error backoff factor.

    The factor doubles on every failure (up to 32) and halves on every
    success, stretching the interval while the model is struggling.
    """

    def __init__(
        self,
        requests_per_minute: int = 600,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive")
        self.requests_per_minute = requests_per_minute
        self.min_interval = 60.0 / requests_per_minute
        self.backoff_factor = 1.0
        self.last_request_time: Optional[float] = None
        self._clock = clock
        self._sleep = sleep

    def wait_if_needed(self) -> None:
        """Sleep until the next request is allowed."""
        now = self._clock()
        if self.last_request_time is not None:
            elapsed = now - self.last_request_time
            interval = self.min_interval * self.backoff_factor
            if elapsed < interval:
                self._sleep(interval - elapsed)
        self.last_request_time = self._clock()

    def increase_backoff(self) -> None:
        self.backoff_factor = min(self.backoff_factor * 2, 32)

    def reset_backoff(self) -> None:
        self.backoff_factor = max(self.backoff_factor / 2, 1.0)


class EmbeddingService:
    """
    Embedding client used by ingestion and by search to embed query text.

    Usage:
        service = EmbeddingService.from_settings()
        vector = service.embed("Fix flaky scheduler test")
    """

    RETRYABLE = (EmbeddingUnavailable, ConnectionError, TimeoutError)

    def __init__(
        self,
        provider: EmbeddingProvider,
        dimension: int,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.dimension = dimension
        self.rate_limiter = rate_limiter or RateLimiter(sleep=sleep)
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings=None, provider: Optional[EmbeddingProvider] = None) -> "EmbeddingService":
        settings = settings or get_settings()
        return cls(
            provider=provider or SentenceTransformerProvider(settings.embedding_model),
            dimension=settings.embedding_dimension,
            rate_limiter=RateLimiter(settings.embedding_requests_per_minute),
            max_retries=settings.embedding_max_retries,
            backoff_base=settings.embedding_backoff_base_seconds,
            backoff_max=settings.embedding_backoff_max_seconds,
        )

    @property
    def model_name(self) -> str:
        return self.provider.model_name

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (attempt counts from 0)."""
        return min(self.backoff_base * (2 ** attempt), self.backoff_max)

    def embed(self, text: str) -> np.ndarray:
        """
        Embed ``text``.

        Raises:
            ValidationError: Empty text
            EmbeddingUnavailable: Every attempt failed
            InvariantViolation: The model returned a vector of the wrong dimension
        """
        if not text or not text.strip():
            raise ValidationError("cannot embed empty text")

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            self.rate_limiter.wait_if_needed()
            try:
                raw = self.provider.embed(text)
            except self.RETRYABLE as e:
                last_error = e
                self.rate_limiter.increase_backoff()
                if attempt < self.max_retries:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        "embedding_retry",
                        attempt=attempt + 1,
                        delay_seconds=delay,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    self._sleep(delay)
                continue

            self.rate_limiter.reset_backoff()
            vector = np.asarray(raw, dtype=np.float32).reshape(-1)
            if vector.shape[0] != self.dimension:
                raise InvariantViolation(
                    f"model {self.model_name} returned dimension {vector.shape[0]}, expected {self.dimension}"
                )
            return vector

        logger.error("embedding_unavailable", attempts=self.max_retries + 1, error=str(last_error))
        raise EmbeddingUnavailable(
            f"embedding failed after {self.max_retries + 1} attempts: {last_error}"
        ) from last_error


__all__ = [
    "EmbeddingProvider",
    "SentenceTransformerProvider",
    "RateLimiter",
    "EmbeddingService",
]
