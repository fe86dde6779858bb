"""
Tests for the rate-limited, retrying embedding client.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from contribux.exceptions import EmbeddingUnavailable, InvariantViolation, ValidationError
from contribux.services import EmbeddingService, RateLimiter
from contribux.services.embedding_service import SentenceTransformerProvider

from keyword_embeddings import DIMENSION, KeywordEmbeddingProvider, make_embedding_service


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class TestRateLimiter:
    def test_first_request_does_not_wait(self):
        clock = FakeClock()
        limiter = RateLimiter(requests_per_minute=60, clock=clock, sleep=clock.sleep)

        limiter.wait_if_needed()

        assert clock.sleeps == []

    def test_waits_for_min_interval(self):
        clock = FakeClock()
        limiter = RateLimiter(requests_per_minute=60, clock=clock, sleep=clock.sleep)

        limiter.wait_if_needed()
        clock.now += 0.25
        limiter.wait_if_needed()

        assert clock.sleeps == [pytest.approx(0.75)]

    def test_backoff_factor(self):
        limiter = RateLimiter()
        for _ in range(10):
            limiter.increase_backoff()
        assert limiter.backoff_factor == 32

        limiter.reset_backoff()
        assert limiter.backoff_factor == 16

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            RateLimiter(requests_per_minute=0)


class TestEmbeddingService:
    def test_backoff_delay(self):
        service = EmbeddingService(KeywordEmbeddingProvider(), DIMENSION, backoff_base=0.5, backoff_max=3.0)

        assert [service.backoff_delay(a) for a in range(4)] == [0.5, 1.0, 2.0, 3.0]

    def test_embed(self):
        vector = make_embedding_service().embed("python docs")

        assert vector.dtype == np.float32
        assert vector.tolist() == [1.0, 1.0, 0.0, 0.0]

    def test_retries_then_succeeds(self):
        provider = KeywordEmbeddingProvider(fail_times=2)
        service = make_embedding_service(provider, max_retries=2)

        service.embed("rust compiler")

        assert provider.calls == 3

    def test_exhausted_retries(self):
        provider = KeywordEmbeddingProvider(fail_times=5, error=TimeoutError("model timed out"))
        service = make_embedding_service(provider, max_retries=2)

        with pytest.raises(EmbeddingUnavailable):
            service.embed("rust compiler")
        assert provider.calls == 3

    def test_non_retryable_error_propagates(self):
        provider = KeywordEmbeddingProvider(fail_times=1, error=KeyError("bad payload"))
        service = make_embedding_service(provider)

        with pytest.raises(KeyError):
            service.embed("rust")
        assert provider.calls == 1

    def test_wrong_dimension(self):
        class WideProvider:
            model_name = "wide"

            def embed(self, text):
                return [1.0] * (DIMENSION + 1)

        with pytest.raises(InvariantViolation):
            make_embedding_service(WideProvider()).embed("anything")

    def test_empty_text(self):
        with pytest.raises(ValidationError):
            make_embedding_service().embed("  ")


class TestSentenceTransformerProvider:
    def test_model_loaded_once_and_encodes(self):
        provider = SentenceTransformerProvider("all-MiniLM-L6-v2")
        model = MagicMock()
        model.encode.return_value = np.ones(DIMENSION, dtype=np.float32)
        provider._model = model

        service = make_embedding_service(provider)
        vector = service.embed("python")

        model.encode.assert_called_once_with("python", convert_to_numpy=True)
        assert vector.tolist() == [1.0] * DIMENSION
