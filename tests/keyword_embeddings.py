"""
Deterministic keyword embeddings used in place of the sentence-transformers model.
"""

import numpy as np

from contribux.services import EmbeddingService, RateLimiter

DIMENSION = 4

# Axis of the keyword embedding each word contributes to.
KEYWORD_AXES = {
    "python": 0,
    "django": 0,
    "docs": 1,
    "documentation": 1,
    "rust": 2,
    "compiler": 2,
    "test": 3,
    "tests": 3,
    "flaky": 3,
}


def keyword_vector(text: str) -> np.ndarray:
    """Bag of keyword axes; texts without keywords get a uniform low vector."""
    vector = np.zeros(DIMENSION, dtype=np.float32)
    for word in text.lower().replace(",", " ").replace(".", " ").split():
        axis = KEYWORD_AXES.get(word)
        if axis is not None:
            vector[axis] += 1.0
    if not vector.any():
        vector[:] = 0.1
    return vector


class KeywordEmbeddingProvider:
    """Stand-in for the embedding model that can fail a set number of times."""

    model_name = "keyword-test-model"

    def __init__(self, fail_times: int = 0, error: Exception | None = None):
        self.calls = 0
        self.fail_times = fail_times
        self.error = error or ConnectionError("model endpoint unreachable")

    def embed(self, text: str):
        self.calls += 1
        if self.calls <= self.fail_times:
            raise self.error
        return keyword_vector(text)


def make_embedding_service(provider=None, max_retries: int = 2) -> EmbeddingService:
    return EmbeddingService(
        provider or KeywordEmbeddingProvider(),
        dimension=DIMENSION,
        rate_limiter=RateLimiter(requests_per_minute=60000, sleep=lambda s: None),
        max_retries=max_retries,
        sleep=lambda s: None,
    )
