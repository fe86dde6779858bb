"""
Error hierarchy for the discovery engine.

- ValidationError: bad input, rejected before any index is touched, never retried.
- NotFoundError: unknown user/repository/opportunity, surfaced to the caller.
- DependencyUnavailable: embedding service down or index not ready; retried
  with bounded backoff, then degraded.
- InvariantViolation: corrupted internal state; fails loudly.
- DataIntegrityWarning: non-fatal anomaly, logged and emitted via ``warnings``.
"""


class ContribuxError(Exception):
    """Base class for all engine errors."""


# =============================================================================
# Validation
# =============================================================================


class ValidationError(ContribuxError):
    """Input rejected before touching any index."""


class InvalidWeights(ValidationError):
    """Weight configuration is negative, non-finite, or all zero."""


class InvalidLimit(ValidationError):
    """A list endpoint was called with a non-positive limit."""

    def __init__(self, limit):
        self.limit = limit
        super().__init__(f"limit must be a positive integer (got {limit!r})")


class DimensionMismatch(ValidationError):
    """A vector does not have the index dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"vector dimension {actual} does not match index dimension {expected}")


class InvalidVector(ValidationError):
    """A vector is zero-norm or contains non-finite values."""


class InvalidTransition(ValidationError):
    """An opportunity status transition is not allowed."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"cannot transition opportunity from '{current}' to '{target}'")


class EmptyQuery(ValidationError):
    """A search was issued with neither query text nor query vector."""


class InvalidEntity(ValidationError):
    """Entity attributes violate a data-model constraint."""


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(ContribuxError):
    """A referenced entity does not exist."""

    entity = "entity"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class UserNotFound(NotFoundError):
    entity = "user"


class RepositoryNotFound(NotFoundError):
    entity = "repository"


class OpportunityNotFound(NotFoundError):
    entity = "opportunity"


# =============================================================================
# Dependencies
# =============================================================================


class DependencyUnavailable(ContribuxError):
    """A collaborator is temporarily unavailable."""


class EmbeddingUnavailable(DependencyUnavailable):
    """The embedding collaborator could not produce a vector."""


class IndexUnavailable(DependencyUnavailable):
    """No built vector index is available to serve queries."""


# =============================================================================
# Control flow and integrity
# =============================================================================


class RankingCancelled(ContribuxError):
    """A ranking or matching run was cancelled before completion."""


class InvariantViolation(RuntimeError):
    """Internal state is corrupted, e.g. a stored vector with the wrong dimension."""


class DataIntegrityWarning(UserWarning):
    """Non-fatal data anomaly, such as completing work that was never started."""


__all__ = [
    "ContribuxError",
    "ValidationError",
    "InvalidWeights",
    "InvalidLimit",
    "DimensionMismatch",
    "InvalidVector",
    "InvalidTransition",
    "EmptyQuery",
    "InvalidEntity",
    "NotFoundError",
    "UserNotFound",
    "RepositoryNotFound",
    "OpportunityNotFound",
    "DependencyUnavailable",
    "EmbeddingUnavailable",
    "IndexUnavailable",
    "RankingCancelled",
    "InvariantViolation",
    "DataIntegrityWarning",
]
