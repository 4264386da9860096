"""
Error taxonomy for the embedding pipeline and search path.

Every component raises one of these types. None of them are retried
internally; the caller decides whether to re-run.
"""

from __future__ import annotations

from typing import Any


class ExecutiveSearchError(Exception):
    """Base class for all pipeline and search errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context)

    def with_context(self, **context: Any) -> ExecutiveSearchError:
        """Attach extra context and return self for re-raising."""
        self.context.update(context)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class AuthError(ExecutiveSearchError):
    """Access token could not be obtained or refreshed."""


class EmbeddingError(ExecutiveSearchError):
    """The embedding provider failed or broke its contract."""


class DimensionMismatchError(EmbeddingError):
    """A returned vector does not have the configured dimension."""

    def __init__(self, expected: int, actual: int, position: int | None = None):
        message = f"Expected embedding of dimension {expected}, got {actual}"
        super().__init__(message, expected=expected, actual=actual)
        if position is not None:
            self.context["position"] = position
        self.expected = expected
        self.actual = actual


class TransactionError(ExecutiveSearchError):
    """A storage write transaction failed and was rolled back."""


class IndexCreationError(ExecutiveSearchError):
    """The vector index declaration was rejected or conflicts with an existing index."""


class IndexTimeoutError(ExecutiveSearchError):
    """The vector index did not come online before the deadline."""


class SearchError(ExecutiveSearchError):
    """The nearest-neighbor query failed."""


class PipelineCancelledError(ExecutiveSearchError):
    """The run was cancelled before it finished."""
