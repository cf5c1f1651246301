"""Recommendation error types."""


class RecommendationError(Exception):
    """Base class for errors raised by the recommendation core."""


class InvalidRecommendationRequest(RecommendationError):
    """Raised when a caller supplies an invalid user id, limit or filter.

    The message is safe to return to the caller as-is.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class SnapshotUnavailable(RecommendationError):
    """Raised when the analysis snapshot is missing or cannot be parsed."""
