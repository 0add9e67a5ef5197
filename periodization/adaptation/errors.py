"""Domain-specific errors for the adaptation engine.

Expected conditions (insufficient history, missing targets, duplicate
recommendations) are not errors and never raise; these classes cover the
paths where an evaluation or a response must be rejected.
"""


class AdaptationError(Exception):
    """Base exception for all adaptation engine errors."""

    pass


class MetricsCollectionError(AdaptationError):
    """Raised when a required time-series read fails; the evaluation is aborted."""

    def __init__(self, source: str, cause: BaseException | None = None):
        self.source = source
        self.cause = cause
        message = f"Failed to collect '{source}' for evaluation"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class RecommendationNotFoundError(AdaptationError):
    """Raised when a recommendation id does not exist for the user."""

    pass


class DeloadTriggerNotFoundError(AdaptationError):
    """Raised when a deload trigger id does not exist for the user."""

    pass


class InvalidResponseError(AdaptationError):
    """Raised when a response value is not allowed (e.g., unknown action, missing modified changes)."""

    pass


class RecommendationStateError(AdaptationError):
    """Raised when responding to a recommendation or trigger that is no longer pending."""

    pass


class PlanAdjustmentError(AdaptationError):
    """Raised when an accepted recommendation cannot be applied to the plan."""

    pass
