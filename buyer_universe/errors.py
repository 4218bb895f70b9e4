"""
Typed exceptions for the Buyer Universe service.

Missing optional data never raises: the scoring engine degrades sub-scores
instead. These errors cover inputs that cannot be evaluated at all.
"""

from typing import Any, Optional


class BuyerUniverseError(Exception):
    """Base exception for all buyer universe errors."""

    status_code: int = 500

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Structured form for API responses."""
        return {
            "error": self.message,
            "code": type(self).__name__,
            "details": self.context,
        }


class ValidationError(BuyerUniverseError):
    """Input failed validation."""

    status_code = 400


class ScoringInputError(ValidationError):
    """A buyer or deal is missing its identity and cannot be scored."""


class CriteriaValidationError(ValidationError):
    """Tracker criteria are structurally contradictory."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class NotFoundError(BuyerUniverseError):
    """A requested entity does not exist."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            {"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class LLMUnavailableError(BuyerUniverseError):
    """The language model is not configured or returned nothing usable."""

    status_code = 503
