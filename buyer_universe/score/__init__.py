"""Fit scoring engine for ranking buyers against deals."""

from .scorer import FitScorer
from .filters import HardFilters, FilterResult
from .readiness import CriteriaValidation, check_readiness, validate_criteria

__all__ = [
    "FitScorer",
    "HardFilters",
    "FilterResult",
    "CriteriaValidation",
    "check_readiness",
    "validate_criteria",
]
