"""Data models for the Buyer Universe service."""

from .tracker import (
    Tracker,
    SizeCriteria,
    ServiceCriteria,
    GeographyCriteria,
    BuyerTypeProfile,
    BuyerTypesCriteria,
    GeographyStrictness,
    SizeImportance,
)
from .records import (
    Buyer,
    Deal,
    ExtractionSource,
    ExtractionSourceType,
)
from .score import (
    FitScore,
    SubScores,
    ScoreStatus,
    DataCompleteness,
    Disqualification,
    DisqualificationCode,
    Readiness,
    ScoreRecord,
)

__all__ = [
    "Tracker",
    "SizeCriteria",
    "ServiceCriteria",
    "GeographyCriteria",
    "BuyerTypeProfile",
    "BuyerTypesCriteria",
    "GeographyStrictness",
    "SizeImportance",
    "Buyer",
    "Deal",
    "ExtractionSource",
    "ExtractionSourceType",
    "FitScore",
    "SubScores",
    "ScoreStatus",
    "DataCompleteness",
    "Disqualification",
    "DisqualificationCode",
    "Readiness",
    "ScoreRecord",
]
