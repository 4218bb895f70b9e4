"""Fit scoring output models."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ScoreStatus(str, Enum):
    SCORED = "scored"
    DISQUALIFIED = "disqualified"
    INSUFFICIENT_DATA = "insufficient_data"


class DataCompleteness(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DisqualificationCode(str, Enum):
    """Every condition that can take a buyer out of consideration for a deal."""

    EXCLUDED_SERVICE = "excluded_service"
    EXCLUDED_INDUSTRY = "excluded_industry"
    REVENUE_BELOW_MINIMUM = "revenue_below_minimum"
    REVENUE_ABOVE_MAXIMUM = "revenue_above_maximum"
    EBITDA_BELOW_MINIMUM = "ebitda_below_minimum"
    EBITDA_ABOVE_MAXIMUM = "ebitda_above_maximum"
    EXCLUDED_GEOGRAPHY = "excluded_geography"
    OUTSIDE_FOOTPRINT = "outside_footprint"
    THESIS_REGION_CONFLICT = "thesis_region_conflict"


class Disqualification(BaseModel):
    code: DisqualificationCode
    message: str


class SubScores(BaseModel):
    """Per-category results. Size, service, geography and data quality are 0-100;
    buyer_type holds bonus points."""

    size: float = 0.0
    service: float = 0.0
    geography: float = 0.0
    buyer_type: float = 0.0
    data_quality: float = 0.0


class Readiness(BaseModel):
    """Whether tracker criteria carry enough signal to score against."""

    ready: bool
    missing: list[str] = Field(default_factory=list)


class FitScore(BaseModel):
    """Result of scoring one buyer against one deal."""

    buyer_id: str
    deal_id: str
    buyer_name: Optional[str] = None
    status: ScoreStatus

    composite: Optional[int] = Field(
        default=None, ge=0, le=100,
        description="0-100 fit; None when criteria are insufficient. Check `disqualified` first.",
    )
    subscores: Optional[SubScores] = None
    disqualified: bool = False
    disqualifications: list[Disqualification] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    data_completeness: Optional[DataCompleteness] = None
    buyer_type: Optional[str] = None
    readiness: Optional[Readiness] = None
    rank: Optional[int] = None

    @property
    def disqualification_reasons(self) -> list[str]:
        return [d.message for d in self.disqualifications]

    @property
    def is_rankable(self) -> bool:
        return self.status == ScoreStatus.SCORED


class ScoreRecord(FitScore):
    """A persisted fit score with the analyst's follow-up flags."""

    tracker_id: Optional[str] = None
    interested: Optional[bool] = None
    passed: bool = False
    pass_reason: Optional[str] = None
    approved: bool = False
    scored_at: Optional[datetime] = None
