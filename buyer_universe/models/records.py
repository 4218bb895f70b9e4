"""Buyer and deal records.

Every attribute except identity is optional: records arrive from manual
edits, CSV imports and AI extraction with arbitrary gaps.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class ExtractionSourceType(str, Enum):
    """Ingestion channel that supplied a field value."""

    TRANSCRIPT = "transcript"
    NOTES = "notes"
    WEBSITE = "website"
    CSV = "csv"
    MANUAL = "manual"


class ExtractionSource(BaseModel):
    """One provenance entry: which channel wrote which fields, and when."""

    source: ExtractionSourceType
    timestamp: datetime
    fields: list[str] = Field(default_factory=list)

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def _split_list(value):
    """Accept 'a, b; c' style strings wherever a list of strings is expected."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in re.split(r"[,;\n]", value) if part.strip()]
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


class Buyer(BaseModel):
    """A prospective acquirer (PE-backed platform or PE firm) in one tracker."""

    id: Optional[str] = None
    tracker_id: Optional[str] = None

    pe_firm_name: Optional[str] = None
    platform_company_name: Optional[str] = None
    website: Optional[str] = None

    # Geography
    hq_state: Optional[str] = None
    hq_city: Optional[str] = None
    target_geographies: list[str] = Field(default_factory=list)
    geographic_footprint: list[str] = Field(default_factory=list)
    service_regions: list[str] = Field(default_factory=list)
    geographic_exclusions: list[str] = Field(default_factory=list)

    # Services
    services_offered: Optional[str] = None
    target_services: list[str] = Field(default_factory=list)
    required_services: list[str] = Field(default_factory=list)
    preferred_services: list[str] = Field(default_factory=list)
    excluded_services: list[str] = Field(default_factory=list)
    industry_exclusions: list[str] = Field(default_factory=list)

    # Size bounds ($M)
    min_revenue: Optional[float] = None
    max_revenue: Optional[float] = None
    min_ebitda: Optional[float] = None
    max_ebitda: Optional[float] = None
    revenue_sweet_spot: Optional[float] = None

    # Platform scale
    location_count: Optional[int] = None
    platform_revenue: Optional[float] = None

    # Intelligence
    thesis_summary: Optional[str] = None
    key_quotes: list[str] = Field(default_factory=list)
    acquisition_appetite: Optional[str] = None
    owner_transition_goals: Optional[str] = None

    # Contact
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None

    extraction_sources: list[ExtractionSource] = Field(default_factory=list)

    @field_validator(
        "target_geographies", "geographic_footprint", "service_regions",
        "geographic_exclusions", "target_services", "required_services",
        "preferred_services", "excluded_services", "industry_exclusions",
        "key_quotes",
        mode="before",
    )
    @classmethod
    def _coerce_list(cls, value):
        return _split_list(value)

    @field_validator("extraction_sources", mode="before")
    @classmethod
    def _coerce_sources(cls, value):
        return value or []

    @property
    def display_name(self) -> str:
        return self.platform_company_name or self.pe_firm_name or (self.id or "Unknown buyer")

    @property
    def revenue_per_location(self) -> Optional[float]:
        if self.platform_revenue and self.location_count:
            return self.platform_revenue / self.location_count
        return None


class Deal(BaseModel):
    """A target company opportunity in one tracker."""

    id: Optional[str] = None
    tracker_id: Optional[str] = None
    company_id: Optional[str] = None

    deal_name: Optional[str] = None
    website: Optional[str] = None

    revenue: Optional[float] = Field(default=None, description="Revenue ($M)")
    ebitda_amount: Optional[float] = Field(default=None, description="EBITDA ($M)")
    ebitda_percentage: Optional[float] = Field(default=None, description="EBITDA margin (%)")
    location_count: Optional[int] = None

    geography: list[str] = Field(default_factory=list)
    headquarters: Optional[str] = None
    service_mix: list[str] = Field(default_factory=list)
    industry_type: Optional[str] = None
    owner_goals: Optional[str] = None

    extraction_sources: list[ExtractionSource] = Field(default_factory=list)

    @field_validator("geography", "service_mix", mode="before")
    @classmethod
    def _coerce_list(cls, value):
        return _split_list(value)

    @field_validator("extraction_sources", mode="before")
    @classmethod
    def _coerce_sources(cls, value):
        return value or []

    @property
    def ebitda(self) -> Optional[float]:
        """EBITDA in $M, derived from the margin when only that is known."""
        if self.ebitda_amount is not None:
            return self.ebitda_amount
        if self.revenue is not None and self.ebitda_percentage is not None:
            return self.revenue * self.ebitda_percentage / 100
        return None
