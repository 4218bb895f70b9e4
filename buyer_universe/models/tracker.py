"""Tracker criteria schema.

Dollar amounts are expressed in millions (2.5 == $2.5M) throughout.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class GeographyStrictness(str, Enum):
    STRICT = "strict"
    MODERATE = "moderate"
    RELAXED = "relaxed"


class SizeImportance(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SizeCriteria(BaseModel):
    """Size thresholds for deals in this vertical."""

    min_revenue: Optional[float] = Field(default=None, description="Minimum revenue ($M)")
    max_revenue: Optional[float] = Field(default=None, description="Maximum revenue ($M)")
    min_ebitda: Optional[float] = Field(default=None, description="Minimum EBITDA ($M)")
    max_ebitda: Optional[float] = Field(default=None, description="Maximum EBITDA ($M)")
    min_locations: Optional[int] = None
    max_locations: Optional[int] = None
    min_revenue_per_location: Optional[float] = Field(default=None, description="$M per location")

    def has_thresholds(self) -> bool:
        return any(
            v is not None
            for v in (self.min_revenue, self.max_revenue, self.min_ebitda,
                      self.max_ebitda, self.min_locations)
        )


class ServiceCriteria(BaseModel):
    """Service focus for the vertical."""

    primary_focus: list[str] = Field(default_factory=list, description="Services buyers primarily target")
    required_services: list[str] = Field(default_factory=list)
    preferred_services: list[str] = Field(default_factory=list)
    excluded_services: list[str] = Field(default_factory=list, description="Off-thesis services")

    def is_empty(self) -> bool:
        return not (self.primary_focus or self.required_services
                    or self.preferred_services or self.excluded_services)


class GeographyCriteria(BaseModel):
    """Regional preferences for the vertical."""

    required_regions: list[str] = Field(default_factory=list)
    preferred_regions: list[str] = Field(default_factory=list)
    excluded_regions: list[str] = Field(default_factory=list)
    coverage_type: Optional[str] = Field(default=None, description="national, regional or local")

    def is_empty(self) -> bool:
        return not (self.required_regions or self.preferred_regions
                    or self.excluded_regions or self.coverage_type)


class BuyerTypeProfile(BaseModel):
    """A buyer segment the tracker prioritises (e.g. 'Large MSO')."""

    type_name: str
    priority_order: int = 1
    description: Optional[str] = None
    min_locations: Optional[int] = None
    max_locations: Optional[int] = None
    min_revenue_per_location: Optional[float] = Field(default=None, description="$M per location")
    min_ebitda: Optional[float] = None
    max_ebitda: Optional[float] = None
    geographic_scope: Optional[str] = Field(default=None, description="national, regional or local")


class BuyerTypesCriteria(BaseModel):
    buyer_types: list[BuyerTypeProfile] = Field(default_factory=list)


class Tracker(BaseModel):
    """An industry vertical's buyer search configuration."""

    id: Optional[str] = None
    industry_name: str = ""

    # Free-text criteria as written by the user
    size_criteria_text: Optional[str] = None
    service_criteria_text: Optional[str] = None
    geography_criteria_text: Optional[str] = None
    buyer_types_text: Optional[str] = None

    # Structured criteria, typically parsed from the text above
    size_criteria: Optional[SizeCriteria] = None
    service_criteria: Optional[ServiceCriteria] = None
    geography_criteria: Optional[GeographyCriteria] = None
    buyer_types_criteria: Optional[BuyerTypesCriteria] = None

    # Scoring hints
    geography_strictness: Optional[GeographyStrictness] = None
    size_importance: Optional[SizeImportance] = None

    @property
    def effective_geography_strictness(self) -> GeographyStrictness:
        return self.geography_strictness or GeographyStrictness.MODERATE

    @property
    def effective_size_importance(self) -> SizeImportance:
        return self.size_importance or SizeImportance.MEDIUM

    def has_parsed_criteria(self) -> bool:
        """Whether any structured criteria or hints are present."""
        return any([
            self.size_criteria is not None and self.size_criteria.has_thresholds(),
            self.service_criteria is not None and not self.service_criteria.is_empty(),
            self.geography_criteria is not None and not self.geography_criteria.is_empty(),
            self.buyer_types_criteria is not None and bool(self.buyer_types_criteria.buyer_types),
            self.geography_strictness is not None,
            self.size_importance is not None,
        ])
