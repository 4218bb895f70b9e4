"""Tracker criteria readiness and validation."""

import logging
import re
from typing import Literal, Optional

from pydantic import BaseModel, Field

from buyer_universe.errors import CriteriaValidationError
from buyer_universe.models import (
    Buyer,
    BuyerTypesCriteria,
    GeographyCriteria,
    Readiness,
    ServiceCriteria,
    SizeCriteria,
    Tracker,
)

logger = logging.getLogger(__name__)

# Template text left behind in criteria documents
PLACEHOLDER_PATTERNS = [
    re.compile(r"\$\[X\]", re.I),
    re.compile(r"\[X\]", re.I),
    re.compile(r"\$X\b", re.I),
    re.compile(r"\bX%"),
    re.compile(r"\[(?:VALUE|NAME|CITY|INDUSTRY)\]", re.I),
    re.compile(r"\[INSERT.*?\]", re.I),
    re.compile(r"\{[^}]*TBD[^}]*\}", re.I),
    re.compile(r"\bTBD\b", re.I),
    re.compile(r"XX,XXX"),
    re.compile(r"\$\d*X+\b", re.I),
    re.compile(r"\bvaries\b", re.I),
    re.compile(r"\bdepends\b", re.I),
]

# Section weights for the overall completeness score
SECTION_WEIGHTS = {"size": 0.30, "service": 0.35, "geography": 0.15, "buyer_types": 0.20}

TEXT_FIELDS = {
    "size": "size_criteria_text",
    "service": "service_criteria_text",
    "geography": "geography_criteria_text",
}


class SectionValidation(BaseModel):
    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    placeholders: list[str] = Field(default_factory=list)
    missing_required: list[str] = Field(default_factory=list)
    completeness: int = 0


class CriteriaValidation(BaseModel):
    """Full criteria report for a tracker."""

    valid: bool
    can_score: bool
    status: Literal["complete", "partial", "insufficient"]
    overall_score: int
    size: SectionValidation
    service: SectionValidation
    geography: SectionValidation
    buyer_types: SectionValidation
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    placeholders: list[str] = Field(default_factory=list)
    critical_missing: list[str] = Field(default_factory=list)


def detect_placeholders(text: Optional[str]) -> list[str]:
    """Distinct placeholder tokens found in ``text``."""
    found: list[str] = []
    for pattern in PLACEHOLDER_PATTERNS:
        for match in pattern.findall(text or ""):
            if match not in found:
                found.append(match)
    return found


def has_placeholders(text: Optional[str]) -> bool:
    return bool(detect_placeholders(text))


def _overlap(left: list[str], right: list[str]) -> list[str]:
    right_lower = {r.strip().lower() for r in right}
    return [item for item in left if item.strip().lower() in right_lower]


def _range_errors(label: str, low, high) -> list[str]:
    if low is not None and high is not None and low > high:
        return [f"{label}: minimum {low} is greater than maximum {high}"]
    return []


def contradictions(tracker: Tracker) -> list[str]:
    """Structural contradictions in a tracker's parsed criteria."""
    errors: list[str] = []

    size = tracker.size_criteria
    if size:
        errors += _range_errors("revenue", size.min_revenue, size.max_revenue)
        errors += _range_errors("EBITDA", size.min_ebitda, size.max_ebitda)
        errors += _range_errors("locations", size.min_locations, size.max_locations)

    service = tracker.service_criteria
    if service:
        both = _overlap(service.required_services, service.excluded_services)
        if both:
            errors.append(f"Services cannot be both required and excluded: {', '.join(both)}")

    geography = tracker.geography_criteria
    if geography:
        both = _overlap(geography.required_regions, geography.excluded_regions)
        if both:
            errors.append(f"Regions cannot be both required and excluded: {', '.join(both)}")

    if tracker.buyer_types_criteria:
        for profile in tracker.buyer_types_criteria.buyer_types:
            errors += _range_errors(
                f"buyer type '{profile.type_name}' locations",
                profile.min_locations, profile.max_locations,
            )
            errors += _range_errors(
                f"buyer type '{profile.type_name}' EBITDA",
                profile.min_ebitda, profile.max_ebitda,
            )

    return errors


def buyer_contradictions(buyer: Buyer) -> list[str]:
    """Contradictory bounds on a buyer record."""
    errors = _range_errors("revenue", buyer.min_revenue, buyer.max_revenue)
    errors += _range_errors("EBITDA", buyer.min_ebitda, buyer.max_ebitda)
    both = _overlap(buyer.required_services, buyer.excluded_services)
    if both:
        errors.append(f"Services cannot be both required and excluded: {', '.join(both)}")
    return errors


def check_readiness(tracker: Tracker) -> Readiness:
    """Whether the tracker carries enough criteria to score against.

    Raises CriteriaValidationError when parsed criteria contradict themselves.
    """
    errors = contradictions(tracker)
    if errors:
        raise CriteriaValidationError(
            f"Tracker {tracker.id or tracker.industry_name} has contradictory criteria", errors,
        )

    missing = [
        section for section, attr in TEXT_FIELDS.items()
        if not (getattr(tracker, attr) or "").strip()
    ]
    has_text = len(missing) < len(TEXT_FIELDS)
    ready = has_text or tracker.has_parsed_criteria()

    if not ready:
        logger.info(f"Tracker {tracker.id} has no scoring criteria")
    return Readiness(ready=ready, missing=missing)


def _validate_size(criteria: Optional[SizeCriteria], text: Optional[str]) -> SectionValidation:
    result = SectionValidation(placeholders=detect_placeholders(text))
    if criteria is None:
        return SectionValidation(
            valid=False,
            errors=["Size criteria are missing"],
            placeholders=result.placeholders,
            missing_required=["size_criteria"],
        )

    if not criteria.has_thresholds():
        result.missing_required.append("min_revenue or min_ebitda or min_locations")
        result.warnings.append("No size thresholds defined, deals cannot be filtered by size")

    result.errors += _range_errors("revenue", criteria.min_revenue, criteria.max_revenue)
    result.errors += _range_errors("EBITDA", criteria.min_ebitda, criteria.max_ebitda)
    result.errors += _range_errors("locations", criteria.min_locations, criteria.max_locations)

    filled = sum(
        1 for v in (criteria.min_revenue, criteria.max_revenue, criteria.min_ebitda,
                    criteria.max_ebitda, criteria.min_locations, criteria.max_locations)
        if v is not None
    )
    result.completeness = round(filled / 6 * 100)
    result.valid = not result.errors and criteria.has_thresholds()
    return result


def _validate_service(criteria: Optional[ServiceCriteria], text: Optional[str]) -> SectionValidation:
    result = SectionValidation(placeholders=detect_placeholders(text))
    if criteria is None:
        return SectionValidation(
            valid=False,
            errors=["Service criteria are missing"],
            placeholders=result.placeholders,
            missing_required=["service_criteria"],
        )

    if not criteria.primary_focus:
        result.missing_required.append("primary_focus")
        result.errors.append("Primary focus services are required for accurate scoring")
    for service in criteria.primary_focus:
        found = detect_placeholders(service)
        if found:
            result.placeholders += [p for p in found if p not in result.placeholders]
            result.errors.append(f"Primary focus contains placeholder: {service}")

    both = _overlap(criteria.required_services, criteria.excluded_services)
    if both:
        result.errors.append(f"Services cannot be both required and excluded: {', '.join(both)}")

    if not criteria.excluded_services:
        result.warnings.append("No excluded services defined, off-thesis deals cannot be filtered")

    # Primary focus counts double
    filled = 2 * bool(criteria.primary_focus) + sum(
        1 for v in (criteria.required_services, criteria.preferred_services,
                    criteria.excluded_services) if v
    )
    result.completeness = min(100, round(filled / 5 * 100))
    result.valid = not result.errors
    return result


def _validate_geography(criteria: Optional[GeographyCriteria], text: Optional[str]) -> SectionValidation:
    result = SectionValidation(placeholders=detect_placeholders(text))
    if criteria is None:
        result.warnings.append("No geography criteria defined, all regions will be considered")
        return result

    if not (criteria.required_regions or criteria.preferred_regions):
        result.warnings.append("No target regions defined, all regions will be considered")

    both = _overlap(criteria.required_regions, criteria.excluded_regions)
    if both:
        result.errors.append(f"Regions cannot be both required and excluded: {', '.join(both)}")

    filled = sum(1 for v in (criteria.required_regions, criteria.preferred_regions,
                             criteria.excluded_regions, criteria.coverage_type) if v)
    result.completeness = round(filled / 4 * 100)
    result.valid = not result.errors
    return result


def _validate_buyer_types(criteria: Optional[BuyerTypesCriteria], text: Optional[str]) -> SectionValidation:
    result = SectionValidation(placeholders=detect_placeholders(text))
    if criteria is None or not criteria.buyer_types:
        result.warnings.append("No buyer types defined, generic scoring will be used")
        return result

    total = 0.0
    for profile in criteria.buyer_types:
        if not profile.type_name.strip():
            result.errors.append("Buyer type is missing type_name")
        found = detect_placeholders(profile.description)
        if found:
            result.placeholders += [p for p in found if p not in result.placeholders]
            result.warnings.append(f'Buyer type "{profile.type_name}" description contains placeholders')
        result.errors += _range_errors(
            f"buyer type '{profile.type_name}' locations", profile.min_locations, profile.max_locations,
        )
        result.errors += _range_errors(
            f"buyer type '{profile.type_name}' EBITDA", profile.min_ebitda, profile.max_ebitda,
        )

        filled = sum(1 for v in (
            profile.type_name,
            profile.min_locations is not None or profile.max_locations is not None,
            profile.min_ebitda is not None or profile.max_ebitda is not None,
            profile.min_revenue_per_location is not None,
            profile.geographic_scope,
        ) if v)
        total += filled / 5 * 100

    priorities = [p.priority_order for p in criteria.buyer_types]
    if len(priorities) != len(set(priorities)):
        result.warnings.append("Multiple buyer types have the same priority order")

    result.completeness = round(total / len(criteria.buyer_types))
    result.valid = not result.errors
    return result


def validate_criteria(tracker: Tracker) -> CriteriaValidation:
    """Validate every criteria section of a tracker and summarise the result.

    Unlike :func:`check_readiness` this never raises; contradictions are
    reported as errors.
    """
    size = _validate_size(tracker.size_criteria, tracker.size_criteria_text)
    service = _validate_service(tracker.service_criteria, tracker.service_criteria_text)
    geography = _validate_geography(tracker.geography_criteria, tracker.geography_criteria_text)
    buyer_types = _validate_buyer_types(tracker.buyer_types_criteria, tracker.buyer_types_text)
    sections = {"size": size, "service": service, "geography": geography, "buyer_types": buyer_types}

    errors = [e for s in sections.values() for e in s.errors]
    warnings = [w for s in sections.values() for w in s.warnings]
    placeholders: list[str] = []
    for section in sections.values():
        placeholders += [p for p in section.placeholders if p not in placeholders]

    if not tracker.has_parsed_criteria() and any(
        (getattr(tracker, attr) or "").strip() for attr in TEXT_FIELDS.values()
    ):
        warnings.append("Criteria text has not been parsed into structured criteria yet")

    overall = round(sum(sections[name].completeness * w for name, w in SECTION_WEIGHTS.items()))
    has_primary_focus = bool(tracker.service_criteria and tracker.service_criteria.primary_focus)

    if overall >= 70 and has_primary_focus and not errors:
        status = "complete"
    elif overall >= 30 or size.completeness > 0 or has_primary_focus:
        status = "partial"
    else:
        status = "insufficient"

    try:
        ready = check_readiness(tracker).ready
    except CriteriaValidationError:
        ready = False

    return CriteriaValidation(
        valid=not errors,
        can_score=ready,
        status=status,
        overall_score=overall,
        size=size,
        service=service,
        geography=geography,
        buyer_types=buyer_types,
        errors=errors,
        warnings=warnings,
        placeholders=placeholders,
        critical_missing=size.missing_required + service.missing_required,
    )
