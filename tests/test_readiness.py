"""Tests for criteria readiness and validation."""

import pytest

from buyer_universe.errors import CriteriaValidationError
from buyer_universe.models import (
    BuyerTypeProfile,
    BuyerTypesCriteria,
    GeographyCriteria,
    ServiceCriteria,
    SizeCriteria,
    SizeImportance,
    Tracker,
)
from buyer_universe.score.readiness import (
    check_readiness,
    contradictions,
    detect_placeholders,
    validate_criteria,
)


def make_complete_tracker(**kwargs) -> Tracker:
    """Create a tracker with every criteria section filled in."""
    defaults = {
        "id": "tracker-1",
        "industry_name": "Collision Repair",
        "size_criteria": SizeCriteria(
            min_revenue=5, max_revenue=20, min_ebitda=1, max_ebitda=4,
            min_locations=3, max_locations=20,
        ),
        "service_criteria": ServiceCriteria(
            primary_focus=["collision repair"],
            required_services=["paint"],
            preferred_services=["calibration"],
            excluded_services=["glass"],
        ),
        "geography_criteria": GeographyCriteria(
            required_regions=["Southeast"],
            preferred_regions=["Texas"],
            excluded_regions=["California"],
            coverage_type="regional",
        ),
        "buyer_types_criteria": BuyerTypesCriteria(buyer_types=[
            BuyerTypeProfile(
                type_name="Large MSO",
                priority_order=1,
                min_locations=10,
                min_ebitda=3,
                min_revenue_per_location=1.5,
                geographic_scope="national",
            ),
        ]),
    }
    defaults.update(kwargs)
    return Tracker(**defaults)


class TestReadiness:
    """Tests for the scoring readiness gate."""

    def test_empty_tracker_is_not_ready(self):
        readiness = check_readiness(Tracker(id="t"))
        assert not readiness.ready
        assert readiness.missing == ["size", "service", "geography"]

    def test_blank_text_does_not_count(self):
        tracker = Tracker(id="t", size_criteria_text="   ", service_criteria_text="")
        assert not check_readiness(tracker).ready

    def test_any_criteria_text_is_ready(self):
        readiness = check_readiness(Tracker(id="t", geography_criteria_text="Southeast only"))
        assert readiness.ready
        assert readiness.missing == ["size", "service"]

    def test_parsed_hint_is_ready(self):
        assert check_readiness(Tracker(id="t", size_importance=SizeImportance.HIGH)).ready

    def test_empty_parsed_sections_are_not_ready(self):
        tracker = Tracker(id="t", size_criteria=SizeCriteria(), service_criteria=ServiceCriteria())
        assert not check_readiness(tracker).ready

    def test_contradictions_raise(self):
        tracker = Tracker(
            id="t",
            size_criteria_text="$5M+",
            service_criteria=ServiceCriteria(required_services=["Paint"], excluded_services=["paint"]),
        )
        with pytest.raises(CriteriaValidationError) as exc_info:
            check_readiness(tracker)
        assert "required and excluded" in exc_info.value.errors[0]


class TestContradictions:
    """Tests for structural contradiction detection."""

    def test_no_contradictions_in_complete_tracker(self):
        assert contradictions(make_complete_tracker()) == []

    def test_min_greater_than_max(self):
        tracker = make_complete_tracker(size_criteria=SizeCriteria(min_revenue=30, max_revenue=10))
        errors = contradictions(tracker)
        assert len(errors) == 1
        assert errors[0].startswith("revenue")

    def test_region_required_and_excluded(self):
        tracker = make_complete_tracker(geography_criteria=GeographyCriteria(
            required_regions=["Texas"], excluded_regions=["texas"],
        ))
        assert "Regions cannot be both required and excluded: Texas" in contradictions(tracker)

    def test_buyer_type_location_range(self):
        tracker = make_complete_tracker(buyer_types_criteria=BuyerTypesCriteria(buyer_types=[
            BuyerTypeProfile(type_name="Small", min_locations=10, max_locations=2),
        ]))
        errors = contradictions(tracker)
        assert len(errors) == 1
        assert "Small" in errors[0]


class TestPlaceholders:
    """Tests for template placeholder detection."""

    @pytest.mark.parametrize("text,expected", [
        ("Revenue of $[X]M", "$[X]"),
        ("EBITDA margin above X%", "X%"),
        ("Located in [CITY]", "[CITY]"),
        ("Size: TBD", "TBD"),
        ("[INSERT REGION HERE]", "[INSERT REGION HERE]"),
        ("Pricing varies", "varies"),
    ])
    def test_detects_placeholder(self, text, expected):
        assert expected in detect_placeholders(text)

    def test_real_text_has_no_placeholders(self):
        assert detect_placeholders("Revenue between $5M and $20M in Texas") == []

    def test_none_is_safe(self):
        assert detect_placeholders(None) == []


class TestValidateCriteria:
    """Tests for the full criteria validation report."""

    def test_complete_tracker(self):
        report = validate_criteria(make_complete_tracker())

        assert report.valid
        assert report.can_score
        assert report.status == "complete"
        assert report.overall_score == 100
        assert report.errors == []
        assert report.critical_missing == []

    def test_empty_tracker_is_insufficient(self):
        report = validate_criteria(Tracker(id="t"))

        assert report.status == "insufficient"
        assert not report.can_score
        assert not report.valid
        assert "Size criteria are missing" in report.errors
        assert "size_criteria" in report.critical_missing
        assert "service_criteria" in report.critical_missing

    def test_missing_primary_focus_is_partial(self):
        tracker = make_complete_tracker(service_criteria=ServiceCriteria(excluded_services=["glass"]))

        report = validate_criteria(tracker)

        assert report.status == "partial"
        assert "primary_focus" in report.critical_missing
        assert "Primary focus services are required for accurate scoring" in report.errors

    def test_contradiction_reported_without_raising(self):
        tracker = make_complete_tracker(size_criteria=SizeCriteria(min_revenue=30, max_revenue=10))

        report = validate_criteria(tracker)

        assert not report.valid
        assert not report.can_score
        assert any(e.startswith("revenue") for e in report.errors)

    def test_placeholders_collected_from_text(self):
        tracker = make_complete_tracker(
            size_criteria_text="Revenue of $[X]M, EBITDA TBD",
            buyer_types_text="Platforms in [CITY]",
        )

        report = validate_criteria(tracker)

        assert "$[X]" in report.placeholders
        assert "TBD" in report.placeholders
        assert "[CITY]" in report.placeholders
        assert report.buyer_types.placeholders == ["[CITY]"]

    def test_placeholder_in_primary_focus_is_an_error(self):
        tracker = make_complete_tracker(service_criteria=ServiceCriteria(primary_focus=["[X] services"]))

        report = validate_criteria(tracker)

        assert not report.service.valid
        assert any("placeholder" in e for e in report.service.errors)

    def test_unparsed_text_warns(self):
        tracker = Tracker(id="t", size_criteria_text="Revenue $5M-$20M")

        report = validate_criteria(tracker)

        assert report.can_score
        assert "Criteria text has not been parsed into structured criteria yet" in report.warnings

    def test_duplicate_buyer_type_priority_warns(self):
        tracker = make_complete_tracker(buyer_types_criteria=BuyerTypesCriteria(buyer_types=[
            BuyerTypeProfile(type_name="A", priority_order=1, min_locations=5),
            BuyerTypeProfile(type_name="B", priority_order=1, min_locations=2),
        ]))

        report = validate_criteria(tracker)

        assert "Multiple buyer types have the same priority order" in report.warnings
