"""Tests for hard filter functionality."""

import pytest

from buyer_universe.models import (
    Buyer,
    Deal,
    DisqualificationCode,
    GeographyStrictness,
    SizeCriteria,
    SizeImportance,
    Tracker,
)
from buyer_universe.score.filters import (
    HardFilters,
    contradictory_bounds,
    mentions,
    range_violation,
    size_bounds,
    terms_match,
)


def make_tracker(**kwargs) -> Tracker:
    """Create test tracker with defaults."""
    defaults = {"id": "tracker-1", "service_criteria_text": "Collision repair"}
    defaults.update(kwargs)
    return Tracker(**defaults)


def make_buyer(**kwargs) -> Buyer:
    """Create test buyer with defaults."""
    defaults = {"id": "buyer-1", "platform_company_name": "Test Platform"}
    defaults.update(kwargs)
    return Buyer(**defaults)


def make_deal(**kwargs) -> Deal:
    """Create test deal with defaults."""
    defaults = {"id": "deal-1", "deal_name": "Test Deal"}
    defaults.update(kwargs)
    return Deal(**defaults)


def codes(result) -> list[DisqualificationCode]:
    return [d.code for d in result.disqualifications]


class TestHardFilters:
    """Tests for hard pass/fail filters."""

    def test_passes_with_no_constraints(self):
        filters = HardFilters()
        result = filters.apply(make_buyer(), make_deal(), make_tracker())
        assert not result.is_disqualified
        assert result.reasons == []

    def test_fails_on_excluded_service(self):
        filters = HardFilters()
        buyer = make_buyer(excluded_services=["Towing"])
        deal = make_deal(service_mix=["Collision", "Towing"])

        result = filters.apply(buyer, deal, make_tracker())

        assert result.is_disqualified
        assert codes(result) == [DisqualificationCode.EXCLUDED_SERVICE]
        assert "Towing" in result.reasons[0]

    def test_excluded_service_matches_case_insensitively(self):
        filters = HardFilters()
        buyer = make_buyer(excluded_services=["towing"])
        deal = make_deal(service_mix=["Heavy Duty Towing"])

        result = filters.apply(buyer, deal, make_tracker())

        assert codes(result) == [DisqualificationCode.EXCLUDED_SERVICE]

    def test_fails_on_excluded_industry(self):
        filters = HardFilters()
        buyer = make_buyer(industry_exclusions=["fleet"])
        deal = make_deal(industry_type="Fleet maintenance")

        result = filters.apply(buyer, deal, make_tracker())

        assert codes(result) == [DisqualificationCode.EXCLUDED_INDUSTRY]
        assert "fleet" in result.reasons[0]

    def test_broader_exclusion_does_not_catch_narrower_service(self):
        filters = HardFilters()
        buyer = make_buyer(excluded_services=["Auto glass repair"], industry_exclusions=["Auto glass repair"])
        deal = make_deal(service_mix=["Glass"], industry_type="Glass")

        result = filters.apply(buyer, deal, make_tracker())

        assert not result.is_disqualified

    def test_contradictory_bounds_never_gate_size(self):
        filters = HardFilters()
        buyer = make_buyer(min_revenue=50, max_revenue=10)
        tracker = make_tracker(size_importance=SizeImportance.HIGH)

        result = filters.apply(buyer, make_deal(revenue=100), tracker)

        assert not result.is_disqualified

    def test_size_only_gates_when_importance_is_high(self):
        filters = HardFilters()
        buyer = make_buyer(min_revenue=10, max_revenue=50)
        deal = make_deal(revenue=3)

        medium = filters.apply(buyer, deal, make_tracker())
        high = filters.apply(buyer, deal, make_tracker(size_importance=SizeImportance.HIGH))

        assert not medium.is_disqualified
        assert codes(high) == [DisqualificationCode.REVENUE_BELOW_MINIMUM]

    def test_fails_on_revenue_above_maximum(self):
        filters = HardFilters()
        buyer = make_buyer(min_revenue=10, max_revenue=50)
        tracker = make_tracker(size_importance=SizeImportance.HIGH)

        result = filters.apply(buyer, make_deal(revenue=100), tracker)

        assert codes(result) == [DisqualificationCode.REVENUE_ABOVE_MAXIMUM]

    def test_ebitda_from_margin_is_checked(self):
        filters = HardFilters()
        buyer = make_buyer(min_ebitda=2)
        tracker = make_tracker(size_importance=SizeImportance.HIGH)
        # 10% of $10M is $1M, below 70% of the $2M minimum
        deal = make_deal(revenue=10, ebitda_percentage=10)

        result = filters.apply(buyer, deal, tracker)

        assert codes(result) == [DisqualificationCode.EBITDA_BELOW_MINIMUM]

    def test_fails_on_excluded_geography(self):
        filters = HardFilters()
        buyer = make_buyer(geographic_exclusions=["California"])
        deal = make_deal(geography=["CA", "NV"])

        result = filters.apply(buyer, deal, make_tracker())

        assert codes(result) == [DisqualificationCode.EXCLUDED_GEOGRAPHY]
        assert "CA" in result.reasons[0]

    def test_outside_footprint_only_in_strict_mode(self):
        filters = HardFilters()
        buyer = make_buyer(geographic_footprint=["Ohio"])
        deal = make_deal(geography=["Arizona"])

        moderate = filters.apply(buyer, deal, make_tracker())
        strict = filters.apply(
            buyer, deal, make_tracker(geography_strictness=GeographyStrictness.STRICT),
        )

        assert not moderate.is_disqualified
        assert codes(strict) == [DisqualificationCode.OUTSIDE_FOOTPRINT]

    def test_strict_mode_without_footprint_does_not_disqualify(self):
        filters = HardFilters()
        tracker = make_tracker(geography_strictness=GeographyStrictness.STRICT)

        result = filters.apply(make_buyer(), make_deal(geography=["Arizona"]), tracker)

        assert not result.is_disqualified

    def test_soft_thesis_mention_does_not_disqualify(self):
        filters = HardFilters()
        buyer = make_buyer(thesis_summary="Strong presence in the Southeast today")

        result = filters.apply(buyer, make_deal(geography=["Oregon"]), make_tracker())

        assert not result.is_disqualified

    def test_hard_thesis_conflict_disqualifies(self):
        filters = HardFilters()
        buyer = make_buyer(key_quotes=["We are only in New England for now"])

        result = filters.apply(buyer, make_deal(geography=["Oregon"]), make_tracker())

        assert codes(result) == [DisqualificationCode.THESIS_REGION_CONFLICT]
        assert "NEW_ENGLAND" in result.reasons[0]

    def test_collects_every_reason(self):
        filters = HardFilters()
        buyer = make_buyer(
            excluded_services=["glass"],
            industry_exclusions=["auto glass"],
            geographic_exclusions=["Florida"],
        )
        deal = make_deal(service_mix=["auto glass"], geography=["FL"])

        result = filters.apply(buyer, deal, make_tracker())

        assert codes(result) == [
            DisqualificationCode.EXCLUDED_SERVICE,
            DisqualificationCode.EXCLUDED_INDUSTRY,
            DisqualificationCode.EXCLUDED_GEOGRAPHY,
        ]


class TestFilterHelpers:
    """Tests for filter helper functions."""

    @pytest.mark.parametrize("a,b,expected", [
        ("Towing", "towing", True),
        ("collision", "Collision Repair", True),
        ("Collision Repair", "collision", True),
        ("paint", "glass", False),
        ("", "glass", False),
    ])
    def test_terms_match(self, a, b, expected):
        assert terms_match(a, b) is expected

    def test_range_violation_uses_tolerance(self):
        assert range_violation(3.6, 5, 20) is None
        assert range_violation(3.4, 5, 20) == "below"
        assert range_violation(29, 5, 20) is None
        assert range_violation(31, 5, 20) == "above"
        assert range_violation(None, 5, 20) is None

    def test_size_bounds_fall_back_to_tracker(self):
        buyer = make_buyer(min_revenue=8)
        tracker = make_tracker(size_criteria=SizeCriteria(min_revenue=5, max_revenue=25, min_ebitda=1))

        bounds = size_bounds(buyer, tracker)

        assert bounds == {"min_revenue": 8, "max_revenue": 25, "min_ebitda": 1, "max_ebitda": None}

    @pytest.mark.parametrize("text,term,expected", [
        ("Heavy Duty Towing", "towing", True),
        ("glass", "Glass", True),
        ("Glass", "Auto glass repair", False),
        ("collision", "", False),
    ])
    def test_mentions_is_one_directional(self, text, term, expected):
        assert mentions(text, term) is expected

    def test_contradictory_pair_is_unknown_without_fallback(self):
        buyer = make_buyer(min_revenue=30, max_revenue=10, min_ebitda=1)
        tracker = make_tracker(size_criteria=SizeCriteria(min_revenue=5, max_revenue=25, max_ebitda=4))

        bounds = size_bounds(buyer, tracker)

        assert contradictory_bounds(buyer) == ["revenue"]
        assert bounds == {"min_revenue": None, "max_revenue": None, "min_ebitda": 1, "max_ebitda": 4}
