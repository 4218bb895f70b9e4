"""Tests for LLM criteria parsing."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from buyer_universe.enrich import criteria_parser
from buyer_universe.enrich.criteria_parser import CriteriaParser, ParsedCriteria, parse_money
from buyer_universe.models import (
    GeographyStrictness,
    SizeCriteria,
    SizeImportance,
    Tracker,
)

RESPONSE = {
    "size_criteria": {
        "min_revenue": "$5M",
        "max_revenue": "$20M",
        "min_ebitda": "$[X]M",
        "max_ebitda": None,
        "min_locations": "3 locations",
        "max_locations": None,
        "min_revenue_per_location": "750K",
    },
    "service_criteria": {
        "primary_focus": ["collision repair", "[X]"],
        "required_services": [],
        "preferred_services": ["ADAS calibration"],
        "excluded_services": ["glass", ""],
    },
    "geography_criteria": {
        "required_regions": [],
        "preferred_regions": ["Southeast"],
        "excluded_regions": [],
        "coverage_type": "regional",
    },
    "buyer_types": [
        {
            "type_name": "Large MSO",
            "priority_order": 1,
            "description": "National consolidators",
            "min_locations": 25,
            "geographic_scope": "national",
        },
        {"description": "Unnamed segment"},
        "not a profile",
    ],
    "geography_strictness": "Strict",
    "size_importance": "urgent",
}


class FakeMessages:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return SimpleNamespace(content=[SimpleNamespace(text=self.text)])


class FakeClient:
    def __init__(self, text=None, error=None):
        self.messages = FakeMessages(text, error)


def make_tracker(**kwargs) -> Tracker:
    """Create test tracker with defaults."""
    defaults = {
        "id": "tracker-1",
        "industry_name": "Collision Repair",
        "size_criteria_text": "Revenue of $5M-$20M, at least 3 locations",
        "service_criteria_text": "Collision repair; no glass-only shops",
        "geography_criteria_text": "Southeast preferred",
        "buyer_types_text": "Large MSOs first",
    }
    defaults.update(kwargs)
    return Tracker(**defaults)


class TestParseMoney:
    """Tests for dollar amount parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("$2.5M", 2.5),
        ("500K", 0.5),
        ("$1.2B", 1200.0),
        ("5 million", 5.0),
        ("$2,500,000", 2.5),
        (2500000, 2.5),
        (7.5, 7.5),
        ("2.5", 2.5),
    ])
    def test_parses_amounts(self, value, expected):
        assert parse_money(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "", "TBD", "$[X]M", "unknown", True])
    def test_unparseable_is_none(self, value):
        assert parse_money(value) is None


class TestCriteriaParser:
    """Tests for CriteriaParser with a stub Anthropic client."""

    def test_parses_response(self):
        client = FakeClient(json.dumps(RESPONSE))
        parser = CriteriaParser(client=client)

        parsed = asyncio.run(parser.parse(make_tracker()))

        assert parsed.size_criteria.min_revenue == 5
        assert parsed.size_criteria.max_revenue == 20
        assert parsed.size_criteria.min_ebitda is None
        assert parsed.size_criteria.min_locations == 3
        assert parsed.size_criteria.min_revenue_per_location == pytest.approx(0.75)
        assert parsed.service_criteria.primary_focus == ["collision repair"]
        assert parsed.service_criteria.excluded_services == ["glass"]
        assert parsed.geography_criteria.preferred_regions == ["Southeast"]
        assert parsed.geography_strictness == GeographyStrictness.STRICT
        assert parsed.size_importance is None

        profiles = parsed.buyer_types_criteria.buyer_types
        assert [p.type_name for p in profiles] == ["Large MSO", "Buyer type 2"]
        assert profiles[1].priority_order == 2

    def test_prompt_includes_criteria_text(self):
        client = FakeClient(json.dumps(RESPONSE))
        parser = CriteriaParser(client=client)

        asyncio.run(parser.parse(make_tracker()))

        prompt = client.messages.calls[0]["messages"][0]["content"]
        assert "Collision Repair" in prompt
        assert "Southeast preferred" in prompt

    def test_handles_markdown_code_block(self):
        text = "Here you go:\n```json\n" + json.dumps({"size_importance": "high"}) + "\n```"
        parser = CriteriaParser(client=FakeClient(text))

        parsed = asyncio.run(parser.parse(make_tracker()))

        assert parsed.size_importance == SizeImportance.HIGH
        assert parsed.size_criteria is None
        assert parsed.service_criteria is None
        assert parsed.buyer_types_criteria is None

    def test_invalid_json_returns_none(self):
        parser = CriteriaParser(client=FakeClient("I could not parse that"))
        assert asyncio.run(parser.parse(make_tracker())) is None

    def test_api_error_returns_none(self):
        parser = CriteriaParser(client=FakeClient(error=RuntimeError("overloaded")))
        assert asyncio.run(parser.parse(make_tracker())) is None

    def test_no_text_skips_api_call(self):
        client = FakeClient(json.dumps(RESPONSE))
        parser = CriteriaParser(client=client)
        tracker = Tracker(id="t", industry_name="HVAC")

        assert asyncio.run(parser.parse(tracker)) is None
        assert client.messages.calls == []

    def test_unavailable_without_api_key(self, monkeypatch):
        monkeypatch.setattr(criteria_parser.settings, "anthropic_api_key", "")
        parser = CriteriaParser()

        assert not parser.available
        assert asyncio.run(parser.parse(make_tracker())) is None

    def test_wrong_shape_returns_none(self):
        parser = CriteriaParser(client=FakeClient("{}"))
        assert parser.to_criteria({"size_criteria": ["not", "a", "dict"]}) is None


class TestParsedCriteria:
    """Tests for applying parsed criteria to a tracker."""

    def test_apply_keeps_unparsed_sections(self):
        tracker = make_tracker(size_importance=SizeImportance.LOW)
        parsed = ParsedCriteria(size_criteria=SizeCriteria(min_revenue=5))

        updated = parsed.apply_to(tracker)

        assert updated.size_criteria.min_revenue == 5
        assert updated.size_importance == SizeImportance.LOW
        assert updated.size_criteria_text == tracker.size_criteria_text
        assert tracker.size_criteria is None
