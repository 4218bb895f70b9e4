"""Tests for state and region handling."""

import pytest

from buyer_universe.models import Buyer, Deal
from buyer_universe.score.geography import (
    adjacent_states,
    buyer_state_weights,
    deal_states,
    extract_states,
    normalize_state,
    same_region,
    states_from_list,
    thesis_focus,
)


class TestStateNormalization:
    """Tests for state name and code handling."""

    @pytest.mark.parametrize("value,expected", [
        ("TX", "TX"),
        ("tx", "TX"),
        ("Texas", "TX"),
        (" new york ", "NY"),
        ("Ontario", None),
        ("", None),
        (None, None),
    ])
    def test_normalize_state(self, value, expected):
        assert normalize_state(value) == expected

    def test_extract_prefers_longest_name(self):
        assert extract_states("West Virginia and Kansas") == ["WV", "KS"]

    def test_extract_codes_from_city_strings(self):
        assert extract_states("Dallas, TX; Tulsa, OK") == ["TX", "OK"]

    def test_lowercase_words_are_not_codes(self):
        assert extract_states("we are in or near the area") == []

    def test_states_from_list_expands_regions(self):
        states = states_from_list(["New England", "Texas"])
        assert "MA" in states
        assert "ME" in states
        assert states[-1] == "TX"
        assert len(states) == len(set(states))


class TestAdjacency:
    """Tests for adjacency and regions."""

    def test_adjacency_is_symmetric(self):
        for state in ["TX", "GA", "NY", "WA", "CO"]:
            for neighbor in adjacent_states(state):
                assert state in adjacent_states(neighbor)

    def test_islands_have_no_neighbors(self):
        assert adjacent_states("HI") == []
        assert adjacent_states("ZZ") == []

    def test_same_region(self):
        assert same_region("GA", "FL")
        assert not same_region("GA", "WA")


class TestThesisFocus:
    """Tests for regional focus read from buyer theses."""

    def test_no_thesis(self):
        focus = thesis_focus(None)
        assert not focus.has_focus
        assert focus.strength == "none"

    def test_region_without_constraint_language_is_soft(self):
        focus = thesis_focus("Growing platform with shops across the Midwest")
        assert focus.regions == ["MIDWEST"]
        assert focus.strength == "soft"
        assert "OH" in focus.states

    def test_constraint_language_is_hard(self):
        focus = thesis_focus("Regional platform", ["Exclusively acquiring in the Pacific Northwest"])
        assert focus.strength == "hard"
        assert focus.states[:3] == ["WA", "OR", "ID"]

    def test_named_states_join_focus(self):
        focus = thesis_focus("Focused on Texas and Oklahoma")
        assert focus.strength == "hard"
        assert set(focus.states) == {"TX", "OK"}


class TestRecordStates:
    """Tests for states read from buyer and deal records."""

    def test_deal_states_include_headquarters(self):
        deal = Deal(id="d", geography=["Georgia"], headquarters="Charlotte, NC")
        assert deal_states(deal) == ["GA", "NC"]

    def test_buyer_weights_keep_strongest_attribute(self):
        buyer = Buyer(
            id="b",
            hq_state="GA",
            geographic_footprint=["GA", "FL"],
            target_geographies=["Florida"],
        )
        weights = buyer_state_weights(buyer, {
            "target_geographies": 1.0,
            "geographic_footprint": 0.7,
            "hq_state": 0.3,
        })
        assert weights == {"FL": 1.0, "GA": 0.7}
