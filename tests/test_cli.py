"""Tests for the command-line entry point."""

import asyncio
import csv
import json
import sys

import pytest

from buyer_universe.__main__ import load_universe, main, run_scoring

UNIVERSE = {
    "tracker": {
        "id": "tracker-1",
        "industry_name": "Collision Repair",
        "size_criteria_text": "Revenue $5M-$20M",
        "service_criteria": {"primary_focus": ["collision repair"]},
    },
    "buyers": [
        {
            "id": "b1",
            "platform_company_name": "Crash Champions",
            "website": "crashchampions.com",
            "geographic_footprint": "GA, FL",
            "target_services": ["collision repair"],
            "min_revenue": 5,
            "max_revenue": 20,
        },
        {
            "id": "b2",
            "platform_company_name": "Crash Champions LLC",
            "website": "https://www.crashchampions.com",
        },
        {
            "id": "b3",
            "platform_company_name": "Tow Masters",
            "excluded_services": ["collision"],
        },
    ],
    "deals": [
        {"id": "d1", "revenue": 12, "geography": ["GA"], "service_mix": ["collision repair"]},
    ],
}


@pytest.fixture
def universe_path(tmp_path):
    path = tmp_path / "universe.json"
    path.write_text(json.dumps(UNIVERSE))
    return path


class TestCli:
    """Tests for the scoring CLI."""

    def test_load_universe(self, universe_path):
        tracker, buyers, deals = load_universe(universe_path)

        assert tracker.industry_name == "Collision Repair"
        assert len(buyers) == 3
        assert buyers[0].geographic_footprint == ["GA", "FL"]
        assert deals[0].id == "d1"

    def test_run_scoring_dedupes_and_exports(self, universe_path, tmp_path):
        tracker, buyers, deals = load_universe(universe_path)
        output = tmp_path / "out" / "scores.csv"

        results = asyncio.run(run_scoring(tracker, buyers, deals, output))

        assert [r.buyer_id for r in results] == ["b1", "b3"]
        with open(output, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [row["Buyer"] for row in rows] == ["Crash Champions", "Tow Masters"]
        assert rows[1]["Disqualified"] == "Yes"

    def test_main_prints_summary(self, universe_path, tmp_path, monkeypatch, capsys):
        output = tmp_path / "scores.csv"
        monkeypatch.setattr(sys, "argv", ["buyer_universe", "-i", str(universe_path), "-o", str(output)])

        main()

        assert output.exists()
        assert "FIT SCORE SUMMARY" in capsys.readouterr().out

    def test_main_validate_only(self, universe_path, tmp_path, monkeypatch, capsys):
        output = tmp_path / "scores.csv"
        monkeypatch.setattr(
            sys, "argv", ["buyer_universe", "-i", str(universe_path), "-o", str(output), "--validate"],
        )

        main()

        assert not output.exists()
        assert "CRITERIA VALIDATION" in capsys.readouterr().out

    def test_missing_input_exits(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["buyer_universe", "-i", str(tmp_path / "nope.json")])

        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
