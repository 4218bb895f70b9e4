"""CSV export of fit scores."""

import csv
from pathlib import Path
from typing import Iterable, TextIO

from buyer_universe.models import FitScore

SCORE_CSV_HEADER = [
    "Rank",
    "Deal",
    "Buyer",
    "Status",
    "Composite",
    "Size",
    "Service",
    "Geography",
    "Buyer Type",
    "Data Completeness",
    "Disqualified",
    "Disqualification Reasons",
    "Reasons",
]


def write_scores_csv(output: TextIO, scores: Iterable[FitScore]) -> None:
    """Write fit scores to a text stream as CSV."""
    writer = csv.writer(output)
    writer.writerow(SCORE_CSV_HEADER)

    for s in scores:
        sub = s.subscores
        writer.writerow([
            s.rank or "",
            s.deal_id,
            s.buyer_name or s.buyer_id,
            s.status.value,
            "" if s.composite is None else s.composite,
            f"{sub.size:.0f}" if sub else "",
            f"{sub.service:.0f}" if sub else "",
            f"{sub.geography:.0f}" if sub else "",
            s.buyer_type or "",
            s.data_completeness.value if s.data_completeness else "",
            "Yes" if s.disqualified else "No",
            "; ".join(s.disqualification_reasons),
            " | ".join(s.reasons),
        ])


def export_to_csv(scores: Iterable[FitScore], output_path: Path):
    """Export scores to a CSV file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        write_scores_csv(f, scores)
