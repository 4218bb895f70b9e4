"""CLI entry point for Buyer Universe scoring."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from buyer_universe.config import settings
from buyer_universe.enrich import BuyerDeduplicator, CriteriaParser
from buyer_universe.errors import BuyerUniverseError
from buyer_universe.export import export_to_csv
from buyer_universe.models import Buyer, Deal, FitScore, Tracker
from buyer_universe.score import FitScorer, validate_criteria

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_universe(path: Path) -> tuple[Tracker, list[Buyer], list[Deal]]:
    """Load a tracker with its buyers and deals from a JSON file.

    Expected shape: ``{"tracker": {...}, "buyers": [...], "deals": [...]}``.
    """
    with open(path, "r") as f:
        data = json.load(f)

    tracker = Tracker(**data.get("tracker", {}))
    buyers = [Buyer(**b) for b in data.get("buyers", [])]
    deals = [Deal(**d) for d in data.get("deals", [])]
    return tracker, buyers, deals


async def run_scoring(
    tracker: Tracker,
    buyers: list[Buyer],
    deals: list[Deal],
    output_path: Path,
    parse_criteria: bool = False,
) -> list[FitScore]:
    """Score every buyer against every deal and export the ranked results."""
    # Phase 1: Criteria
    if parse_criteria:
        logger.info("Phase 1: Parsing criteria text...")
        parsed = await CriteriaParser().parse(tracker)
        if parsed is not None:
            tracker = parsed.apply_to(tracker)
            logger.info("Applied parsed criteria")
        else:
            logger.warning("Criteria parsing unavailable, scoring with existing criteria")

    # Phase 2: Deduplication
    logger.info("Phase 2: Deduplicating buyers...")
    buyers = BuyerDeduplicator().deduplicate(buyers)
    logger.info(f"{len(buyers)} buyers after deduplication")

    # Phase 3: Scoring
    logger.info(f"Phase 3: Scoring {len(buyers)} buyers against {len(deals)} deals...")
    scorer = FitScorer()
    results: list[FitScore] = []
    for deal in deals:
        results.extend(scorer.score_and_rank(buyers, deal, tracker))

    # Phase 4: Export
    logger.info("Phase 4: Exporting results...")
    export_to_csv(results, output_path)
    logger.info(f"Results exported to {output_path}")

    return results


def print_summary(results: list[FitScore]):
    """Print a summary of results to console."""
    print("\n" + "=" * 60)
    print("BUYER UNIVERSE - FIT SCORE SUMMARY")
    print("=" * 60)

    for deal_id in dict.fromkeys(r.deal_id for r in results):
        scores = [r for r in results if r.deal_id == deal_id]
        eligible = [r for r in scores if r.is_rankable]
        disqualified = [r for r in scores if r.disqualified]

        print(f"\nDeal {deal_id}")
        print(f"Buyers scored: {len(scores)}")
        print(f"Eligible: {len(eligible)}")
        print(f"Disqualified: {len(disqualified)}")
        print(f"Insufficient data: {len(scores) - len(eligible) - len(disqualified)}")

        if eligible:
            print("-" * 60)
            for r in eligible[:10]:
                print(f"\n#{r.rank} {r.buyer_name or r.buyer_id}")
                print(f"   Score: {r.composite} | Data: {r.data_completeness.value}")
                if r.buyer_type:
                    print(f"   Buyer Type: {r.buyer_type}")
                if r.reasons:
                    print(f"   Why: {r.reasons[0]}")

    print("\n" + "=" * 60)


def print_validation(tracker: Tracker):
    """Print the criteria validation report for a tracker."""
    report = validate_criteria(tracker)

    print("\n" + "=" * 60)
    print(f"CRITERIA VALIDATION - {tracker.industry_name or tracker.id or 'tracker'}")
    print("=" * 60)
    print(f"\nStatus: {report.status} ({report.overall_score}% complete)")
    print(f"Can score: {'yes' if report.can_score else 'no'}")

    for label, items in (
        ("Errors", report.errors),
        ("Warnings", report.warnings),
        ("Placeholders", report.placeholders),
        ("Critical missing", report.critical_missing),
    ):
        if items:
            print(f"\n{label}:")
            for item in items:
                print(f"   - {item}")

    print("\n" + "=" * 60)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Buyer Universe - Score and rank buyers against deals"
    )
    parser.add_argument(
        "--input", "-i",
        type=Path,
        default=Path("universe.json"),
        help="Path to a JSON file with tracker, buyers and deals (default: universe.json)",
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=settings.data_dir / "buyer_scores.csv",
        help="Output CSV path (default: data/buyer_scores.csv)",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Only print the criteria validation report",
    )
    parser.add_argument(
        "--parse-criteria",
        action="store_true",
        help="Parse free-text criteria with Claude before scoring",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not args.input.exists():
        logger.error(f"Input file not found: {args.input}")
        logger.info("Create a universe.json file or use --input to specify path")
        sys.exit(1)

    try:
        tracker, buyers, deals = load_universe(args.input)
        logger.info(f"Loaded {len(buyers)} buyers and {len(deals)} deals from {args.input}")
    except Exception as e:
        logger.error(f"Failed to load input: {e}")
        sys.exit(1)

    if args.validate:
        print_validation(tracker)
        return

    try:
        results = asyncio.run(run_scoring(
            tracker=tracker,
            buyers=buyers,
            deals=deals,
            output_path=args.output,
            parse_criteria=args.parse_criteria,
        ))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except BuyerUniverseError as e:
        logger.error(f"Scoring failed: {e}")
        sys.exit(1)

    print_summary(results)


if __name__ == "__main__":
    main()
