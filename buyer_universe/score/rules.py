"""Scoring weights, thresholds and bonus points.

Everything numeric the fit scorer uses lives here so the rule set can be
reviewed and tested without walking the control flow in ``scorer.py``.
"""

from dataclasses import dataclass, field

from buyer_universe.models import GeographyStrictness, SizeImportance


@dataclass(frozen=True)
class CategoryRule:
    """A weighted sub-score. ``weight`` is the share of the composite (sums to 100)."""

    name: str
    weight: float
    description: str


CATEGORIES: tuple[CategoryRule, ...] = (
    CategoryRule("size", 40, "Deal revenue/EBITDA against buyer bounds"),
    CategoryRule("service", 30, "Deal service mix against buyer services"),
    CategoryRule("geography", 30, "Deal states against buyer footprint"),
)

WEIGHTS: dict[str, float] = {rule.name: rule.weight for rule in CATEGORIES}

BUYER_TYPE_BONUS = 5.0
DATA_QUALITY_MAX_BONUS = 10.0

COMPOSITE_MIN = 0
COMPOSITE_MAX = 100


@dataclass(frozen=True)
class SizeRules:
    # Hard violation boundaries relative to buyer bounds
    below_min_tolerance: float = 0.7
    above_max_tolerance: float = 1.5

    sweet_spot_band: float = 0.2
    low_end_factor: float = 1.3

    sweet_spot_score: float = 100.0
    low_end_score: float = 70.0
    in_range_floor: float = 75.0
    in_range_span: float = 25.0
    in_range_unanchored: float = 85.0

    # Below min: base + (band - % below)
    below_min_base: float = 25.0
    below_min_band: float = 30.0
    # Above max: max(floor, ceiling - gap * ceiling)
    above_max_ceiling: float = 60.0
    above_max_floor: float = 20.0

    # Score for a hard violation that does not disqualify
    hard_violation_score: dict[SizeImportance, float] = field(default_factory=lambda: {
        SizeImportance.MEDIUM: 15.0,
        SizeImportance.LOW: 35.0,
    })

    ebitda_in_range_bonus: float = 10.0
    ebitda_below_min_penalty: float = 15.0


@dataclass(frozen=True)
class ServiceRules:
    # (minimum overlap, base score, slope); first tier whose minimum is met applies
    overlap_tiers: tuple[tuple[float, float, float], ...] = (
        (0.7, 90.0, 100.0 / 3),
        (0.4, 70.0, 100.0),
        (0.2, 50.0, 100.0),
    )
    any_match_score: float = 40.0
    no_match_score: float = 25.0

    primary_focus_bonus: float = 10.0
    missing_required_penalty: float = 10.0
    missing_required_max_penalty: float = 30.0

    # Share of deal services in tracker exclusions that makes a deal off-focus
    off_focus_share: float = 0.5
    off_focus_score: float = 30.0


@dataclass(frozen=True)
class GeographyPoints:
    exact_base: float
    adjacent: float
    regional: float
    no_match: float


@dataclass(frozen=True)
class GeographyRules:
    # Weight of each buyer geography attribute when matching deal states
    state_weights: dict[str, float] = field(default_factory=lambda: {
        "target_geographies": 1.0,
        "geographic_footprint": 0.7,
        "service_regions": 0.5,
        "hq_state": 0.3,
    })

    points: dict[GeographyStrictness, GeographyPoints] = field(default_factory=lambda: {
        GeographyStrictness.STRICT: GeographyPoints(exact_base=80, adjacent=55, regional=30, no_match=0),
        GeographyStrictness.MODERATE: GeographyPoints(exact_base=80, adjacent=70, regional=50, no_match=15),
        GeographyStrictness.RELAXED: GeographyPoints(exact_base=90, adjacent=85, regional=75, no_match=60),
    })

    multi_location_min: int = 3
    multi_location_bonus: float = 10.0

    thesis_conflict_cap: float = 40.0

    # Hard thesis conflicts disqualify under these strictness levels
    thesis_disqualifies: tuple[GeographyStrictness, ...] = (
        GeographyStrictness.STRICT,
        GeographyStrictness.MODERATE,
    )


@dataclass(frozen=True)
class BuyerTypeRules:
    # Number of states a buyer covers for each geographic scope
    scope_states: dict[str, tuple[int, int]] = field(default_factory=lambda: {
        "local": (1, 2),
        "regional": (3, 9),
        "national": (10, 60),
    })


@dataclass(frozen=True)
class DataQualityRules:
    buyer_points: dict[str, int] = field(default_factory=lambda: {
        "geography": 1,
        "target_geographies": 1,
        "services": 1,
        "size_bounds": 1,
        "thesis": 2,
        "owner_transition": 1,
        "key_quotes": 2,
        "acquisition_appetite": 1,
        "contact": 1,
        "extraction_sources": 1,
    })
    deal_points: dict[str, int] = field(default_factory=lambda: {
        "geography": 1,
        "revenue": 1,
        "service_mix": 1,
        "owner_goals": 1,
        "location_count": 1,
    })

    high_threshold: float = 70.0
    medium_threshold: float = 40.0


SIZE = SizeRules()
SERVICE = ServiceRules()
GEOGRAPHY = GeographyRules()
BUYER_TYPE = BuyerTypeRules()
DATA_QUALITY = DataQualityRules()
