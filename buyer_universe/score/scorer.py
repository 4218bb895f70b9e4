"""Fit scoring engine for ranking buyers against a deal."""

import logging
import re
from typing import Optional

from buyer_universe.errors import ScoringInputError
from buyer_universe.models import (
    Buyer,
    BuyerTypeProfile,
    DataCompleteness,
    Deal,
    FitScore,
    ScoreStatus,
    ServiceCriteria,
    SizeImportance,
    SubScores,
    Tracker,
)
from . import rules
from .filters import HardFilters, contradictory_bounds, range_violation, size_bounds, terms_match
from .geography import (
    adjacent_states,
    buyer_state_weights,
    deal_states,
    same_region,
    states_from_list,
    thesis_focus,
)
from .readiness import buyer_contradictions, check_readiness

logger = logging.getLogger(__name__)

STATUS_ORDER = {
    ScoreStatus.SCORED: 0,
    ScoreStatus.DISQUALIFIED: 1,
    ScoreStatus.INSUFFICIENT_DATA: 2,
}


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _split_services(text: Optional[str]) -> list[str]:
    if not text:
        return []
    return [part.strip() for part in re.split(r"[,;/\n]|\band\b", text) if part.strip()]


def completeness_label(percentage: float) -> DataCompleteness:
    if percentage >= rules.DATA_QUALITY.high_threshold:
        return DataCompleteness.HIGH
    if percentage >= rules.DATA_QUALITY.medium_threshold:
        return DataCompleteness.MEDIUM
    return DataCompleteness.LOW


class FitScorer:
    """Score and rank buyers against a deal under a tracker's criteria."""

    def __init__(self):
        self.filters = HardFilters()

    def score(self, buyer: Buyer, deal: Deal, tracker: Tracker) -> FitScore:
        """Score one buyer against one deal.

        Raises ScoringInputError when either record has no id and
        CriteriaValidationError when the tracker's criteria contradict
        themselves. Missing or contradictory buyer and deal data never raises;
        it lowers the affected sub-score.
        """
        if not buyer.id:
            raise ScoringInputError("Buyer has no id", {"buyer": buyer.display_name})
        if not deal.id:
            raise ScoringInputError("Deal has no id", {"deal": deal.deal_name})

        readiness = check_readiness(tracker)
        if not readiness.ready:
            return FitScore(
                buyer_id=buyer.id,
                deal_id=deal.id,
                buyer_name=buyer.display_name,
                status=ScoreStatus.INSUFFICIENT_DATA,
                readiness=readiness,
                reasons=["Tracker has no size, service or geography criteria to score against"],
            )
        record_issues = [f"Contradictory buyer data: {e}" for e in buyer_contradictions(buyer)]
        if record_issues:
            logger.warning(f"Buyer {buyer.id} has contradictory data: {'; '.join(record_issues)}")

        # Apply hard filters first
        filter_result = self.filters.apply(buyer, deal, tracker)

        size, size_reasons = self._score_size(buyer, deal, tracker)
        service, service_reasons = self._score_service(buyer, deal, tracker)
        geography, geography_reasons = self._score_geography(buyer, deal, tracker)
        buyer_type = self._match_buyer_type(buyer, tracker)
        quality = self._data_quality(buyer, deal)

        subscores = SubScores(
            size=round(size, 1),
            service=round(service, 1),
            geography=round(geography, 1),
            buyer_type=rules.BUYER_TYPE_BONUS if buyer_type else 0.0,
            data_quality=quality,
        )

        reasons = record_issues + size_reasons + service_reasons + geography_reasons
        if buyer_type:
            reasons.append(f"Matches buyer type: {buyer_type}")

        scored = FitScore(
            buyer_id=buyer.id,
            deal_id=deal.id,
            buyer_name=buyer.display_name,
            status=ScoreStatus.SCORED,
            composite=self._calculate_composite(subscores),
            subscores=subscores,
            reasons=reasons,
            data_completeness=completeness_label(quality),
            buyer_type=buyer_type,
            readiness=readiness,
        )

        # Set score to 0 if disqualified
        if filter_result.is_disqualified:
            scored.status = ScoreStatus.DISQUALIFIED
            scored.composite = 0
            scored.disqualified = True
            scored.disqualifications = filter_result.disqualifications
            scored.reasons = filter_result.reasons + reasons

        return scored

    def score_and_rank(
        self,
        buyers: list[Buyer],
        deal: Deal,
        tracker: Tracker,
    ) -> list[FitScore]:
        """Score all buyers; eligible first by composite, then disqualified, then unscored."""
        scored = [self.score(buyer, deal, tracker) for buyer in buyers]

        # Stable sort keeps input order among equal scores
        scored.sort(key=lambda s: (STATUS_ORDER[s.status], -(s.composite or 0)))

        for i, result in enumerate(scored):
            result.rank = i + 1

        eligible = sum(1 for s in scored if s.is_rankable)
        logger.info(f"Scored {len(scored)} buyers for deal {deal.id}: {eligible} eligible")
        return scored

    def _calculate_composite(self, subscores: SubScores) -> int:
        """Weighted categories plus bonuses, clamped to 0-100."""
        weighted = sum(
            weight * getattr(subscores, name) for name, weight in rules.WEIGHTS.items()
        ) / 100
        quality_bonus = round(rules.DATA_QUALITY_MAX_BONUS * subscores.data_quality / 100)
        total = weighted + subscores.buyer_type + quality_bonus
        return int(round(_clamp(total, rules.COMPOSITE_MIN, rules.COMPOSITE_MAX)))

    # Size

    def _score_size(self, buyer: Buyer, deal: Deal, tracker: Tracker) -> tuple[float, list[str]]:
        bounds = size_bounds(buyer, tracker)
        importance = tracker.effective_size_importance
        revenue, ebitda = deal.revenue, deal.ebitda

        revenue_known = revenue is not None and (
            bounds["min_revenue"] is not None or bounds["max_revenue"] is not None
        )
        ebitda_known = ebitda is not None and (
            bounds["min_ebitda"] is not None or bounds["max_ebitda"] is not None
        )
        if not revenue_known and not ebitda_known:
            if contradictory_bounds(buyer):
                return 0.0, ["Size fit unknown: buyer size bounds are contradictory"]
            return 0.0, ["Size fit unknown: missing deal financials or buyer size bounds"]

        if not revenue_known:
            score, reason = self._range_score(
                "EBITDA", ebitda, bounds["min_ebitda"], bounds["max_ebitda"], None, importance,
            )
            return _clamp(score), [reason]

        score, reason = self._range_score(
            "Revenue", revenue, bounds["min_revenue"], bounds["max_revenue"],
            buyer.revenue_sweet_spot, importance,
        )
        reasons = [reason]

        if ebitda_known:
            low, high = bounds["min_ebitda"], bounds["max_ebitda"]
            if low is not None and ebitda < low:
                score -= rules.SIZE.ebitda_below_min_penalty
                reasons.append(f"EBITDA ${ebitda:g}M is below the ${low:g}M minimum")
            elif high is None or ebitda <= high:
                score += rules.SIZE.ebitda_in_range_bonus
                reasons.append(f"EBITDA ${ebitda:g}M is within buyer range")

        return _clamp(score), reasons

    def _range_score(
        self,
        label: str,
        value: float,
        low: Optional[float],
        high: Optional[float],
        sweet_spot: Optional[float],
        importance: SizeImportance,
    ) -> tuple[float, str]:
        """Score a dollar value against a [low, high] range."""
        size = rules.SIZE

        if range_violation(value, low, high):
            if importance == SizeImportance.HIGH:
                return 0.0, f"{label} ${value:g}M is far outside the buyer range"
            return (
                size.hard_violation_score[importance],
                f"{label} ${value:g}M is far outside the buyer range ({importance.value} size importance)",
            )

        if low and value < low:
            pct_below = (low - value) / low * 100
            return (
                size.below_min_base + (size.below_min_band - pct_below),
                f"{label} ${value:g}M is {pct_below:.0f}% below the ${low:g}M minimum",
            )

        if high and value > high:
            gap = (value - high) / high
            return (
                max(size.above_max_floor, size.above_max_ceiling - gap * size.above_max_ceiling),
                f"{label} ${value:g}M is {gap * 100:.0f}% above the ${high:g}M maximum",
            )

        if sweet_spot is None and low is not None and high is not None:
            sweet_spot = (low + high) / 2

        if sweet_spot and abs(value - sweet_spot) <= sweet_spot * size.sweet_spot_band:
            return size.sweet_spot_score, f"{label} ${value:g}M is near the ${sweet_spot:g}M sweet spot"

        if low and value < low * size.low_end_factor:
            return size.low_end_score, f"{label} ${value:g}M is at the low end of the buyer range"

        if sweet_spot:
            fit = max(0.0, 1 - abs(value - sweet_spot) / sweet_spot)
            return (
                size.in_range_floor + fit * size.in_range_span,
                f"{label} ${value:g}M is within the buyer range",
            )

        return size.in_range_unanchored, f"{label} ${value:g}M is within the buyer range"

    # Services

    def _score_service(self, buyer: Buyer, deal: Deal, tracker: Tracker) -> tuple[float, list[str]]:
        rule = rules.SERVICE
        services = [s for s in deal.service_mix if s.strip()]
        if not services:
            return 0.0, ["Service fit unknown: deal service mix is empty"]

        criteria = tracker.service_criteria or ServiceCriteria()
        focus_hits = [s for s in services if any(terms_match(s, f) for f in criteria.primary_focus)]
        off_focus = [s for s in services if any(terms_match(s, e) for e in criteria.excluded_services)]

        if off_focus and not focus_hits and len(off_focus) / len(services) > rule.off_focus_share:
            return rule.off_focus_score, [f"Deal is mostly off-focus services: {', '.join(off_focus)}"]

        buyer_terms = list(dict.fromkeys(
            t.strip().lower()
            for t in (buyer.required_services + buyer.preferred_services
                      + buyer.target_services + _split_services(buyer.services_offered))
            if t.strip()
        ))
        if not buyer_terms:
            return 0.0, ["Service fit unknown: buyer services are not recorded"]

        matched = [s for s in services if any(terms_match(s, t) for t in buyer_terms)]
        overlap = len(matched) / len(services)

        score = rule.no_match_score
        for minimum, base, slope in rule.overlap_tiers:
            if overlap >= minimum:
                score = base + (overlap - minimum) * slope
                break
        else:
            if matched:
                score = rule.any_match_score

        if matched:
            reasons = [f"Service overlap {overlap:.0%}: {', '.join(matched)}"]
        else:
            reasons = ["No overlap between deal services and buyer services"]

        if focus_hits:
            score += rule.primary_focus_bonus
            reasons.append(f"Deal offers primary-focus services: {', '.join(focus_hits)}")

        missing = [r for r in buyer.required_services if not any(terms_match(r, s) for s in services)]
        if missing:
            score -= min(rule.missing_required_max_penalty, rule.missing_required_penalty * len(missing))
            reasons.append(f"Deal lacks required services: {', '.join(missing)}")

        return _clamp(score), reasons

    # Geography

    def _score_geography(self, buyer: Buyer, deal: Deal, tracker: Tracker) -> tuple[float, list[str]]:
        rule = rules.GEOGRAPHY
        states = deal_states(deal)
        if not states:
            return 0.0, ["Geography fit unknown: deal location is not recorded"]

        weighted = buyer_state_weights(buyer, rule.state_weights)
        if not weighted:
            return 0.0, ["Geography fit unknown: buyer footprint is not recorded"]

        points = rule.points[tracker.effective_geography_strictness]
        exact = [s for s in states if s in weighted]

        if exact:
            weight = max(weighted[s] for s in exact)
            score = points.exact_base + (100 - points.exact_base) * weight
            reasons = [f"Buyer is present in {', '.join(exact)}"]
        else:
            adjacent = [s for s in states if any(a in weighted for a in adjacent_states(s))]
            if adjacent:
                score = points.adjacent
                reasons = [f"Deal in {', '.join(adjacent)} borders the buyer footprint"]
            elif any(same_region(s, b) for s in states for b in weighted):
                score = points.regional
                reasons = ["Deal is in the same region as the buyer footprint"]
            else:
                score = points.no_match
                reasons = [f"Deal in {', '.join(states)} is away from the buyer footprint"]

            if (deal.location_count or 0) >= rule.multi_location_min:
                score += rule.multi_location_bonus
                reasons.append(f"Multi-location deal ({deal.location_count} locations)")

        focus = thesis_focus(buyer.thesis_summary, buyer.key_quotes)
        targets = set(states_from_list(buyer.target_geographies))
        if (
            focus.has_focus
            and not set(focus.states).intersection(states)
            and not targets.intersection(states)
        ):
            score = min(score, rule.thesis_conflict_cap)
            reasons.append(f"Buyer thesis points elsewhere ({focus.evidence or ', '.join(focus.states)})")

        return _clamp(score), reasons

    # Buyer type

    def _match_buyer_type(self, buyer: Buyer, tracker: Tracker) -> Optional[str]:
        """First tracker buyer-type profile, by priority, that the buyer satisfies."""
        criteria = tracker.buyer_types_criteria
        if not criteria:
            return None
        for profile in sorted(criteria.buyer_types, key=lambda p: p.priority_order):
            if self._matches_profile(buyer, profile):
                return profile.type_name
        return None

    def _matches_profile(self, buyer: Buyer, profile: BuyerTypeProfile) -> bool:
        checks = []

        if profile.min_locations is not None or profile.max_locations is not None:
            count = buyer.location_count
            checks.append(
                count is not None
                and (profile.min_locations is None or count >= profile.min_locations)
                and (profile.max_locations is None or count <= profile.max_locations)
            )

        if profile.min_revenue_per_location is not None:
            per_location = buyer.revenue_per_location
            checks.append(per_location is not None and per_location >= profile.min_revenue_per_location)

        if profile.min_ebitda is not None or profile.max_ebitda is not None:
            if buyer.min_ebitda is None and buyer.max_ebitda is None:
                checks.append(False)
            else:
                checks.append(
                    (profile.min_ebitda is None or buyer.max_ebitda is None
                     or buyer.max_ebitda >= profile.min_ebitda)
                    and (profile.max_ebitda is None or buyer.min_ebitda is None
                         or buyer.min_ebitda <= profile.max_ebitda)
                )

        scope = (profile.geographic_scope or "").strip().lower()
        if scope in rules.BUYER_TYPE.scope_states:
            low, high = rules.BUYER_TYPE.scope_states[scope]
            count = len(buyer_state_weights(buyer, rules.GEOGRAPHY.state_weights))
            checks.append(low <= count <= high)

        return bool(checks) and all(checks)

    # Data quality

    def _data_quality(self, buyer: Buyer, deal: Deal) -> float:
        """Percentage of scoring-relevant buyer and deal fields that are populated."""
        buyer_checks = {
            "geography": bool(buyer.hq_state or buyer.geographic_footprint),
            "target_geographies": bool(buyer.target_geographies),
            "services": bool(buyer.services_offered or buyer.target_services
                             or buyer.required_services or buyer.preferred_services),
            "size_bounds": any(v is not None for v in size_bounds(buyer, None).values()),
            "thesis": bool((buyer.thesis_summary or "").strip()),
            "owner_transition": bool(buyer.owner_transition_goals),
            "key_quotes": bool(buyer.key_quotes),
            "acquisition_appetite": bool(buyer.acquisition_appetite),
            "contact": bool(buyer.contact_name or buyer.contact_email),
            "extraction_sources": bool(buyer.extraction_sources),
        }
        deal_checks = {
            "geography": bool(deal.geography or deal.headquarters),
            "revenue": deal.revenue is not None,
            "service_mix": bool(deal.service_mix),
            "owner_goals": bool(deal.owner_goals),
            "location_count": deal.location_count is not None,
        }

        table = rules.DATA_QUALITY
        earned = sum(p for name, p in table.buyer_points.items() if buyer_checks[name])
        earned += sum(p for name, p in table.deal_points.items() if deal_checks[name])
        total = sum(table.buyer_points.values()) + sum(table.deal_points.values())
        return round(earned / total * 100, 1)
