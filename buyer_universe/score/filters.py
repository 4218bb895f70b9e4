"""Hard filters: the enumerated dealbreakers that disqualify a buyer for a deal."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from buyer_universe.models import (
    Buyer,
    Deal,
    Disqualification,
    DisqualificationCode,
    GeographyStrictness,
    SizeImportance,
    Tracker,
)
from . import rules
from .geography import (
    adjacent_states,
    buyer_state_weights,
    deal_states,
    states_from_list,
    thesis_focus,
)

logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    """Result of applying hard filters."""

    disqualifications: list[Disqualification] = field(default_factory=list)

    @property
    def is_disqualified(self) -> bool:
        return len(self.disqualifications) > 0

    @property
    def reasons(self) -> list[str]:
        return [d.message for d in self.disqualifications]

    def add(self, code: DisqualificationCode, message: str) -> None:
        self.disqualifications.append(Disqualification(code=code, message=message))


def terms_match(a: str, b: str) -> bool:
    """Case-insensitive containment in either direction."""
    a, b = a.strip().lower(), b.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def mentions(text: str, term: str) -> bool:
    """Case-insensitive: ``term`` appears inside ``text``."""
    text, term = text.strip().lower(), term.strip().lower()
    if not text or not term:
        return False
    return term in text


def contradictory_bounds(buyer: Buyer) -> list[str]:
    """Size measures ("revenue", "ebitda") whose buyer minimum exceeds its maximum."""
    conflicts = []
    for measure in ("revenue", "ebitda"):
        low, high = getattr(buyer, f"min_{measure}"), getattr(buyer, f"max_{measure}")
        if low is not None and high is not None and low > high:
            conflicts.append(measure)
    return conflicts


def size_bounds(buyer: Buyer, tracker: Optional[Tracker]) -> dict[str, Optional[float]]:
    """Buyer revenue/EBITDA bounds, falling back to the tracker's size criteria.

    A buyer pair with min > max cannot be evaluated; both ends come back None.
    """
    fallback = tracker.size_criteria if tracker and tracker.size_criteria else None
    conflicts = contradictory_bounds(buyer)
    bounds = {}
    for measure in ("revenue", "ebitda"):
        for name in (f"min_{measure}", f"max_{measure}"):
            if measure in conflicts:
                bounds[name] = None
                continue
            value = getattr(buyer, name)
            if value is None and fallback is not None:
                value = getattr(fallback, name)
            bounds[name] = value
    return bounds


def range_violation(value: Optional[float], low: Optional[float], high: Optional[float]) -> Optional[str]:
    """'below' or 'above' when ``value`` falls outside the tolerated band around [low, high]."""
    if value is None:
        return None
    if low is not None and value < low * rules.SIZE.below_min_tolerance:
        return "below"
    if high is not None and value > high * rules.SIZE.above_max_tolerance:
        return "above"
    return None


class HardFilters:
    """Apply hard pass/fail filters for a buyer/deal pair."""

    def apply(self, buyer: Buyer, deal: Deal, tracker: Tracker) -> FilterResult:
        """Apply all hard filters. Every check runs so all reasons are reported."""
        result = FilterResult()

        self._check_services(buyer, deal, result)
        self._check_industry(buyer, deal, result)
        if tracker.effective_size_importance == SizeImportance.HIGH:
            self._check_size(buyer, deal, tracker, result)
        self._check_geography(buyer, deal, tracker, result)

        if result.is_disqualified:
            logger.debug(
                f"Buyer {buyer.id} disqualified for deal {deal.id}: {'; '.join(result.reasons)}"
            )
        return result

    def _check_services(self, buyer: Buyer, deal: Deal, result: FilterResult) -> None:
        for excluded in buyer.excluded_services:
            for service in deal.service_mix:
                if mentions(service, excluded):
                    result.add(
                        DisqualificationCode.EXCLUDED_SERVICE,
                        f"Buyer excludes {excluded} (deal offers {service})",
                    )
                    break

    def _check_industry(self, buyer: Buyer, deal: Deal, result: FilterResult) -> None:
        deal_terms = ([deal.industry_type] if deal.industry_type else []) + deal.service_mix
        for excluded in buyer.industry_exclusions:
            hit = next((t for t in deal_terms if mentions(t, excluded)), None)
            if hit:
                result.add(
                    DisqualificationCode.EXCLUDED_INDUSTRY,
                    f"Buyer excludes the {excluded} industry (deal: {hit})",
                )

    def _check_size(self, buyer: Buyer, deal: Deal, tracker: Tracker, result: FilterResult) -> None:
        bounds = size_bounds(buyer, tracker)

        revenue = range_violation(deal.revenue, bounds["min_revenue"], bounds["max_revenue"])
        if revenue == "below":
            result.add(
                DisqualificationCode.REVENUE_BELOW_MINIMUM,
                f"Revenue ${deal.revenue:g}M is well below the ${bounds['min_revenue']:g}M minimum",
            )
        elif revenue == "above":
            result.add(
                DisqualificationCode.REVENUE_ABOVE_MAXIMUM,
                f"Revenue ${deal.revenue:g}M is well above the ${bounds['max_revenue']:g}M maximum",
            )

        ebitda = deal.ebitda
        violation = range_violation(ebitda, bounds["min_ebitda"], bounds["max_ebitda"])
        if violation == "below":
            result.add(
                DisqualificationCode.EBITDA_BELOW_MINIMUM,
                f"EBITDA ${ebitda:g}M is well below the ${bounds['min_ebitda']:g}M minimum",
            )
        elif violation == "above":
            result.add(
                DisqualificationCode.EBITDA_ABOVE_MAXIMUM,
                f"EBITDA ${ebitda:g}M is well above the ${bounds['max_ebitda']:g}M maximum",
            )

    def _check_geography(self, buyer: Buyer, deal: Deal, tracker: Tracker, result: FilterResult) -> None:
        states = deal_states(deal)
        if not states:
            return

        excluded = [s for s in states_from_list(buyer.geographic_exclusions) if s in states]
        if excluded:
            result.add(
                DisqualificationCode.EXCLUDED_GEOGRAPHY,
                f"Buyer excludes {', '.join(excluded)}",
            )

        strictness = tracker.effective_geography_strictness
        weighted = buyer_state_weights(buyer, rules.GEOGRAPHY.state_weights)

        if strictness == GeographyStrictness.STRICT and weighted:
            near = set(weighted)
            for state in weighted:
                near.update(adjacent_states(state))
            if not near.intersection(states):
                result.add(
                    DisqualificationCode.OUTSIDE_FOOTPRINT,
                    f"Deal in {', '.join(states)} is outside the buyer footprint",
                )

        if strictness in rules.GEOGRAPHY.thesis_disqualifies:
            focus = thesis_focus(buyer.thesis_summary, buyer.key_quotes)
            targets = set(states_from_list(buyer.target_geographies))
            if (
                focus.strength == "hard"
                and not set(focus.states).intersection(states)
                and not targets.intersection(states)
            ):
                where = ", ".join(focus.regions) or ", ".join(focus.states)
                result.add(
                    DisqualificationCode.THESIS_REGION_CONFLICT,
                    f"Buyer thesis is focused on {where}; deal is in {', '.join(states)}",
                )
