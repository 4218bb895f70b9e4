"""US state normalisation, adjacency and regional grouping."""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

STATE_ADJACENCY: dict[str, list[str]] = {
    "AL": ["FL", "GA", "MS", "TN"],
    "AK": [],
    "AZ": ["CA", "CO", "NM", "NV", "UT"],
    "AR": ["LA", "MO", "MS", "OK", "TN", "TX"],
    "CA": ["AZ", "NV", "OR"],
    "CO": ["AZ", "KS", "NE", "NM", "OK", "UT", "WY"],
    "CT": ["MA", "NY", "RI"],
    "DE": ["MD", "NJ", "PA"],
    "FL": ["AL", "GA"],
    "GA": ["AL", "FL", "NC", "SC", "TN"],
    "HI": [],
    "ID": ["MT", "NV", "OR", "UT", "WA", "WY"],
    "IL": ["IA", "IN", "KY", "MO", "WI"],
    "IN": ["IL", "KY", "MI", "OH"],
    "IA": ["IL", "MN", "MO", "NE", "SD", "WI"],
    "KS": ["CO", "MO", "NE", "OK"],
    "KY": ["IL", "IN", "MO", "OH", "TN", "VA", "WV"],
    "LA": ["AR", "MS", "TX"],
    "ME": ["NH"],
    "MD": ["DE", "PA", "VA", "WV"],
    "MA": ["CT", "NH", "NY", "RI", "VT"],
    "MI": ["IN", "OH", "WI"],
    "MN": ["IA", "ND", "SD", "WI"],
    "MS": ["AL", "AR", "LA", "TN"],
    "MO": ["AR", "IA", "IL", "KS", "KY", "NE", "OK", "TN"],
    "MT": ["ID", "ND", "SD", "WY"],
    "NE": ["CO", "IA", "KS", "MO", "SD", "WY"],
    "NV": ["AZ", "CA", "ID", "OR", "UT"],
    "NH": ["MA", "ME", "VT"],
    "NJ": ["DE", "NY", "PA"],
    "NM": ["AZ", "CO", "OK", "TX", "UT"],
    "NY": ["CT", "MA", "NJ", "PA", "VT"],
    "NC": ["GA", "SC", "TN", "VA"],
    "ND": ["MN", "MT", "SD"],
    "OH": ["IN", "KY", "MI", "PA", "WV"],
    "OK": ["AR", "CO", "KS", "MO", "NM", "TX"],
    "OR": ["CA", "ID", "NV", "WA"],
    "PA": ["DE", "MD", "NJ", "NY", "OH", "WV"],
    "RI": ["CT", "MA"],
    "SC": ["GA", "NC"],
    "SD": ["IA", "MN", "MT", "ND", "NE", "WY"],
    "TN": ["AL", "AR", "GA", "KY", "MO", "MS", "NC", "VA"],
    "TX": ["AR", "LA", "NM", "OK"],
    "UT": ["AZ", "CO", "ID", "NM", "NV", "WY"],
    "VT": ["MA", "NH", "NY"],
    "VA": ["KY", "MD", "NC", "TN", "WV"],
    "WA": ["ID", "OR"],
    "WV": ["KY", "MD", "OH", "PA", "VA"],
    "WI": ["IA", "IL", "MI", "MN"],
    "WY": ["CO", "ID", "MT", "NE", "SD", "UT"],
}

# First match wins when a state sits in more than one region
STATE_REGIONS: dict[str, list[str]] = {
    "SOUTHWEST": ["AZ", "NM", "TX", "OK", "CO", "NV", "UT"],
    "SOUTHEAST": ["FL", "GA", "AL", "SC", "NC", "TN", "MS", "LA", "AR", "KY", "VA", "WV"],
    "NORTHEAST": ["NY", "NJ", "PA", "CT", "MA", "RI", "VT", "NH", "ME", "MD", "DE"],
    "MIDWEST": ["IL", "IN", "OH", "MI", "WI", "MN", "IA", "MO", "KS", "NE", "SD", "ND"],
    "PACIFIC": ["CA", "OR", "WA", "AK", "HI"],
    "MOUNTAIN": ["MT", "ID", "WY", "CO", "UT", "NV"],
}

STATE_NAMES: dict[str, str] = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR", "california": "CA",
    "colorado": "CO", "connecticut": "CT", "delaware": "DE", "florida": "FL", "georgia": "GA",
    "hawaii": "HI", "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA",
    "kansas": "KS", "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
    "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS",
    "missouri": "MO", "montana": "MT", "nebraska": "NE", "nevada": "NV",
    "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM", "new york": "NY",
    "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
    "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT", "vermont": "VT",
    "virginia": "VA", "washington": "WA", "west virginia": "WV", "wisconsin": "WI",
    "wyoming": "WY",
}

# Regional phrases that show up in buyer theses
THESIS_REGION_PATTERNS: list[tuple[re.Pattern, str, list[str]]] = [
    (re.compile(r"pacific\s+northwest|\bpnw\b", re.I), "PACIFIC_NORTHWEST", ["WA", "OR", "ID"]),
    (re.compile(r"southeast\b", re.I), "SOUTHEAST", STATE_REGIONS["SOUTHEAST"]),
    (re.compile(r"northeast\b", re.I), "NORTHEAST", STATE_REGIONS["NORTHEAST"]),
    (re.compile(r"midwest\b", re.I), "MIDWEST", STATE_REGIONS["MIDWEST"]),
    (re.compile(r"southwest\b", re.I), "SOUTHWEST", STATE_REGIONS["SOUTHWEST"]),
    (re.compile(r"mountain\s+west", re.I), "MOUNTAIN", STATE_REGIONS["MOUNTAIN"]),
    (re.compile(r"sun\s*belt", re.I), "SUNBELT", ["FL", "GA", "TX", "AZ", "NV", "CA"]),
    (re.compile(r"new\s+england", re.I), "NEW_ENGLAND", ["MA", "CT", "RI", "VT", "NH", "ME"]),
    (re.compile(r"mid[- ]?atlantic", re.I), "MID_ATLANTIC", ["NY", "NJ", "PA", "MD", "DE", "VA"]),
    (re.compile(r"great\s+lakes", re.I), "GREAT_LAKES", ["MI", "WI", "MN", "IL", "IN", "OH"]),
]

HARD_CONSTRAINT_PHRASES = [
    "focused on", "only in", "exclusively", "limited to", "regional platform",
    "building in", "consolidating in", "targeting",
]

_ABBREV_PATTERN = re.compile(r"\b(" + "|".join(STATE_ADJACENCY) + r")\b")


def normalize_state(value: Optional[str]) -> Optional[str]:
    """Two-letter abbreviation for a state name or code, else None."""
    if not value:
        return None
    cleaned = value.strip()
    if cleaned.upper() in STATE_ADJACENCY and len(cleaned) == 2:
        return cleaned.upper()
    return STATE_NAMES.get(cleaned.lower())


def extract_states(text: Optional[str]) -> list[str]:
    """All states mentioned in free text, by full name or upper-case code."""
    if not text:
        return []
    found: list[str] = []
    lower = text.lower()

    # Longest names first so "west virginia" is not also read as "virginia"
    for name in sorted(STATE_NAMES, key=len, reverse=True):
        if re.search(rf"\b{name}\b", lower):
            abbrev = STATE_NAMES[name]
            if abbrev not in found:
                found.append(abbrev)
            lower = re.sub(rf"\b{name}\b", " ", lower)

    for match in _ABBREV_PATTERN.findall(text):
        if match not in found:
            found.append(match)
    return found


def region_states(text: Optional[str]) -> list[str]:
    """States covered by regional phrases such as "Southeast" or "New England"."""
    states: list[str] = []
    for pattern, _, members in THESIS_REGION_PATTERNS:
        if text and pattern.search(text):
            states.extend(s for s in members if s not in states)
    return states


def states_from_list(values: Iterable[str]) -> list[str]:
    """Flatten a list of state names, codes and regions into state codes."""
    states: list[str] = []
    for value in values or []:
        found = extract_states(value) or [s for s in [normalize_state(value)] if s]
        for state in found + region_states(value):
            if state not in states:
                states.append(state)
    return states


def adjacent_states(state: str) -> list[str]:
    return STATE_ADJACENCY.get(state, [])


def state_region(state: str) -> Optional[str]:
    for region, states in STATE_REGIONS.items():
        if state in states:
            return region
    return None


def same_region(state_a: str, state_b: str) -> bool:
    region = state_region(state_a)
    return region is not None and region == state_region(state_b)


@dataclass
class ThesisFocus:
    """Regional focus stated in a buyer's thesis."""

    regions: list[str] = field(default_factory=list)
    states: list[str] = field(default_factory=list)
    strength: str = "none"  # hard, soft or none
    evidence: Optional[str] = None

    @property
    def has_focus(self) -> bool:
        return bool(self.states)


def thesis_focus(thesis: Optional[str], key_quotes: Optional[list[str]] = None) -> ThesisFocus:
    """Read an explicit regional focus out of thesis text and key quotes."""
    focus = ThesisFocus()
    text = " ".join([thesis or ""] + list(key_quotes or [])).strip()
    if not text:
        return focus

    for pattern, region, states in THESIS_REGION_PATTERNS:
        match = pattern.search(text)
        if match:
            focus.regions.append(region)
            focus.evidence = match.group(0)
            focus.states.extend(s for s in states if s not in focus.states)

    for state in extract_states(text):
        if state not in focus.states:
            focus.states.append(state)

    if focus.states:
        lower = text.lower()
        # A region named without constraint language only counts as a preference
        hard = any(p in lower for p in HARD_CONSTRAINT_PHRASES)
        focus.strength = "hard" if hard else "soft"
    return focus


def deal_states(deal) -> list[str]:
    """States a deal operates in, including its headquarters state."""
    states = states_from_list(deal.geography)
    for state in states_from_list([deal.headquarters] if deal.headquarters else []):
        if state not in states:
            states.append(state)
    return states


def buyer_state_weights(buyer, weights: dict[str, float]) -> dict[str, float]:
    """Map each state a buyer touches to the weight of its strongest attribute.

    ``weights`` is keyed by buyer attribute name (target_geographies,
    geographic_footprint, service_regions, hq_state).
    """
    result: dict[str, float] = {}
    for attr, weight in weights.items():
        value = getattr(buyer, attr, None)
        if not value:
            continue
        for state in states_from_list(value if isinstance(value, list) else [value]):
            result[state] = max(weight, result.get(state, 0.0))
    return result
