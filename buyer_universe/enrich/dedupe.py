"""Domain-based deduplication and normalization."""

import logging
import re
from difflib import SequenceMatcher
from typing import Optional
from urllib.parse import urlparse

from buyer_universe.enrich.sources import effective_source, field_priority, restrict_entries
from buyer_universe.models import Buyer, ExtractionSource

logger = logging.getLogger(__name__)

# Fields that identify a record rather than describe it
_IDENTITY_FIELDS = {"id", "tracker_id", "extraction_sources"}


def normalize_domain(value: Optional[str]) -> Optional[str]:
    """Normalize a website or URL to a bare domain.

    Strips protocol, ``www.``, path and port, and lower-cases. Returns None
    when the result is not a plausible domain (no dot, or whitespace).
    """
    if not value:
        return None

    domain = value.strip()

    # Handle full URLs and bare host/path forms
    if "://" in domain or "/" in domain:
        parsed = urlparse(domain if "://" in domain else f"https://{domain}")
        domain = parsed.netloc or parsed.path

    domain = domain.lower()

    # Remove www prefix
    if domain.startswith("www."):
        domain = domain[4:]

    # Remove trailing slash and path
    domain = domain.split("/")[0]

    # Remove port
    domain = domain.split(":")[0]

    if "." not in domain or " " in domain:
        return None
    return domain


def _is_empty(value) -> bool:
    return value is None or value == "" or value == []


class BuyerDeduplicator:
    """Deduplicate buyers by website domain and fuzzy firm/platform name."""

    def __init__(self, name_similarity_threshold: float = 0.85):
        self.name_similarity_threshold = name_similarity_threshold

    def deduplicate(self, buyers: list[Buyer]) -> list[Buyer]:
        """Collapse duplicate buyers, keeping the first occurrence of each.

        Later duplicates are merged into the kept record by source priority
        (see ``_merge_buyer``). Inputs are not modified.
        """
        seen_domains: dict[str, Buyer] = {}
        seen_names: dict[str, Buyer] = {}
        result: list[Buyer] = []

        for buyer in buyers:
            buyer = buyer.model_copy(deep=True)

            # Check domain uniqueness
            domain = normalize_domain(buyer.website)
            if domain and domain in seen_domains:
                self._merge_buyer(seen_domains[domain], buyer)
                continue

            # Check name uniqueness (fuzzy); different known domains never match
            normalized_name = self._normalize_name(self._name_key(buyer))
            existing = None
            if normalized_name:
                existing = next(
                    (
                        b for name, b in seen_names.items()
                        if self._names_match(normalized_name, name)
                        and not (domain and normalize_domain(b.website) not in (None, domain))
                    ),
                    None,
                )

            if existing is not None:
                self._merge_buyer(existing, buyer)
                if domain:
                    seen_domains[domain] = existing
                continue

            if domain:
                seen_domains[domain] = buyer
            if normalized_name:
                seen_names[normalized_name] = buyer
            result.append(buyer)

        if len(result) < len(buyers):
            logger.info(f"Deduplicated {len(buyers)} buyers to {len(result)}")
        return result

    @staticmethod
    def _name_key(buyer: Buyer) -> str:
        # Platform names are more specific than PE firm names
        parts = [buyer.platform_company_name, buyer.pe_firm_name]
        return " ".join(p for p in parts if p)

    def _normalize_name(self, name: str) -> str:
        """Normalize a company name for comparison."""
        name = name.lower().strip()

        # Remove common suffixes
        suffixes = [
            r"\s+(inc\.?|llc|ltd\.?|corp\.?|co\.?|company|partners|capital)$",
            r"\s+(incorporated|limited|corporation|holdings)$",
            r",\s+(inc\.?|llc|ltd\.?)$",
        ]
        for suffix in suffixes:
            name = re.sub(suffix, "", name, flags=re.I)

        # Remove special characters
        name = re.sub(r"[^\w\s]", "", name)

        return " ".join(name.split())

    def _names_match(self, name1: str, name2: str) -> bool:
        """Check if two normalized names refer to the same buyer."""
        if name1 == name2:
            return True

        # Fuzzy matching
        ratio = SequenceMatcher(None, name1, name2).ratio()
        return ratio >= self.name_similarity_threshold

    def _merge_buyer(self, existing: Buyer, new: Buyer) -> None:
        """Merge ``new`` into ``existing`` field by field.

        Gaps are filled from ``new``. Where both records hold a value the one
        backed by the higher-priority source wins (a sourced value beats an
        unsourced one; equal priority goes to the fresher entry, then to
        ``existing``). Unsourced values on both sides are kept, with lists
        unioned. Provenance follows the values: each record's entries keep
        only the fields whose values survived from that record.
        """
        ours, theirs = existing.extraction_sources, new.extraction_sources
        taken: set[str] = set()

        for name in Buyer.model_fields:
            if name in _IDENTITY_FIELDS:
                continue
            current, incoming = getattr(existing, name), getattr(new, name)
            if _is_empty(incoming):
                continue
            if _is_empty(current) or self._outranks(theirs, ours, name):
                setattr(existing, name, incoming)
                taken.add(name)
            elif (
                isinstance(current, list) and isinstance(incoming, list)
                and effective_source(ours, name) is None
                and effective_source(theirs, name) is None
            ):
                merged = current + [v for v in incoming if v not in current]
                if merged != current:
                    setattr(existing, name, merged)

        existing.extraction_sources = (
            restrict_entries(ours, lambda f: f not in taken)
            + restrict_entries(theirs, lambda f: f in taken)
        )
        logger.debug(f"Merged duplicate buyer {new.display_name} into {existing.display_name}")

    @staticmethod
    def _outranks(challenger: list[ExtractionSource], holder: list[ExtractionSource], field: str) -> bool:
        """Whether the challenger's sourced value for ``field`` beats the holder's."""
        theirs = effective_source(challenger, field)
        if theirs is None:
            return False
        ours = effective_source(holder, field)
        if ours is None:
            return True
        return (field_priority(challenger, field), theirs.timestamp) > (
            field_priority(holder, field), ours.timestamp,
        )
