"""Ingestion helpers: source reconciliation, deduplication and criteria parsing."""

from .dedupe import BuyerDeduplicator, normalize_domain
from .criteria_parser import CriteriaParser, ParsedCriteria
from .sources import (
    SOURCE_PRIORITY,
    append_entry,
    can_overwrite,
    effective_source,
    merge_fields,
    protected_fields,
)

__all__ = [
    "BuyerDeduplicator",
    "normalize_domain",
    "CriteriaParser",
    "ParsedCriteria",
    "SOURCE_PRIORITY",
    "append_entry",
    "can_overwrite",
    "effective_source",
    "merge_fields",
    "protected_fields",
]
