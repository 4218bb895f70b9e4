"""Extraction-source tracking.

Each buyer or deal carries an append-only list of ``{source, timestamp,
fields}`` entries recording which ingestion channel wrote which fields.
Channels are ranked; a channel may not overwrite a field that a
higher-ranked channel has supplied.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from buyer_universe.models import ExtractionSource, ExtractionSourceType

logger = logging.getLogger(__name__)

SourceLike = Union[ExtractionSourceType, str]

# Higher = more authoritative
SOURCE_PRIORITY: dict[ExtractionSourceType, int] = {
    ExtractionSourceType.TRANSCRIPT: 100,
    ExtractionSourceType.NOTES: 80,
    ExtractionSourceType.WEBSITE: 60,
    ExtractionSourceType.CSV: 40,
    ExtractionSourceType.MANUAL: 20,
}


def priority(source: SourceLike) -> int:
    return SOURCE_PRIORITY[ExtractionSourceType(source)]


def effective_source(
    entries: Optional[Iterable[ExtractionSource]],
    field: str,
) -> Optional[ExtractionSource]:
    """Most recent entry naming ``field``; on equal timestamps the last listed wins."""
    latest = None
    for entry in entries or []:
        if field not in entry.fields:
            continue
        if latest is None or entry.timestamp >= latest.timestamp:
            latest = entry
    return latest


def field_priority(entries: Optional[Iterable[ExtractionSource]], field: str) -> int:
    """Highest source priority among entries naming ``field``; 0 when untracked."""
    ranks = [SOURCE_PRIORITY[e.source] for e in entries or [] if field in e.fields]
    return max(ranks, default=0)


def can_overwrite(
    entries: Optional[Iterable[ExtractionSource]],
    field: str,
    candidate: SourceLike,
) -> bool:
    """False iff some entry naming ``field`` outranks ``candidate``.

    Equal priority may overwrite, so fresher data wins among equal-trust
    channels. For any history written through this check the highest-ranked
    entry is also the effective one.
    """
    return priority(candidate) >= field_priority(entries, field)


def protected_fields(
    entries: Optional[Iterable[ExtractionSource]],
    candidate: SourceLike,
) -> list[str]:
    """Fields ``candidate`` must not write, in first-seen order."""
    entries = list(entries or [])
    seen: list[str] = []
    for entry in entries:
        for field in entry.fields:
            if field not in seen:
                seen.append(field)
    return [f for f in seen if not can_overwrite(entries, f, candidate)]


def append_entry(
    entries: Optional[Iterable[ExtractionSource]],
    source: SourceLike,
    fields: Iterable[str],
    timestamp: Optional[datetime] = None,
) -> list[ExtractionSource]:
    """Return a new list with one entry appended. Prior entries are untouched."""
    result = list(entries or [])
    fields = list(dict.fromkeys(fields))
    if not fields:
        return result

    result.append(ExtractionSource(
        source=ExtractionSourceType(source),
        timestamp=timestamp or datetime.now(timezone.utc),
        fields=fields,
    ))
    return result


def merge_fields(
    current: dict[str, Any],
    incoming: dict[str, Any],
    entries: Optional[Iterable[ExtractionSource]],
    source: SourceLike,
    timestamp: Optional[datetime] = None,
) -> tuple[dict[str, Any], list[ExtractionSource], list[str], list[str]]:
    """Apply an ingestion payload on top of ``current``.

    Empty incoming values are ignored. Fields protected by a higher-ranked
    source are skipped. Returns the merged values, the new entry list and
    the names of the written and skipped fields.
    """
    entries = list(entries or [])
    merged = dict(current)
    written: list[str] = []
    skipped: list[str] = []

    for field, value in incoming.items():
        if value is None or value == "" or value == []:
            continue
        if not can_overwrite(entries, field, source):
            skipped.append(field)
            continue
        merged[field] = value
        written.append(field)

    if skipped:
        logger.info(
            f"Skipped {len(skipped)} protected field(s) from {ExtractionSourceType(source).value}: "
            f"{', '.join(skipped)}"
        )

    return merged, append_entry(entries, source, written, timestamp), written, skipped


def load_entries(raw: Any) -> list[ExtractionSource]:
    """Parse a persisted entry list, dropping malformed items."""
    if not isinstance(raw, list):
        return []

    entries = []
    for item in raw:
        try:
            entries.append(
                item if isinstance(item, ExtractionSource) else ExtractionSource.model_validate(item)
            )
        except PydanticValidationError as e:
            logger.warning(f"Dropping malformed extraction source entry {item!r}: {e}")
    return entries


def dump_entries(entries: Iterable[ExtractionSource]) -> list[dict]:
    return [e.model_dump(mode="json") for e in entries]


def restrict_entries(
    entries: Optional[Iterable[ExtractionSource]],
    keep: Callable[[str], bool],
) -> list[ExtractionSource]:
    """Copies of ``entries`` naming only the fields ``keep`` accepts.

    Entries left with no fields are dropped. Order and timestamps are kept.
    """
    result = []
    for entry in entries or []:
        fields = [f for f in entry.fields if keep(f)]
        if fields:
            result.append(entry.model_copy(update={"fields": fields}))
    return result
