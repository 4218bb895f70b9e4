"""LLM-based parsing of free-text tracker criteria using Claude API."""

import asyncio
import json
import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from buyer_universe.config import settings
from buyer_universe.models import (
    BuyerTypeProfile,
    BuyerTypesCriteria,
    GeographyCriteria,
    GeographyStrictness,
    ServiceCriteria,
    SizeCriteria,
    SizeImportance,
    Tracker,
)
from buyer_universe.score.readiness import detect_placeholders

logger = logging.getLogger(__name__)


class ParsedCriteria(BaseModel):
    """Structured criteria recovered from a tracker's free text."""

    size_criteria: Optional[SizeCriteria] = None
    service_criteria: Optional[ServiceCriteria] = None
    geography_criteria: Optional[GeographyCriteria] = None
    buyer_types_criteria: Optional[BuyerTypesCriteria] = None
    geography_strictness: Optional[GeographyStrictness] = None
    size_importance: Optional[SizeImportance] = None

    def apply_to(self, tracker: Tracker) -> Tracker:
        """Copy of ``tracker`` with every parsed section that was found."""
        updates = {
            name: getattr(self, name)
            for name in type(self).model_fields
            if getattr(self, name) is not None
        }
        return tracker.model_copy(update=updates)


def parse_money(value: Any) -> Optional[float]:
    """Dollar amount in millions from values like "$2.5M", "500K", 2500000 or "2.5".

    Bare numbers of 1,000 or more are read as whole dollars.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number / 1_000_000 if number >= 1000 else number

    text = str(value).strip()
    if not text or detect_placeholders(text):
        return None

    match = re.search(r"(-?\d[\d,]*\.?\d*)\s*([kmb]|mm|million|thousand|billion)?\b", text, re.I)
    if not match:
        return None
    number = float(match.group(1).replace(",", ""))
    unit = (match.group(2) or "").lower()

    if unit in ("k", "thousand"):
        return number / 1000
    if unit in ("m", "mm", "million"):
        return number
    if unit in ("b", "billion"):
        return number * 1000
    return number / 1_000_000 if number >= 1000 else number


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    match = re.search(r"\d+", str(value))
    return int(match.group(0)) if match else None


def _clean_list(values: Any) -> list[str]:
    """Drop blanks and template placeholders from a list of strings."""
    if not isinstance(values, list):
        return []
    cleaned = []
    for value in values:
        text = str(value).strip() if value is not None else ""
        if text and not detect_placeholders(text):
            cleaned.append(text)
    return cleaned


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text or detect_placeholders(text):
        return None
    return text


class CriteriaParser:
    """Turn a tracker's free-text criteria into structured criteria with Claude."""

    PARSE_PROMPT = """You are an M&A analyst. Parse the buyer fit criteria for the {industry} vertical into structured data.

Size criteria:
---
{size}
---

Service criteria:
---
{service}
---

Geography criteria:
---
{geography}
---

Buyer types:
---
{buyer_types}
---

Return the following JSON:
{{
    "size_criteria": {{
        "min_revenue": "dollar amount or null",
        "max_revenue": "dollar amount or null",
        "min_ebitda": "dollar amount (not a multiple) or null",
        "max_ebitda": "dollar amount (not a multiple) or null",
        "min_locations": number or null,
        "max_locations": number or null,
        "min_revenue_per_location": "dollar amount or null"
    }},
    "service_criteria": {{
        "primary_focus": ["main services that define the vertical"],
        "required_services": [],
        "preferred_services": [],
        "excluded_services": []
    }},
    "geography_criteria": {{
        "required_regions": [],
        "preferred_regions": [],
        "excluded_regions": [],
        "coverage_type": "national|regional|local or null"
    }},
    "buyer_types": [
        {{
            "type_name": "segment name",
            "priority_order": 1,
            "description": "short description",
            "min_locations": number or null,
            "max_locations": number or null,
            "min_revenue_per_location": "dollar amount or null",
            "min_ebitda": "dollar amount or null",
            "max_ebitda": "dollar amount or null",
            "geographic_scope": "national|regional|local or null"
        }}
    ],
    "geography_strictness": "strict|moderate|relaxed or null",
    "size_importance": "high|medium|low or null"
}}

Never output placeholders such as [X], $X or TBD; use null when a value is unknown.
"3x-12x EBITDA" is a valuation multiple, not an EBITDA amount; leave it out.
Return only valid JSON, no other text."""

    def __init__(self, api_key: Optional[str] = None, client: Any = None):
        self.api_key = api_key or settings.anthropic_api_key
        self._client = client

    @property
    def available(self) -> bool:
        return self._client is not None or bool(self.api_key)

    @property
    def client(self):
        """Lazy-load Anthropic client."""
        if self._client is None:
            if not self.api_key:
                raise ValueError("ANTHROPIC_API_KEY not configured")
            import anthropic
            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    async def parse(self, tracker: Tracker) -> Optional[ParsedCriteria]:
        """Parse the tracker's criteria text. None when unavailable or unparseable."""
        if not self.available:
            logger.warning("Criteria parsing unavailable: ANTHROPIC_API_KEY not set")
            return None

        texts = [tracker.size_criteria_text, tracker.service_criteria_text,
                 tracker.geography_criteria_text, tracker.buyer_types_text]
        if not any((t or "").strip() for t in texts):
            logger.info(f"Tracker {tracker.id} has no criteria text to parse")
            return None

        placeholders = [p for t in texts for p in detect_placeholders(t)]
        if placeholders:
            logger.warning(f"Criteria text for tracker {tracker.id} contains placeholders: {placeholders[:5]}")

        limit = settings.llm_max_input_chars // 4
        prompt = self.PARSE_PROMPT.format(
            industry=tracker.industry_name or "unspecified",
            size=(tracker.size_criteria_text or "(none)")[:limit],
            service=(tracker.service_criteria_text or "(none)")[:limit],
            geography=(tracker.geography_criteria_text or "(none)")[:limit],
            buyer_types=(tracker.buyer_types_text or "(none)")[:limit],
        )

        raw = await asyncio.to_thread(self._call_api, prompt)
        if raw is None:
            return None
        return self.to_criteria(raw)

    def _call_api(self, prompt: str) -> Optional[dict]:
        """Call Claude API synchronously."""
        try:
            response = self.client.messages.create(
                model=settings.llm_model,
                max_tokens=settings.llm_max_tokens,
                messages=[
                    {"role": "user", "content": prompt}
                ],
            )

            # Extract text response
            text = response.content[0].text

            # Handle potential markdown code blocks
            if "```json" in text:
                text = text.split("```json")[1].split("```")[0]
            elif "```" in text:
                text = text.split("```")[1].split("```")[0]

            data = json.loads(text.strip())
            return data if isinstance(data, dict) else None

        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse LLM response as JSON: {e}")
            return None
        except Exception as e:
            logger.error(f"Claude API call failed: {e}")
            return None

    def to_criteria(self, raw: dict) -> Optional[ParsedCriteria]:
        """Coerce a raw JSON response into criteria models, nulling placeholders."""
        size = raw.get("size_criteria") or {}
        service = raw.get("service_criteria") or {}
        geography = raw.get("geography_criteria") or {}
        buyer_types = raw.get("buyer_types")
        if buyer_types is None:
            buyer_types = (raw.get("buyer_types_criteria") or {}).get("buyer_types", [])

        try:
            parsed = ParsedCriteria(
                size_criteria=SizeCriteria(
                    min_revenue=parse_money(size.get("min_revenue")),
                    max_revenue=parse_money(size.get("max_revenue")),
                    min_ebitda=parse_money(size.get("min_ebitda")),
                    max_ebitda=parse_money(size.get("max_ebitda")),
                    min_locations=_parse_int(size.get("min_locations")),
                    max_locations=_parse_int(size.get("max_locations")),
                    min_revenue_per_location=parse_money(size.get("min_revenue_per_location")),
                ),
                service_criteria=ServiceCriteria(
                    primary_focus=_clean_list(service.get("primary_focus")),
                    required_services=_clean_list(service.get("required_services")),
                    preferred_services=_clean_list(service.get("preferred_services")),
                    excluded_services=_clean_list(service.get("excluded_services")),
                ),
                geography_criteria=GeographyCriteria(
                    required_regions=_clean_list(geography.get("required_regions")),
                    preferred_regions=_clean_list(geography.get("preferred_regions")),
                    excluded_regions=_clean_list(geography.get("excluded_regions")),
                    coverage_type=_clean_text(geography.get("coverage_type")),
                ),
                buyer_types_criteria=BuyerTypesCriteria(buyer_types=[
                    BuyerTypeProfile(
                        type_name=_clean_text(bt.get("type_name")) or f"Buyer type {i + 1}",
                        priority_order=_parse_int(bt.get("priority_order")) or i + 1,
                        description=_clean_text(bt.get("description")),
                        min_locations=_parse_int(bt.get("min_locations")),
                        max_locations=_parse_int(bt.get("max_locations")),
                        min_revenue_per_location=parse_money(bt.get("min_revenue_per_location")),
                        min_ebitda=parse_money(bt.get("min_ebitda")),
                        max_ebitda=parse_money(bt.get("max_ebitda")),
                        geographic_scope=_clean_text(bt.get("geographic_scope")),
                    )
                    for i, bt in enumerate(buyer_types or [])
                    if isinstance(bt, dict)
                ]),
                geography_strictness=self._enum(GeographyStrictness, raw.get("geography_strictness")),
                size_importance=self._enum(SizeImportance, raw.get("size_importance")),
            )
        except (AttributeError, PydanticValidationError) as e:
            logger.warning(f"LLM criteria response did not match the expected shape: {e}")
            return None

        # Drop sections that came back empty
        if not parsed.size_criteria.has_thresholds():
            parsed.size_criteria = None
        if parsed.service_criteria.is_empty():
            parsed.service_criteria = None
        if parsed.geography_criteria.is_empty():
            parsed.geography_criteria = None
        if not parsed.buyer_types_criteria.buyer_types:
            parsed.buyer_types_criteria = None
        return parsed

    @staticmethod
    def _enum(enum_cls, value):
        try:
            return enum_cls(str(value).strip().lower()) if value else None
        except ValueError:
            return None
