"""Persistence for trackers, buyers, deals and fit scores."""

import asyncio
import copy
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from buyer_universe.config import settings
from buyer_universe.enrich.dedupe import normalize_domain
from buyer_universe.enrich.sources import SourceLike, dump_entries, load_entries, merge_fields
from buyer_universe.errors import NotFoundError, ValidationError
from buyer_universe.models import Buyer, Deal, FitScore, ScoreRecord, ScoreStatus, Tracker
from buyer_universe.models.database import (
    DBBuyer,
    DBBuyerDealScore,
    DBCompany,
    DBDeal,
    DBTracker,
    get_session,
)
from buyer_universe.score import FitScorer
from buyer_universe.score.scorer import STATUS_ORDER

logger = logging.getLogger(__name__)

ENTITY_TYPES = {
    "tracker": (DBTracker, Tracker),
    "buyer": (DBBuyer, Buyer),
    "deal": (DBDeal, Deal),
}


class EntityCache:
    """Read-through cache of entity models keyed by (type, id).

    Every write path in the repository invalidates the keys it touches.
    Cached models are copied on the way in and out so callers cannot
    mutate cached state.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[float, Any]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, kind: str, entity_id: str) -> Optional[Any]:
        entry = self._entries.get((kind, entity_id))
        if entry is None:
            return None
        stored_at, value = entry
        if self.ttl_seconds and self._clock() - stored_at > self.ttl_seconds:
            del self._entries[(kind, entity_id)]
            return None
        return copy.deepcopy(value)

    def set(self, kind: str, entity_id: str, value: Any):
        self._entries[(kind, entity_id)] = (self._clock(), copy.deepcopy(value))

    def get_or_load(self, kind: str, entity_id: str, loader: Callable[[], Any]) -> Any:
        value = self.get(kind, entity_id)
        if value is not None:
            self.hits += 1
            return value
        self.misses += 1
        value = loader()
        self.set(kind, entity_id, value)
        return copy.deepcopy(value)

    def invalidate(self, kind: str, entity_id: str):
        self._entries.pop((kind, entity_id), None)

    def clear(self):
        self._entries.clear()

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._entries


@dataclass
class ExtractionResult:
    """Outcome of applying one ingestion payload to a buyer or deal."""

    entity: Any
    written: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _model_values(model, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """JSON-compatible column values for a pydantic model."""
    values = model.model_dump(mode="json", exclude={"extraction_sources", *exclude})
    if "extraction_sources" in type(model).model_fields:
        values["extraction_sources"] = dump_entries(model.extraction_sources)
    return values


def _row_to_model(row, model_cls):
    data = row.to_dict()
    if "extraction_sources" in data:
        data["extraction_sources"] = load_entries(data["extraction_sources"])
    return model_cls.model_validate(data)


class Repository:
    """CRUD and scoring workflows over the SQLAlchemy store."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        cache: Optional[EntityCache] = None,
        scorer: Optional[FitScorer] = None,
    ):
        self.session_factory = session_factory
        self.cache = cache if cache is not None else EntityCache()
        self.scorer = scorer or FitScorer()

    # Generic helpers

    def _load(self, kind: str, entity_id: str):
        row_cls, model_cls = ENTITY_TYPES[kind]

        def loader():
            with self.session_factory() as session:
                row = session.get(row_cls, entity_id)
                if row is None:
                    raise NotFoundError(kind.capitalize(), entity_id)
                return _row_to_model(row, model_cls)

        return self.cache.get_or_load(kind, entity_id, loader)

    def _require(self, session: Session, row_cls, kind: str, entity_id: Optional[str]):
        row = session.get(row_cls, entity_id) if entity_id else None
        if row is None:
            raise NotFoundError(kind.capitalize(), entity_id)
        return row

    # Trackers

    def create_tracker(self, tracker: Tracker) -> Tracker:
        with self.session_factory() as session:
            row = DBTracker(id=tracker.id) if tracker.id else DBTracker()
            row.update_from(tracker.model_dump(mode="json"))
            session.add(row)
            session.commit()
            created = _row_to_model(row, Tracker)

        logger.info(f"Created tracker {created.id} ({created.industry_name})")
        return created

    def get_tracker(self, tracker_id: str) -> Tracker:
        return self._load("tracker", tracker_id)

    def update_tracker(self, tracker: Tracker) -> Tracker:
        with self.session_factory() as session:
            row = self._require(session, DBTracker, "tracker", tracker.id)
            row.update_from(tracker.model_dump(mode="json"))
            session.commit()
            updated = _row_to_model(row, Tracker)

        self.cache.invalidate("tracker", tracker.id)
        return updated

    def list_trackers(self) -> list[Tracker]:
        with self.session_factory() as session:
            rows = session.query(DBTracker).order_by(DBTracker.created_at).all()
            return [_row_to_model(r, Tracker) for r in rows]

    def delete_tracker(self, tracker_id: str):
        """Delete a tracker with its buyers, deals and their scores."""
        with self.session_factory() as session:
            row = self._require(session, DBTracker, "tracker", tracker_id)
            buyer_ids = [b.id for b in row.buyers]
            deal_ids = [d.id for d in row.deals]
            session.delete(row)
            session.commit()

        self.cache.invalidate("tracker", tracker_id)
        for buyer_id in buyer_ids:
            self.cache.invalidate("buyer", buyer_id)
        for deal_id in deal_ids:
            self.cache.invalidate("deal", deal_id)
        logger.info(
            f"Deleted tracker {tracker_id} with {len(buyer_ids)} buyers and {len(deal_ids)} deals"
        )

    # Buyers

    def add_buyer(self, buyer: Buyer) -> Buyer:
        with self.session_factory() as session:
            self._require(session, DBTracker, "tracker", buyer.tracker_id)
            row = DBBuyer(id=buyer.id) if buyer.id else DBBuyer()
            row.update_from(_model_values(buyer))
            session.add(row)
            session.commit()
            return _row_to_model(row, Buyer)

    def add_buyers(self, buyers: Iterable[Buyer]) -> list[Buyer]:
        return [self.add_buyer(b) for b in buyers]

    def get_buyer(self, buyer_id: str) -> Buyer:
        return self._load("buyer", buyer_id)

    def list_buyers(self, tracker_id: str) -> list[Buyer]:
        with self.session_factory() as session:
            self._require(session, DBTracker, "tracker", tracker_id)
            rows = (
                session.query(DBBuyer)
                .filter_by(tracker_id=tracker_id)
                .order_by(DBBuyer.created_at)
                .all()
            )
            return [_row_to_model(r, Buyer) for r in rows]

    def update_buyer(self, buyer: Buyer) -> Buyer:
        with self.session_factory() as session:
            row = self._require(session, DBBuyer, "buyer", buyer.id)
            row.update_from(_model_values(buyer, exclude={"tracker_id"}))
            session.commit()
            updated = _row_to_model(row, Buyer)

        self.cache.invalidate("buyer", buyer.id)
        return updated

    def delete_buyer(self, buyer_id: str):
        with self.session_factory() as session:
            row = self._require(session, DBBuyer, "buyer", buyer_id)
            session.delete(row)
            session.commit()
        self.cache.invalidate("buyer", buyer_id)

    # Deals

    def add_deal(self, deal: Deal) -> Deal:
        """Store a deal, linking it to the company that owns its website domain."""
        with self.session_factory() as session:
            self._require(session, DBTracker, "tracker", deal.tracker_id)
            row = DBDeal(id=deal.id) if deal.id else DBDeal()
            row.update_from(_model_values(deal))

            company = self._find_or_create_company(session, deal)
            if company is not None:
                row.company_id = company.id

            session.add(row)
            session.commit()
            return _row_to_model(row, Deal)

    def _find_or_create_company(self, session: Session, deal: Deal) -> Optional[DBCompany]:
        domain = normalize_domain(deal.website)
        if not domain:
            return None

        company = session.query(DBCompany).filter_by(domain=domain).first()
        if company is None:
            company = DBCompany(domain=domain, name=deal.deal_name, website=deal.website)
            session.add(company)
            session.flush()
            logger.debug(f"Created company {company.id} for {domain}")
        return company

    def get_deal(self, deal_id: str) -> Deal:
        return self._load("deal", deal_id)

    def list_deals(self, tracker_id: str) -> list[Deal]:
        with self.session_factory() as session:
            self._require(session, DBTracker, "tracker", tracker_id)
            rows = (
                session.query(DBDeal)
                .filter_by(tracker_id=tracker_id)
                .order_by(DBDeal.created_at)
                .all()
            )
            return [_row_to_model(r, Deal) for r in rows]

    def update_deal(self, deal: Deal) -> Deal:
        with self.session_factory() as session:
            row = self._require(session, DBDeal, "deal", deal.id)
            row.update_from(_model_values(deal, exclude={"tracker_id", "company_id"}))
            company = self._find_or_create_company(session, deal)
            if company is not None:
                row.company_id = company.id
            session.commit()
            updated = _row_to_model(row, Deal)

        self.cache.invalidate("deal", deal.id)
        return updated

    def delete_deal(self, deal_id: str):
        with self.session_factory() as session:
            row = self._require(session, DBDeal, "deal", deal_id)
            session.delete(row)
            session.commit()
        self.cache.invalidate("deal", deal_id)

    def get_company_by_domain(self, website: str) -> Optional[dict]:
        domain = normalize_domain(website)
        if not domain:
            return None
        with self.session_factory() as session:
            company = session.query(DBCompany).filter_by(domain=domain).first()
            if company is None:
                return None
            return {
                "id": company.id,
                "domain": company.domain,
                "name": company.name,
                "website": company.website,
                "deal_ids": [d.id for d in company.deals],
            }

    # Extraction ingestion

    def apply_extraction(
        self,
        kind: str,
        entity_id: str,
        source: SourceLike,
        payload: dict[str, Any],
        timestamp: Optional[datetime] = None,
    ) -> ExtractionResult:
        """Merge an ingestion payload into a buyer or deal, respecting source priority."""
        if kind not in ("buyer", "deal"):
            raise ValidationError(f"Cannot apply extraction to {kind}", {"kind": kind})
        row_cls, model_cls = ENTITY_TYPES[kind]

        protected = {"id", "tracker_id", "company_id", "extraction_sources"}
        unknown = [k for k in payload if k not in model_cls.model_fields or k in protected]
        if unknown:
            logger.warning(f"Ignoring unknown {kind} fields from {source}: {', '.join(unknown)}")
        incoming = {k: v for k, v in payload.items() if k not in unknown}

        with self.session_factory() as session:
            row = self._require(session, row_cls, kind, entity_id)
            current = _row_to_model(row, model_cls)

            merged, entries, written, skipped = merge_fields(
                current.model_dump(exclude={"extraction_sources"}),
                incoming,
                current.extraction_sources,
                source,
                timestamp,
            )
            try:
                updated = model_cls.model_validate({**merged, "extraction_sources": entries})
            except PydanticValidationError as e:
                raise ValidationError(
                    f"Extraction payload for {kind} {entity_id} is invalid",
                    {"error": str(e)},
                ) from e

            row.update_from(_model_values(updated, exclude={"tracker_id", "company_id"}))
            session.commit()
            result = ExtractionResult(entity=_row_to_model(row, model_cls), written=written, skipped=skipped)

        self.cache.invalidate(kind, entity_id)
        logger.info(
            f"Applied {source} extraction to {kind} {entity_id}: "
            f"{len(written)} written, {len(skipped)} protected"
        )
        return result

    # Scores

    def upsert_score(self, result: FitScore, tracker_id: Optional[str] = None) -> ScoreRecord:
        """Insert or overwrite the score for a buyer/deal pair, keeping analyst flags."""
        with self.session_factory() as session:
            row = (
                session.query(DBBuyerDealScore)
                .filter_by(buyer_id=result.buyer_id, deal_id=result.deal_id)
                .first()
            )
            if row is None:
                row = DBBuyerDealScore(
                    buyer_id=result.buyer_id, deal_id=result.deal_id, passed=False, approved=False,
                )
                session.add(row)

            row.update_from(result.model_dump(mode="json", exclude={"buyer_id", "deal_id"}))
            row.tracker_id = tracker_id or row.tracker_id
            row.scored_at = datetime.now(timezone.utc)
            session.commit()
            return self._score_record(row)

    def _score_record(self, row: DBBuyerDealScore) -> ScoreRecord:
        return ScoreRecord.model_validate(row.to_dict())

    def get_score(self, buyer_id: str, deal_id: str) -> ScoreRecord:
        with self.session_factory() as session:
            row = (
                session.query(DBBuyerDealScore)
                .filter_by(buyer_id=buyer_id, deal_id=deal_id)
                .first()
            )
            if row is None:
                raise NotFoundError("Score", f"{buyer_id}/{deal_id}")
            return self._score_record(row)

    def list_scores(self, deal_id: str) -> list[ScoreRecord]:
        with self.session_factory() as session:
            self._require(session, DBDeal, "deal", deal_id)
            rows = (
                session.query(DBBuyerDealScore)
                .filter_by(deal_id=deal_id)
                .order_by(DBBuyerDealScore.rank)
                .all()
            )
            return [self._score_record(r) for r in rows]

    def set_score_flags(
        self,
        buyer_id: str,
        deal_id: str,
        interested: Optional[bool] = None,
        passed: Optional[bool] = None,
        pass_reason: Optional[str] = None,
        approved: Optional[bool] = None,
    ) -> ScoreRecord:
        """Record analyst follow-up on a scored pair. None leaves a flag unchanged."""
        with self.session_factory() as session:
            row = (
                session.query(DBBuyerDealScore)
                .filter_by(buyer_id=buyer_id, deal_id=deal_id)
                .first()
            )
            if row is None:
                raise NotFoundError("Score", f"{buyer_id}/{deal_id}")

            if interested is not None:
                row.interested = interested
            if passed is not None:
                row.passed = passed
                row.pass_reason = pass_reason if passed else None
            if approved is not None:
                row.approved = approved
            session.commit()
            return self._score_record(row)

    def score_deal(self, deal_id: str, buyer_ids: Optional[list[str]] = None) -> list[ScoreRecord]:
        """Score buyers against a deal, persist every result and return them ranked."""
        deal = self.get_deal(deal_id)
        tracker = self.get_tracker(deal.tracker_id)

        if buyer_ids is None:
            buyers = self.list_buyers(tracker.id)
        else:
            buyers = [self.get_buyer(b) for b in buyer_ids]
            foreign = [b.id for b in buyers if b.tracker_id != tracker.id]
            if foreign:
                raise ValidationError(
                    "Buyers belong to a different tracker than the deal",
                    {"deal_id": deal_id, "buyer_ids": foreign},
                )

        results = self.scorer.score_and_rank(buyers, deal, tracker)
        records = [self.upsert_score(r, tracker.id) for r in results]

        if buyer_ids is not None:
            # Subset ranks start at 1; fold them into the deal's full ordering
            ranks = self._rerank(deal_id)
            records = [r.model_copy(update={"rank": ranks[r.buyer_id]}) for r in records]

        return sorted(records, key=lambda r: r.rank or 0)

    def _rerank(self, deal_id: str) -> dict[str, int]:
        """Renumber every stored score for a deal. Returns rank by buyer id."""
        with self.session_factory() as session:
            rows = session.query(DBBuyerDealScore).filter_by(deal_id=deal_id).all()
            rows.sort(key=lambda r: (
                STATUS_ORDER[ScoreStatus(r.status)], -(r.composite or 0), r.rank or 0, r.id,
            ))
            for i, row in enumerate(rows):
                row.rank = i + 1
            session.commit()
            return {row.buyer_id: row.rank for row in rows}

    async def rescore_tracker(self, tracker_id: str, delay: Optional[float] = None) -> dict[str, int]:
        """Rescore every deal in a tracker one at a time.

        Waits ``delay`` seconds (default ``settings.bulk_delay_seconds``)
        between deals. Returns the number of buyers scored per deal.
        """
        delay = settings.bulk_delay_seconds if delay is None else delay
        deals = self.list_deals(tracker_id)
        scored: dict[str, int] = {}

        for i, deal in enumerate(deals):
            if i > 0 and delay > 0:
                await asyncio.sleep(delay)
            scored[deal.id] = len(self.score_deal(deal.id))
            logger.info(f"Rescored deal {i + 1}/{len(deals)} ({deal.id}) in tracker {tracker_id}")

        return scored
