"""API routes for the Buyer Universe service."""

import io
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from buyer_universe.enrich.criteria_parser import CriteriaParser
from buyer_universe.errors import LLMUnavailableError
from buyer_universe.export import write_scores_csv
from buyer_universe.models import Buyer, Deal, ExtractionSourceType, ScoreRecord, Tracker
from buyer_universe.repository import Repository
from buyer_universe.score import CriteriaValidation, validate_criteria

logger = logging.getLogger(__name__)

router = APIRouter()

_repository: Optional[Repository] = None


def get_repository() -> Repository:
    global _repository
    if _repository is None:
        _repository = Repository()
    return _repository


def get_criteria_parser() -> CriteriaParser:
    return CriteriaParser()


class ExtractionRequest(BaseModel):
    """Fields delivered by one ingestion channel."""
    source: ExtractionSourceType
    fields: dict[str, Any]
    timestamp: Optional[datetime] = None


class ExtractionResponse(BaseModel):
    written: list[str]
    skipped: list[str]
    entity: dict[str, Any]


class ScoreRequest(BaseModel):
    buyer_ids: Optional[list[str]] = None


class ScoreFlagsRequest(BaseModel):
    interested: Optional[bool] = None
    passed: Optional[bool] = None
    pass_reason: Optional[str] = None
    approved: Optional[bool] = None


class RescoreResponse(BaseModel):
    tracker_id: str
    deals: int
    status: str
    message: str


# Trackers

@router.post("/trackers", response_model=Tracker)
async def create_tracker(tracker: Tracker, repo: Repository = Depends(get_repository)):
    return repo.create_tracker(tracker)


@router.get("/trackers", response_model=list[Tracker])
async def list_trackers(repo: Repository = Depends(get_repository)):
    return repo.list_trackers()


@router.get("/trackers/{tracker_id}", response_model=Tracker)
async def get_tracker(tracker_id: str, repo: Repository = Depends(get_repository)):
    return repo.get_tracker(tracker_id)


@router.put("/trackers/{tracker_id}", response_model=Tracker)
async def update_tracker(tracker_id: str, tracker: Tracker, repo: Repository = Depends(get_repository)):
    return repo.update_tracker(tracker.model_copy(update={"id": tracker_id}))


@router.delete("/trackers/{tracker_id}")
async def delete_tracker(tracker_id: str, repo: Repository = Depends(get_repository)):
    repo.delete_tracker(tracker_id)
    return {"deleted": tracker_id}


@router.get("/trackers/{tracker_id}/validation", response_model=CriteriaValidation)
async def validate_tracker_criteria(tracker_id: str, repo: Repository = Depends(get_repository)):
    """Criteria validation report: errors, warnings, placeholders and completeness."""
    return validate_criteria(repo.get_tracker(tracker_id))


@router.post("/trackers/{tracker_id}/parse-criteria", response_model=Tracker)
async def parse_tracker_criteria(
    tracker_id: str,
    repo: Repository = Depends(get_repository),
    parser: CriteriaParser = Depends(get_criteria_parser),
):
    """Parse the tracker's free-text criteria into structured criteria and save them."""
    tracker = repo.get_tracker(tracker_id)
    if not parser.available:
        raise LLMUnavailableError("Criteria parsing requires ANTHROPIC_API_KEY")

    parsed = await parser.parse(tracker)
    if parsed is None:
        raise LLMUnavailableError("Criteria could not be parsed", {"tracker_id": tracker_id})
    return repo.update_tracker(parsed.apply_to(tracker))


@router.post("/trackers/{tracker_id}/rescore", response_model=RescoreResponse)
async def rescore_tracker(
    tracker_id: str,
    background_tasks: BackgroundTasks,
    repo: Repository = Depends(get_repository),
):
    """Rescore every deal in the tracker in the background."""
    deals = repo.list_deals(tracker_id)
    background_tasks.add_task(repo.rescore_tracker, tracker_id)
    logger.info(f"Queued rescoring of {len(deals)} deals for tracker {tracker_id}")
    return RescoreResponse(
        tracker_id=tracker_id,
        deals=len(deals),
        status="pending",
        message="Rescoring started. Use /deals/{deal_id}/scores to read results.",
    )


# Buyers

@router.post("/trackers/{tracker_id}/buyers", response_model=Buyer)
async def add_buyer(tracker_id: str, buyer: Buyer, repo: Repository = Depends(get_repository)):
    return repo.add_buyer(buyer.model_copy(update={"tracker_id": tracker_id}))


@router.get("/trackers/{tracker_id}/buyers", response_model=list[Buyer])
async def list_buyers(tracker_id: str, repo: Repository = Depends(get_repository)):
    return repo.list_buyers(tracker_id)


@router.get("/buyers/{buyer_id}", response_model=Buyer)
async def get_buyer(buyer_id: str, repo: Repository = Depends(get_repository)):
    return repo.get_buyer(buyer_id)


@router.delete("/buyers/{buyer_id}")
async def delete_buyer(buyer_id: str, repo: Repository = Depends(get_repository)):
    repo.delete_buyer(buyer_id)
    return {"deleted": buyer_id}


@router.post("/buyers/{buyer_id}/extractions", response_model=ExtractionResponse)
async def ingest_buyer_extraction(
    buyer_id: str,
    request: ExtractionRequest,
    repo: Repository = Depends(get_repository),
):
    """Apply extracted buyer fields; fields held by a higher-priority source are skipped."""
    result = repo.apply_extraction("buyer", buyer_id, request.source, request.fields, request.timestamp)
    return ExtractionResponse(
        written=result.written,
        skipped=result.skipped,
        entity=result.entity.model_dump(mode="json"),
    )


# Deals

@router.post("/trackers/{tracker_id}/deals", response_model=Deal)
async def add_deal(tracker_id: str, deal: Deal, repo: Repository = Depends(get_repository)):
    return repo.add_deal(deal.model_copy(update={"tracker_id": tracker_id}))


@router.get("/trackers/{tracker_id}/deals", response_model=list[Deal])
async def list_deals(tracker_id: str, repo: Repository = Depends(get_repository)):
    return repo.list_deals(tracker_id)


@router.get("/deals/{deal_id}", response_model=Deal)
async def get_deal(deal_id: str, repo: Repository = Depends(get_repository)):
    return repo.get_deal(deal_id)


@router.delete("/deals/{deal_id}")
async def delete_deal(deal_id: str, repo: Repository = Depends(get_repository)):
    repo.delete_deal(deal_id)
    return {"deleted": deal_id}


@router.post("/deals/{deal_id}/extractions", response_model=ExtractionResponse)
async def ingest_deal_extraction(
    deal_id: str,
    request: ExtractionRequest,
    repo: Repository = Depends(get_repository),
):
    """Apply extracted deal fields; fields held by a higher-priority source are skipped."""
    result = repo.apply_extraction("deal", deal_id, request.source, request.fields, request.timestamp)
    return ExtractionResponse(
        written=result.written,
        skipped=result.skipped,
        entity=result.entity.model_dump(mode="json"),
    )


# Scores

@router.post("/deals/{deal_id}/score", response_model=list[ScoreRecord])
async def score_deal(
    deal_id: str,
    request: Optional[ScoreRequest] = None,
    repo: Repository = Depends(get_repository),
):
    """Score the tracker's buyers (or the given subset) against a deal."""
    return repo.score_deal(deal_id, request.buyer_ids if request else None)


@router.get("/deals/{deal_id}/scores", response_model=list[ScoreRecord])
async def list_scores(deal_id: str, repo: Repository = Depends(get_repository)):
    return repo.list_scores(deal_id)


@router.patch("/deals/{deal_id}/scores/{buyer_id}", response_model=ScoreRecord)
async def update_score_flags(
    deal_id: str,
    buyer_id: str,
    request: ScoreFlagsRequest,
    repo: Repository = Depends(get_repository),
):
    return repo.set_score_flags(
        buyer_id,
        deal_id,
        interested=request.interested,
        passed=request.passed,
        pass_reason=request.pass_reason,
        approved=request.approved,
    )


@router.get("/deals/{deal_id}/scores/export")
async def export_scores(deal_id: str, repo: Repository = Depends(get_repository)):
    """Export a deal's buyer scores as CSV."""
    scores = repo.list_scores(deal_id)

    output = io.StringIO()
    write_scores_csv(output, scores)

    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=buyer_scores_{deal_id[:8]}.csv"},
    )

