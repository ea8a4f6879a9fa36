"""
Direct Scoring API Router
curation/routers/scoring.py

Endpoints:
  POST /api/v1/scoring/score - Score caller-supplied raw dimension scores (no evaluator)
"""

from fastapi import APIRouter, Depends

from curation.config import settings
from curation.core.dependencies import get_curation_service
from curation.models.evaluation import ErrorResponse, ScoreRequest, ScoreResponse
from curation.services.curation_service import CurationService

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/scoring", tags=["Scoring"])


@router.post(
    "/score",
    response_model=ScoreResponse,
    summary="Score raw score sets",
    description="""
    Runs the weighted scorer over raw per-dimension scores for a curator.
    Optionally z-score normalizes the batch (`normalize`) and runs the
    pairwise playoff (`rank`). Scores outside [0, 100] answer 422.
    """,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown curator"},
        422: {"model": ErrorResponse, "description": "Invalid score or flag"},
    },
)
async def score_items(
    body: ScoreRequest,
    service: CurationService = Depends(get_curation_service),
):
    items = [entry.model_dump() for entry in body.items]
    return service.score_raw_items(
        body.curator_id,
        items,
        normalize=body.normalize,
        rank=body.rank,
        top_n=body.top_n,
    )
