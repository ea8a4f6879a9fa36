"""
Evaluation History API Router
curation/routers/evaluations.py

Endpoints:
  GET /api/v1/evaluations                          - Recent evaluations, newest first
  GET /api/v1/evaluations/{curator_id}/{item_id}   - One stored evaluation
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from curation.config import settings
from curation.core.dependencies import get_curation_service
from curation.models.evaluation import CurationItemResponse, ErrorResponse, HistoryResponse
from curation.services.curation_service import CurationService

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/evaluations", tags=["Evaluations"])


@router.get("", response_model=HistoryResponse, summary="List evaluation history")
async def list_evaluations(
    curator_id: Optional[str] = Query(default=None, max_length=50),
    limit: int = Query(default=50, ge=1, le=500),
    service: CurationService = Depends(get_curation_service),
):
    items = service.history(curator_id=curator_id, limit=limit)
    return {"items": items, "count": len(items), "curator_id": curator_id}


@router.get(
    "/{curator_id}/{item_id}",
    response_model=CurationItemResponse,
    summary="Get one stored evaluation",
    responses={404: {"model": ErrorResponse, "description": "Evaluation not found"}},
)
async def get_evaluation(
    curator_id: str,
    item_id: str,
    service: CurationService = Depends(get_curation_service),
):
    return service.get_evaluation(curator_id, item_id)
