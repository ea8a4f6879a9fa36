"""
Curator Personas API Router
curation/routers/curators.py

Endpoints:
  GET /api/v1/curators               - List built-in curator personas
  GET /api/v1/curators/{curator_id}  - Weights, thresholds and penalties for one curator
"""

from typing import List

from fastapi import APIRouter, Depends

from curation.config import settings
from curation.core.dependencies import get_curation_service
from curation.models.evaluation import CuratorDetail, CuratorSummary, ErrorResponse
from curation.scoring.personas import list_personas
from curation.services.curation_service import CurationService

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/curators", tags=["Curators"])


@router.get("", response_model=List[CuratorSummary], summary="List curator personas")
async def list_curators():
    return [persona.summary() for persona in list_personas()]


@router.get(
    "/{curator_id}",
    response_model=CuratorDetail,
    summary="Get curator persona detail",
    responses={404: {"model": ErrorResponse, "description": "Unknown curator"}},
)
async def get_curator(
    curator_id: str,
    service: CurationService = Depends(get_curation_service),
):
    # Resolved through the service so the response shows any threshold overrides
    return service.resolve_persona(curator_id).detail()
