"""
Health Check Router - Curation Critique Service
curation/routers/health.py

Reports the evaluator in use, the history store backend and a live Redis
check when Redis is configured.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Dict
from datetime import datetime, timezone

from curation.config import settings
from curation.core.dependencies import get_curation_service
from curation.services.curation_service import CurationService

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    evaluator: str
    store_backend: str
    dependencies: Dict[str, str]
    cache: Dict[str, int]


def check_redis(service: CurationService) -> str:
    """Check the Redis connection behind the history store."""
    if not settings.REDIS_URL:
        return "not configured"
    if service.store.backend != "redis":
        return "unhealthy: unreachable (using in-memory store)"
    return "healthy" if service.store.ping() else "unhealthy: ping failed"


@router.get("/health", response_model=HealthResponse, summary="Service health")
async def health_check(service: CurationService = Depends(get_curation_service)):
    redis_status = check_redis(service)
    overall = "degraded" if redis_status.startswith("unhealthy") else "healthy"
    return HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc),
        version=settings.APP_VERSION,
        evaluator=service.evaluator.source.value,
        store_backend=service.store.backend,
        dependencies={"redis": redis_status},
        cache=service.cache.stats(),
    )
