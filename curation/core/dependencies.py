"""
Dependencies - Curation Critique Service
curation/core/dependencies.py

FastAPI dependency injection for the evaluator, cache, store and service.
Tests override these through app.dependency_overrides or cache_clear().
"""

from functools import lru_cache

from curation.config import get_settings
from curation.services.cache import BoundedCache
from curation.services.curation_service import CurationService
from curation.services.evaluator import VisionEvaluator, build_evaluator
from curation.services.store import KeyValueStore, get_store


@lru_cache()
def get_evaluator() -> VisionEvaluator:
    """Get cached evaluator strategy chosen from settings."""
    return build_evaluator(get_settings())


@lru_cache()
def get_evaluation_cache() -> BoundedCache:
    """Get cached in-process evaluation LRU."""
    return BoundedCache(get_settings().EVALUATION_CACHE_SIZE)


def get_history_store() -> KeyValueStore:
    """Redis-backed store when reachable, in-memory otherwise."""
    return get_store()


@lru_cache()
def get_curation_service() -> CurationService:
    """Get cached CurationService wired from settings."""
    return CurationService.from_settings(
        get_settings(),
        evaluator=get_evaluator(),
        cache=get_evaluation_cache(),
        store=get_history_store(),
    )


def reset_dependencies() -> None:
    """Drop every cached provider (tests, settings reloads)."""
    get_curation_service.cache_clear()
    get_evaluation_cache.cache_clear()
    get_evaluator.cache_clear()
