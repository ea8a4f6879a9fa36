# tests/conftest.py

"""
Pytest Fixtures - Shared registries, items, images and the API client.

Environment is pinned before the app is imported so the suite never calls the
real vision API or a real Redis.
"""

import base64
import os

os.environ["EVALUATOR_MODE"] = "synthetic"
os.environ["SYNTHETIC_SEED"] = "42"
os.environ.pop("ANTHROPIC_API_KEY", None)
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient

from curation.main import app
from curation.core.dependencies import get_curation_service
from curation.scoring.registry import Dimension, create_registry
from curation.scoring.scorer import PenaltyTable, RawScoreSet, VerdictThresholds, score_item
from curation.services.cache import BoundedCache
from curation.services.curation_service import CurationService
from curation.services.evaluator import SyntheticEvaluator
from curation.services.store import InMemoryStore
from curation.shutdown import clear_shutdown


# =============================================================================
# SCORING FIXTURES
# =============================================================================

@pytest.fixture
def ab_registry():
    """Two-dimension registry {A: 60, B: 40}."""
    return create_registry([Dimension("A", 60), Dimension("B", 40)])


@pytest.fixture
def penalties():
    return PenaltyTable(
        penalties={"artifacting": -10.0, "derivative": -5.0},
        bonuses={"nina_pick": 5.0},
    )


@pytest.fixture
def no_penalties():
    return PenaltyTable()


@pytest.fixture
def open_thresholds():
    """Everything scores INCLUDE, so no item is dropped from a playoff."""
    return VerdictThresholds(include_min=0.0, maybe_min=0.0)


@pytest.fixture
def make_item(ab_registry, no_penalties):
    """Factory: score an A/B item with the given raw scores."""
    def _make(a, b, item_id=None, flags=(), thresholds=None):
        return score_item(
            ab_registry,
            RawScoreSet(scores={"A": a, "B": b}, flags=tuple(flags)),
            no_penalties,
            thresholds or VerdictThresholds(),
            item_id=item_id,
        )
    return _make


# =============================================================================
# IMAGE FIXTURES
# =============================================================================

def make_image(seed: int = 0, media_type: str = "image/png") -> str:
    """A small data URL whose bytes differ per seed."""
    body = b"\x89PNG\r\n\x1a\n" + bytes((seed + i) % 256 for i in range(512))
    return f"data:{media_type};base64,{base64.b64encode(body).decode('ascii')}"


@pytest.fixture
def image_factory():
    return make_image


@pytest.fixture
def sample_image():
    return make_image(1)


@pytest.fixture
def sample_images():
    return [make_image(i) for i in range(6)]


# =============================================================================
# SERVICE / API FIXTURES
# =============================================================================

@pytest.fixture
def service():
    """CurationService with a seeded synthetic evaluator and in-memory history."""
    return CurationService(
        evaluator=SyntheticEvaluator(seed=7),
        cache=BoundedCache(32),
        store=InMemoryStore(),
        max_concurrency=2,
        max_payload_bytes=10_000,
        top_n=3,
    )


@pytest.fixture
def client(service):
    """TestClient with the curation service dependency overridden."""
    app.dependency_overrides[get_curation_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    # Leaving the client runs the shutdown hook, which sets the flag
    clear_shutdown()
