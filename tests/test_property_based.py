# tests/test_property_based.py
"""
Property-Based Tests - scoring core

Hypothesis tests with max_examples=500, covering:
  - weight and penalty monotonicity of the scorer
  - verdict band consistency
  - normalization translation invariance and degenerate batches
  - tournament tie neutrality and ranking stability
"""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from curation.models.enumerations import Verdict
from curation.scoring.normalizer import normalize_batch
from curation.scoring.registry import Dimension, create_registry
from curation.scoring.scorer import (
    PenaltyTable,
    RawScoreSet,
    VerdictThresholds,
    classify,
    score_item,
)
from curation.scoring.tournament import rank_top_candidates

# ---------------------------------------------------------------------------
# Shared strategies
# ---------------------------------------------------------------------------

KEYS = ["A", "B", "C"]
REGISTRY = create_registry([Dimension("A", 50), Dimension("B", 30), Dimension("C", 20)])
PENALTIES = PenaltyTable(penalties={"artifacting": -10.0, "halo_edge": -7.0, "derivative": -5.0})
OPEN = VerdictThresholds(include_min=0.0, maybe_min=0.0)

score_st = st.floats(min_value=0.0, max_value=100.0, allow_nan=False, allow_infinity=False)
flag_st = st.sampled_from(list(PENALTIES.penalties))


@st.composite
def scores_dict(draw):
    return {k: draw(score_st) for k in KEYS}


@st.composite
def int_batch(draw, min_size=2, max_size=9):
    """Integer scores in [0, 50] so a shift of up to 50 stays within range."""
    n = draw(st.integers(min_value=min_size, max_value=max_size))
    return [
        {k: draw(st.integers(min_value=0, max_value=50)) for k in KEYS}
        for _ in range(n)
    ]


def _score(scores, flags=(), thresholds=OPEN):
    return score_item(REGISTRY, RawScoreSet(scores=scores, flags=tuple(flags)), PENALTIES, thresholds)


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

class TestScorerProperties:

    @given(scores=scores_dict(), key=st.sampled_from(KEYS), bump=st.floats(min_value=0.0, max_value=100.0))
    @settings(max_examples=500)
    def test_composite_monotone_in_each_score(self, scores, key, bump):
        raised = dict(scores)
        raised[key] = min(100.0, scores[key] + bump)
        assert _score(raised).composite_raw >= _score(scores).composite_raw - 1e-9

    @given(scores=scores_dict(), flags=st.lists(flag_st, max_size=3), extra=flag_st)
    @settings(max_examples=500)
    def test_adding_a_penalty_never_raises_composite(self, scores, flags, extra):
        before = _score(scores, flags).composite_raw
        after = _score(scores, list(flags) + [extra]).composite_raw
        assert after <= before + 1e-9

    @given(scores=scores_dict(), flags=st.lists(flag_st, max_size=3))
    @settings(max_examples=500)
    def test_composite_within_bounds(self, scores, flags):
        composite = _score(scores, flags).composite_raw
        assert 0.0 <= composite <= 100.0

    @given(
        composite=st.floats(min_value=0.0, max_value=100.0, allow_nan=False),
        low=st.floats(min_value=0.0, max_value=100.0, allow_nan=False),
        high=st.floats(min_value=0.0, max_value=100.0, allow_nan=False),
    )
    @settings(max_examples=500)
    def test_verdict_band_consistency(self, composite, low, high):
        thresholds = VerdictThresholds(include_min=max(low, high), maybe_min=min(low, high))
        verdict = classify(composite, thresholds)
        if composite >= thresholds.include_min:
            assert verdict == Verdict.INCLUDE
        elif composite >= thresholds.maybe_min:
            assert verdict == Verdict.MAYBE
        else:
            assert verdict == Verdict.EXCLUDE


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------

class TestNormalizerProperties:

    @given(batch=int_batch(), shifts=st.fixed_dictionaries({k: st.integers(0, 50) for k in KEYS}))
    @settings(max_examples=500)
    def test_translation_invariance(self, batch, shifts):
        original = [_score(scores) for scores in batch]
        shifted = [_score({k: v + shifts[k] for k, v in scores.items()}) for scores in batch]
        normalize_batch(REGISTRY, original)
        normalize_batch(REGISTRY, shifted)
        for a, b in zip(original, shifted):
            assert a.composite_z == pytest.approx(b.composite_z, abs=1e-6)

    @given(scores=scores_dict(), n=st.integers(min_value=1, max_value=12))
    @settings(max_examples=500)
    def test_degenerate_batch_is_stable(self, scores, n):
        items = [_score(dict(scores)) for _ in range(n)]
        normalize_batch(REGISTRY, items)
        for item in items:
            assert not math.isnan(item.composite_z)
            assert item.composite_z == pytest.approx(50.0, abs=1e-6)

    @given(batch=int_batch(min_size=1, max_size=12))
    @settings(max_examples=500)
    def test_composite_z_in_range(self, batch):
        items = [_score(scores) for scores in batch]
        normalize_batch(REGISTRY, items)
        assert all(0.0 <= i.composite_z <= 100.0 for i in items)


# ---------------------------------------------------------------------------
# Tournament
# ---------------------------------------------------------------------------

class TestTournamentProperties:

    @given(scores=scores_dict(), n=st.integers(min_value=2, max_value=8))
    @settings(max_examples=500)
    def test_identical_items_all_score_zero(self, scores, n):
        items = [_score(dict(scores)) for _ in range(n)]
        rank_top_candidates(items, KEYS, top_n=n)
        assert all(i.playoff_score == 0 for i in items)

    @given(
        batch=int_batch(min_size=1, max_size=12),
        top_n=st.integers(min_value=-2, max_value=15),
        pool=st.integers(min_value=1, max_value=15),
    )
    @settings(max_examples=500)
    def test_ranking_stability(self, batch, top_n, pool):
        items = [_score(scores) for scores in batch]
        winners = rank_top_candidates(items, KEYS[:2], top_n=top_n, pool_size=pool)
        assert len(winners) <= max(0, min(top_n, pool, len(items)))
        assert len({id(w) for w in winners}) == len(winners)
        assert all(any(w is i for i in items) for w in winners)

    @given(batch=int_batch(min_size=2, max_size=10))
    @settings(max_examples=500)
    def test_playoff_scores_sum_to_zero(self, batch):
        items = [_score(scores) for scores in batch]
        rank_top_candidates(items, KEYS, top_n=len(items))
        assert sum(i.playoff_score for i in items) == 0
