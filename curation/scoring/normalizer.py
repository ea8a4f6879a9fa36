# curation/scoring/normalizer.py
"""
Batch Normalizer
----------------
Rescales a batch of scored items relative to each other so that verdicts
reflect an item's standing within its batch rather than the absolute level
the evaluator happened to pick.

Formula (per dimension k, over the batch):
    mean_k = Σ raw_k / N
    std_k  = sqrt( Σ (raw_k − mean_k)² / N )      (1 when std_k ≈ 0)
    z_k    = (raw_k − mean_k) / std_k
    norm_k = clamp( (z_k + 3) / 6, 0, 1 )
    composite_z = Σ weight_k × norm_k             (0–100)

composite_z becomes authoritative for the verdict; composite_raw is kept.
composite_z is built from dimension scores alone, so flag penalties and
bonuses move composite_raw but never the normalized verdict.
A single-item batch always lands on composite_z = 50.
"""
from typing import Dict, List, Optional

import structlog

from curation.models.enumerations import Verdict
from curation.scoring.registry import DimensionRegistry
from curation.scoring.scorer import ScoredItem
from curation.scoring.utils import clamp, mean, population_std_dev, safe_std_dev, z_to_unit

logger = structlog.get_logger(__name__)

DEFAULT_INCLUDE_FRACTION = 0.20


def _dimension_stats(
    registry: DimensionRegistry, items: List[ScoredItem]
) -> Dict[str, Dict[str, float]]:
    stats: Dict[str, Dict[str, float]] = {}
    for key in registry.keys:
        values = [item.raw_score(key) for item in items]
        mu = mean(values)
        std = population_std_dev(values, mu)
        stats[key] = {"mean": mu, "std": safe_std_dev(std)}
    return stats


def normalize_batch(registry: DimensionRegistry, items: List[ScoredItem]) -> List[ScoredItem]:
    """
    Z-score normalize every item in place and re-derive its verdict.

    Statistics are taken over every item, placeholders included. Items
    flagged evaluation_failed or validation_failed keep their forced EXCLUDE.

    Returns the same list object that was passed in.
    """
    if not items:
        return items

    registry.require_normalized()

    stats = _dimension_stats(registry, items)

    for item in items:
        z_scores: Dict[str, float] = {}
        normalized: Dict[str, float] = {}
        composite = 0.0
        for dim in registry:
            s = stats[dim.key]
            z = (item.raw_score(dim.key) - s["mean"]) / s["std"]
            unit = z_to_unit(z)
            z_scores[dim.key] = z
            normalized[dim.key] = unit
            composite += dim.weight * unit

        item.z_scores = z_scores
        item.normalized_scores = normalized
        item.composite_z = clamp(composite, 0.0, 100.0)
        item.reclassify()

    logger.info(
        "batch_normalized",
        size=len(items),
        include=sum(1 for i in items if i.verdict == Verdict.INCLUDE),
        maybe=sum(1 for i in items if i.verdict == Verdict.MAYBE),
        exclude=sum(1 for i in items if i.verdict == Verdict.EXCLUDE),
    )
    return items


def apply_percentile_verdicts(
    items: List[ScoredItem], include_fraction: Optional[float] = DEFAULT_INCLUDE_FRACTION
) -> List[ScoredItem]:
    """
    Restrict INCLUDE to the top include_fraction of the batch.

    Items are ordered by authoritative composite (descending, stable on input
    order). Position i (0-based) is inside the top slice when (i+1)/n <= fraction.
    Inside the slice, MAYBE items that no gate caps are promoted to INCLUDE.
    Outside it, INCLUDE items are demoted to MAYBE. EXCLUDE never changes.
    Changed items get percentile_override = True. Mutates in place.
    """
    if not items or include_fraction is None:
        return items
    if not 0.0 <= include_fraction <= 1.0:
        raise ValueError(f"include_fraction must be within [0, 1], got {include_fraction}")

    n = len(items)
    ordered = sorted(
        enumerate(items), key=lambda pair: (-pair[1].authoritative_composite, pair[0])
    )
    promoted = demoted = 0
    for position, (_, item) in enumerate(ordered):
        in_top = (position + 1) / n <= include_fraction
        if item.verdict == Verdict.EXCLUDE:
            continue
        if in_top and item.verdict == Verdict.MAYBE and not item.gate_capped:
            item.verdict = Verdict.INCLUDE
            item.percentile_override = True
            promoted += 1
        elif not in_top and item.verdict == Verdict.INCLUDE:
            item.verdict = Verdict.MAYBE
            item.percentile_override = True
            demoted += 1

    logger.info(
        "percentile_verdicts_applied",
        size=n,
        include_fraction=include_fraction,
        promoted=promoted,
        demoted=demoted,
    )
    return items
