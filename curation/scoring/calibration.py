# curation/scoring/calibration.py
"""
Gold-standard calibration.

Compares a scored item against a reference image of known quality and reports
how far the evaluator has drifted.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import structlog

from curation.core.exceptions import ValidationError
from curation.models.enumerations import GoldStandard, Verdict
from curation.scoring.scorer import ScoredItem

logger = structlog.get_logger(__name__)

DRIFT_WARNING_THRESHOLD = 15.0

GOLD_STANDARDS: Dict[GoldStandard, Dict[str, Any]] = {
    GoldStandard.HIGH_QUALITY: {"expected_score": 85.0, "expected_verdict": Verdict.INCLUDE},
    GoldStandard.MEDIUM_QUALITY: {"expected_score": 70.0, "expected_verdict": Verdict.MAYBE},
    GoldStandard.LOW_QUALITY: {"expected_score": 45.0, "expected_verdict": Verdict.EXCLUDE},
}


@dataclass
class CalibrationResult:
    gold_type: str
    expected_score: float
    actual_score: float
    drift: float
    expected_verdict: str
    actual_verdict: str
    verdict_match: bool
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def resolve_gold_standard(gold_type: str) -> GoldStandard:
    """Raises ValidationError for an unknown gold type."""
    try:
        return GoldStandard(gold_type)
    except ValueError:
        raise ValidationError(f"Unknown gold standard '{gold_type}'", field="gold_type")


def check_gold_standard(item: ScoredItem, gold_type: str) -> CalibrationResult:
    """
    Check one scored item against a gold standard.

    drift = |actual authoritative composite − expected score|; a drift above
    15 points produces a warning.

    Raises:
        ValidationError: unknown gold type.
    """
    gold = resolve_gold_standard(gold_type)
    reference = GOLD_STANDARDS[gold]
    actual = item.authoritative_composite
    drift = abs(actual - reference["expected_score"])
    warning = None
    if drift > DRIFT_WARNING_THRESHOLD:
        warning = (
            f"Calibration drift of {drift:.1f} points exceeds "
            f"{DRIFT_WARNING_THRESHOLD:g} for {gold.value}"
        )

    result = CalibrationResult(
        gold_type=gold.value,
        expected_score=reference["expected_score"],
        actual_score=round(actual, 4),
        drift=round(drift, 4),
        expected_verdict=reference["expected_verdict"].value,
        actual_verdict=item.verdict.value,
        verdict_match=item.verdict == reference["expected_verdict"],
        warning=warning,
    )
    if warning:
        logger.warning("calibration_drift", item_id=item.id, gold_type=gold.value, drift=drift)
    return result
