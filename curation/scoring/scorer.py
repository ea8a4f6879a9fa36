# curation/scoring/scorer.py
"""
Single-Item Scorer
------------------
Turns one item's raw per-dimension scores and flags into a weighted composite
and a verdict.

Formula:
    composite = clamp( Σ (score_k × weight_k) / 100  +  Σ delta(flag),  0, 100 )

Verdict bands (0–100 scale, configurable):
    composite >= include_min             → INCLUDE
    maybe_min <= composite < include_min → MAYBE
    composite < maybe_min                → EXCLUDE

Gate overrides, applied after banding:
    ethics_process == "missing"                      → EXCLUDE (hard fail)
    compositional_integrity / artifact_control False → at most MAYBE (soft fail)
    system flag evaluation_failed / validation_failed → EXCLUDE
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

import structlog

from curation.core.exceptions import ConfigError, ValidationError
from curation.models.enumerations import EthicsProcess, Verdict
from curation.scoring.registry import DimensionRegistry
from curation.scoring.utils import clamp, is_finite_number

logger = structlog.get_logger(__name__)

SCORE_MIN = 0.0
SCORE_MAX = 100.0

# System flags set by the orchestration layer, never by an evaluator
EVALUATION_FAILED = "evaluation_failed"
VALIDATION_FAILED = "validation_failed"
FORCED_EXCLUDE_FLAGS = frozenset({EVALUATION_FAILED, VALIDATION_FAILED})

DEFAULT_INCLUDE_MIN = 75.0
DEFAULT_MAYBE_MIN = 55.0


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Gate:
    """Boolean / tri-state checks kept apart from the weighted dimensions."""
    compositional_integrity: Optional[bool] = None
    artifact_control: Optional[bool] = None
    ethics_process: Optional[EthicsProcess] = None

    @property
    def hard_fail(self) -> bool:
        return self.ethics_process == EthicsProcess.MISSING

    @property
    def soft_fail(self) -> bool:
        return self.compositional_integrity is False or self.artifact_control is False

    @property
    def passed(self) -> bool:
        return not (self.hard_fail or self.soft_fail)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional["Gate"]:
        """Build a Gate from a JSON-style mapping. Returns None for no data."""
        if not data:
            return None
        ethics = data.get("ethics_process")
        if ethics is not None:
            try:
                ethics = EthicsProcess(str(ethics).strip().lower())
            except ValueError:
                raise ValidationError(
                    f"Unknown ethics_process value '{ethics}'", field="gate.ethics_process"
                )
        for name in ("compositional_integrity", "artifact_control"):
            value = data.get(name)
            if value is not None and not isinstance(value, bool):
                raise ValidationError(f"Gate '{name}' must be a boolean", field=f"gate.{name}")
        return cls(
            compositional_integrity=data.get("compositional_integrity"),
            artifact_control=data.get("artifact_control"),
            ethics_process=ethics,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compositional_integrity": self.compositional_integrity,
            "artifact_control": self.artifact_control,
            "ethics_process": self.ethics_process.value if self.ethics_process else None,
            "passed": self.passed,
        }


@dataclass(frozen=True)
class RawScoreSet:
    """One item's unprocessed input. Missing dimension keys score 0."""
    scores: Mapping[str, float]
    flags: Tuple[str, ...] = ()
    gate: Optional[Gate] = None


@dataclass(frozen=True)
class PenaltyTable:
    """
    Fixed point deltas per flag code.

    Penalties must be <= 0. Positive deltas are only allowed when declared as
    bonuses. System flags are always known and carry no delta.
    """
    penalties: Mapping[str, float] = field(default_factory=dict)
    bonuses: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        for code, delta in self.penalties.items():
            if not is_finite_number(delta) or delta > 0:
                raise ConfigError(f"Penalty '{code}' must be a number <= 0, got {delta}")
        for code, delta in self.bonuses.items():
            if not is_finite_number(delta) or delta < 0:
                raise ConfigError(f"Bonus '{code}' must be a number >= 0, got {delta}")
            if code in self.penalties:
                raise ConfigError(f"Flag '{code}' declared as both penalty and bonus")

    def delta(self, flag: str) -> Optional[float]:
        """Point delta for a flag, or None for an unknown flag."""
        if flag in self.penalties:
            return float(self.penalties[flag])
        if flag in self.bonuses:
            return float(self.bonuses[flag])
        if flag in FORCED_EXCLUDE_FLAGS:
            return 0.0
        return None

    @property
    def codes(self) -> List[str]:
        return list(self.penalties) + list(self.bonuses)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {"penalties": dict(self.penalties), "bonuses": dict(self.bonuses)}


@dataclass(frozen=True)
class VerdictThresholds:
    """Band edges on the 0–100 composite scale."""
    include_min: float = DEFAULT_INCLUDE_MIN
    maybe_min: float = DEFAULT_MAYBE_MIN

    def __post_init__(self):
        if not (is_finite_number(self.include_min) and is_finite_number(self.maybe_min)):
            raise ConfigError("Verdict thresholds must be finite numbers")
        if not SCORE_MIN <= self.maybe_min <= self.include_min <= SCORE_MAX:
            raise ConfigError(
                f"Thresholds must satisfy 0 <= maybe_min <= include_min <= 100, "
                f"got maybe_min={self.maybe_min}, include_min={self.include_min}"
            )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@dataclass
class ScoredItem:
    """
    Result of scoring one item.

    Created by score_item(), mutated in place by normalize_batch()
    (composite_z, z_scores, normalized_scores, verdict) and by
    rank_top_candidates() (pairwise_wins, pairwise_losses, playoff_score, rank).
    """
    id: str
    raw: RawScoreSet
    composite_raw: float
    verdict: Verdict
    thresholds: VerdictThresholds = field(default_factory=VerdictThresholds, repr=False)
    warnings: List[str] = field(default_factory=list)
    composite_z: Optional[float] = None
    z_scores: Optional[Dict[str, float]] = None
    normalized_scores: Optional[Dict[str, float]] = None
    pairwise_wins: Optional[int] = None
    pairwise_losses: Optional[int] = None
    playoff_score: Optional[int] = None
    rank: Optional[int] = None
    percentile_override: bool = False

    @property
    def authoritative_composite(self) -> float:
        """z-score composite once normalized, raw composite otherwise."""
        return self.composite_z if self.composite_z is not None else self.composite_raw

    @property
    def flags(self) -> Tuple[str, ...]:
        return self.raw.flags

    @property
    def is_fallback(self) -> bool:
        return EVALUATION_FAILED in self.raw.flags

    @property
    def is_placeholder(self) -> bool:
        """Scores are neutral stand-ins set after an evaluation or validation failure."""
        return bool(FORCED_EXCLUDE_FLAGS.intersection(self.raw.flags))

    @property
    def gate_capped(self) -> bool:
        """True when a gate or system flag limits the verdict below INCLUDE."""
        gate = self.raw.gate
        if gate is not None and not gate.passed:
            return True
        return self.is_placeholder

    def raw_score(self, key: str) -> float:
        return float(self.raw.scores.get(key, 0.0))

    def reclassify(self) -> Verdict:
        self.verdict = determine_verdict(
            self.authoritative_composite, self.thresholds, self.raw.gate, self.raw.flags
        )
        return self.verdict

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scores_raw": {k: v for k, v in self.raw.scores.items()},
            "composite_raw": round(self.composite_raw, 4),
            "composite_z": round(self.composite_z, 4) if self.composite_z is not None else None,
            "verdict": self.verdict.value,
            "flags": list(self.raw.flags),
            "pairwise_wins": self.pairwise_wins,
            "pairwise_losses": self.pairwise_losses,
            "playoff_score": self.playoff_score,
            "rank": self.rank,
            "gate": self.raw.gate.to_dict() if self.raw.gate else None,
            "warnings": list(self.warnings),
            "percentile_override": self.percentile_override,
            "fallback": self.is_fallback,
        }


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def classify(composite: float, thresholds: VerdictThresholds = VerdictThresholds()) -> Verdict:
    """Map a composite onto exactly one verdict band."""
    if composite >= thresholds.include_min:
        return Verdict.INCLUDE
    if composite >= thresholds.maybe_min:
        return Verdict.MAYBE
    return Verdict.EXCLUDE


def determine_verdict(
    composite: float,
    thresholds: VerdictThresholds,
    gate: Optional[Gate] = None,
    flags: Tuple[str, ...] = (),
) -> Verdict:
    """Band the composite, then apply gate and system-flag overrides."""
    if FORCED_EXCLUDE_FLAGS.intersection(flags):
        return Verdict.EXCLUDE
    if gate is not None and gate.hard_fail:
        return Verdict.EXCLUDE

    verdict = classify(composite, thresholds)
    if gate is not None and gate.soft_fail and verdict == Verdict.INCLUDE:
        return Verdict.MAYBE
    return verdict


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def _validate(raw: RawScoreSet) -> None:
    for key, value in raw.scores.items():
        if not is_finite_number(value):
            raise ValidationError(f"Score for '{key}' must be a finite number, got {value!r}", field=key)
        if not SCORE_MIN <= value <= SCORE_MAX:
            raise ValidationError(f"Score for '{key}' must be within [0, 100], got {value}", field=key)
    for flag in raw.flags:
        if not isinstance(flag, str) or not flag.strip():
            raise ValidationError(f"Malformed flag {flag!r}", field="flags")


def score_item(
    registry: DimensionRegistry,
    raw: RawScoreSet,
    penalty_table: PenaltyTable,
    thresholds: Optional[VerdictThresholds] = None,
    item_id: Optional[str] = None,
) -> ScoredItem:
    """
    Compute the weighted composite and verdict for one item.

    Missing registry keys score 0 and are reported in ScoredItem.warnings as
    "missing_dimension:<key>". Unknown flags contribute 0 and are reported as
    "unknown_flag:<flag>". Scores for keys outside the registry are ignored and
    reported as "unregistered_dimension:<key>".

    Raises:
        ConfigError: registry weights do not sum to 100.
        ValidationError: a score outside [0, 100] or not a number, or a malformed flag.
    """
    registry.require_normalized()
    _validate(raw)
    thresholds = thresholds or VerdictThresholds()
    warnings: List[str] = []

    weighted = 0.0
    for dim in registry:
        if dim.key not in raw.scores:
            warnings.append(f"missing_dimension:{dim.key}")
            continue
        weighted += float(raw.scores[dim.key]) * dim.weight / 100.0

    for key in raw.scores:
        if key not in registry:
            warnings.append(f"unregistered_dimension:{key}")

    adjustment = 0.0
    seen = set()
    for flag in raw.flags:
        if flag in seen:
            continue
        seen.add(flag)
        delta = penalty_table.delta(flag)
        if delta is None:
            warnings.append(f"unknown_flag:{flag}")
            continue
        adjustment += delta

    composite = clamp(weighted + adjustment, SCORE_MIN, SCORE_MAX)
    verdict = determine_verdict(composite, thresholds, raw.gate, raw.flags)

    item = ScoredItem(
        id=item_id or f"item_{uuid4().hex[:12]}",
        raw=raw,
        composite_raw=composite,
        verdict=verdict,
        thresholds=thresholds,
        warnings=warnings,
    )

    logger.debug(
        "item_scored",
        item_id=item.id,
        weighted=weighted,
        adjustment=adjustment,
        composite_raw=composite,
        verdict=verdict.value,
        warnings=warnings,
    )
    return item
