"""
Curation Service - Curation Critique Service
curation/services/curation_service.py

Orchestrates one request end to end:

    image(s) → evaluator (bounded concurrency, cache, fallback)
             → score_item → normalize_batch → percentile verdicts
             → rank_top_candidates → history store

Single images are scored on the absolute scale only. Batches are normalized
and ranked. A batch never fails because of one item: evaluator failures
become neutral fallback items flagged evaluation_failed, bad payloads or
scores become items flagged validation_failed, and both are forced to EXCLUDE.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import redis

from curation.core.exceptions import (
    EvaluationNotFoundException,
    ExternalEvaluationFailure,
    ValidationError,
)
from curation.models.enumerations import EvaluationSource, Verdict
from curation.scoring.calibration import CalibrationResult, check_gold_standard, resolve_gold_standard
from curation.scoring.normalizer import DEFAULT_INCLUDE_FRACTION, apply_percentile_verdicts, normalize_batch
from curation.scoring.personas import CuratorPersona, get_persona
from curation.scoring.scorer import (
    EVALUATION_FAILED,
    VALIDATION_FAILED,
    Gate,
    RawScoreSet,
    ScoredItem,
    score_item,
)
from curation.scoring.tournament import DEFAULT_POOL_SIZE, rank_top_candidates
from curation.services.cache import BoundedCache, evaluation_cache_key
from curation.services.evaluator import (
    DEFAULT_MAX_PAYLOAD_BYTES,
    Evaluation,
    ImagePayload,
    VisionEvaluator,
    parse_image_data,
)
from curation.services.store import KEY_PREFIX, InMemoryStore, KeyValueStore, evaluation_key
from curation.shutdown import is_shutting_down

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0
DEFAULT_HISTORY_LIMIT = 50


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CurationResult:
    """One evaluated image: the scored item plus the critique that produced it."""
    item: ScoredItem
    evaluation: Evaluation
    curator_id: str
    evaluated_at: str = field(default_factory=_now)
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = self.item.to_dict()
        data.update(
            {
                "curator_id": self.curator_id,
                "evaluated_at": self.evaluated_at,
                "cached": self.cached,
                "evaluation": self.evaluation.to_dict(),
            }
        )
        return data


@dataclass
class BatchResult:
    curator_id: str
    results: List[CurationResult]
    top_candidates: List[CurationResult]
    stats: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "curator_id": self.curator_id,
            "items": [r.to_dict() for r in self.results],
            "top_candidates": [r.to_dict() for r in self.top_candidates],
            "stats": dict(self.stats),
        }


def batch_stats(items: Sequence[ScoredItem]) -> Dict[str, int]:
    return {
        "total": len(items),
        "include": sum(1 for i in items if i.verdict == Verdict.INCLUDE),
        "maybe": sum(1 for i in items if i.verdict == Verdict.MAYBE),
        "exclude": sum(1 for i in items if i.verdict == Verdict.EXCLUDE),
        "fallback": sum(1 for i in items if i.is_fallback),
        "validation_failed": sum(1 for i in items if VALIDATION_FAILED in i.flags),
    }


def neutral_raw_scores(persona: CuratorPersona, flag: str) -> RawScoreSet:
    return RawScoreSet(
        scores={key: NEUTRAL_SCORE for key in persona.registry.keys},
        flags=(flag,),
    )


def fallback_evaluation(persona: CuratorPersona, reason: str) -> Evaluation:
    """Neutral all-50 scores flagged evaluation_failed."""
    return Evaluation(
        raw=neutral_raw_scores(persona, EVALUATION_FAILED),
        source=EvaluationSource.FALLBACK,
        i_see="Unable to process image - using fallback evaluation",
        confidence=0.0,
        failure_reason=reason,
    )


class CurationService:
    """Evaluates, scores, ranks and records images for a curator persona."""

    def __init__(
        self,
        evaluator: VisionEvaluator,
        cache: Optional[BoundedCache] = None,
        store: Optional[KeyValueStore] = None,
        max_concurrency: int = 4,
        evaluation_timeout: float = 90.0,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        include_min_override: Optional[float] = None,
        maybe_min_override: Optional[float] = None,
        pool_size: int = DEFAULT_POOL_SIZE,
        top_n: int = 10,
        percentile_override: bool = True,
        include_fraction: float = DEFAULT_INCLUDE_FRACTION,
    ):
        self.evaluator = evaluator
        self.cache = cache if cache is not None else BoundedCache(0)
        self.store = store if store is not None else InMemoryStore()
        self.max_concurrency = max(1, max_concurrency)
        self.evaluation_timeout = evaluation_timeout
        self.max_payload_bytes = max_payload_bytes
        self.include_min_override = include_min_override
        self.maybe_min_override = maybe_min_override
        self.pool_size = pool_size
        self.top_n = top_n
        self.percentile_override = percentile_override
        self.include_fraction = include_fraction

    @classmethod
    def from_settings(cls, settings, evaluator, cache=None, store=None) -> "CurationService":
        return cls(
            evaluator=evaluator,
            cache=cache,
            store=store,
            max_concurrency=settings.MAX_CONCURRENT_EVALUATIONS,
            # httpx enforces LLM_TIMEOUT_SECONDS per request; this bounds the whole call
            evaluation_timeout=settings.LLM_TIMEOUT_SECONDS + 5.0,
            max_payload_bytes=settings.MAX_PAYLOAD_BYTES,
            include_min_override=settings.INCLUDE_MIN_OVERRIDE,
            maybe_min_override=settings.MAYBE_MIN_OVERRIDE,
            pool_size=settings.PLAYOFF_POOL_SIZE,
            top_n=settings.PLAYOFF_TOP_N,
            percentile_override=settings.PERCENTILE_OVERRIDE,
            include_fraction=settings.INCLUDE_PERCENTILE,
        )

    # ------------------------------------------------------------------
    # Personas
    # ------------------------------------------------------------------

    def resolve_persona(self, curator_id: str) -> CuratorPersona:
        """Built-in persona with the global threshold overrides applied."""
        persona = get_persona(curator_id)
        include_min = self.include_min_override
        maybe_min = self.maybe_min_override
        # Keep the bands ordered when only one edge is overridden
        if include_min is not None and maybe_min is None:
            maybe_min = min(persona.thresholds.maybe_min, include_min)
        if maybe_min is not None and include_min is None:
            include_min = max(persona.thresholds.include_min, maybe_min)
        return persona.with_thresholds(include_min=include_min, maybe_min=maybe_min)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def _evaluate(
        self,
        payload: ImagePayload,
        persona: CuratorPersona,
        semaphore: Optional[asyncio.Semaphore] = None,
    ) -> tuple:
        """Returns (evaluation, cached). Never raises for upstream failures."""
        key = evaluation_cache_key(persona.id, payload.sha256)
        cached = self.cache.get(key)
        if cached is not None:
            return cached, True

        if is_shutting_down():
            logger.warning("Shutdown in progress; skipping upstream evaluation")
            return fallback_evaluation(persona, "shutting_down"), False

        try:
            if semaphore is None:
                evaluation = await asyncio.wait_for(
                    self.evaluator.evaluate(payload, persona), timeout=self.evaluation_timeout
                )
            else:
                async with semaphore:
                    evaluation = await asyncio.wait_for(
                        self.evaluator.evaluate(payload, persona), timeout=self.evaluation_timeout
                    )
        except asyncio.TimeoutError:
            logger.error(f"Evaluation timed out after {self.evaluation_timeout:g}s")
            return fallback_evaluation(persona, "timeout"), False
        except ExternalEvaluationFailure as e:
            logger.error(f"Evaluation failed ({e.reason}): {e.message}")
            return fallback_evaluation(persona, e.reason), False
        except Exception as e:
            # A single broken evaluation must not take down a batch
            logger.exception(f"Unexpected evaluator error: {e}")
            return fallback_evaluation(persona, "error"), False

        self.cache.set(key, evaluation)
        return evaluation, False

    def _score(self, evaluation: Evaluation, persona: CuratorPersona, item_id: str) -> ScoredItem:
        try:
            return score_item(
                persona.registry, evaluation.raw, persona.penalties, persona.thresholds, item_id=item_id
            )
        except ValidationError as e:
            logger.warning(f"Evaluator output for {item_id} failed validation: {e.message}")
            return self._validation_failed_item(persona, item_id, e.message, gate=evaluation.raw.gate)

    def _validation_failed_item(
        self, persona: CuratorPersona, item_id: str, message: str, gate: Optional[Gate] = None
    ) -> ScoredItem:
        raw = neutral_raw_scores(persona, VALIDATION_FAILED)
        if gate is not None:
            raw = RawScoreSet(scores=raw.scores, flags=raw.flags, gate=gate)
        item = score_item(persona.registry, raw, persona.penalties, persona.thresholds, item_id=item_id)
        item.warnings.append(f"validation_error:{message}")
        return item

    def _persist(self, result: CurationResult) -> None:
        try:
            self.store.put(evaluation_key(result.curator_id, result.item.id), result.to_dict())
        except (redis.RedisError, OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to store evaluation {result.item.id}: {e}")

    async def evaluate_image(
        self, image: str, curator_id: str, image_id: Optional[str] = None
    ) -> CurationResult:
        """
        Evaluate and score one image on the absolute scale.

        Raises:
            PersonaNotFoundException: unknown curator.
            ValidationError / PayloadTooLargeError: bad image payload.
        """
        persona = self.resolve_persona(curator_id)
        payload = parse_image_data(image, self.max_payload_bytes)
        evaluation, cached = await self._evaluate(payload, persona)
        item = self._score(evaluation, persona, image_id or f"img_{payload.sha256[:12]}")

        result = CurationResult(item=item, evaluation=evaluation, curator_id=persona.id, cached=cached)
        self._persist(result)
        logger.info(
            f"Evaluated {item.id} for {persona.id}: {item.verdict.value} ({item.composite_raw:.1f})",
            extra={"source": evaluation.source.value, "cached": cached},
        )
        return result

    async def evaluate_batch(
        self,
        images: Sequence[Dict[str, Any]],
        curator_id: str,
        top_n: Optional[int] = None,
    ) -> BatchResult:
        """
        Evaluate many images concurrently, then normalize, override and rank.

        images: [{"image": <base64 or data URL>, "id": <optional>}, ...]
        Exactly one result is returned per submitted image, in input order.
        """
        persona = self.resolve_persona(curator_id)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_one(index: int, entry: Dict[str, Any]) -> CurationResult:
            item_id = entry.get("id") or f"img_{index + 1:03d}"
            try:
                payload = parse_image_data(entry.get("image"), self.max_payload_bytes)
            except ValidationError as e:
                logger.warning(f"Rejected image {item_id}: {e.message}")
                item = self._validation_failed_item(persona, item_id, e.message)
                return CurationResult(
                    item=item,
                    evaluation=Evaluation(raw=item.raw, source=EvaluationSource.FALLBACK, failure_reason="validation"),
                    curator_id=persona.id,
                )
            evaluation, cached = await self._evaluate(payload, persona, semaphore)
            item = self._score(evaluation, persona, item_id)
            return CurationResult(item=item, evaluation=evaluation, curator_id=persona.id, cached=cached)

        results: List[CurationResult] = list(
            await asyncio.gather(*(run_one(i, entry) for i, entry in enumerate(images)))
        )
        items = [r.item for r in results]

        normalize_batch(persona.registry, items)
        if self.percentile_override:
            apply_percentile_verdicts(items, self.include_fraction)

        winners = rank_top_candidates(
            items,
            persona.compare_keys,
            self.top_n if top_n is None else top_n,
            pool_size=self.pool_size,
            tie_break_key=persona.tie_break_key,
        )
        by_item = {id(r.item): r for r in results}
        top_candidates = [by_item[id(item)] for item in winners]

        for result in results:
            self._persist(result)

        stats = batch_stats(items)
        logger.info(f"Batch of {stats['total']} scored for {persona.id}", extra={"stats": stats})
        return BatchResult(
            curator_id=persona.id, results=results, top_candidates=top_candidates, stats=stats
        )

    async def calibrate(self, image: str, curator_id: str, gold_type: str) -> Dict[str, Any]:
        """Evaluate one image and compare it with a gold standard."""
        resolve_gold_standard(gold_type)
        result = await self.evaluate_image(image, curator_id)
        calibration: CalibrationResult = check_gold_standard(result.item, gold_type)
        return {"evaluation": result.to_dict(), "calibration": calibration.to_dict()}

    # ------------------------------------------------------------------
    # Direct scoring (no evaluator)
    # ------------------------------------------------------------------

    def score_raw_items(
        self,
        curator_id: str,
        items: Sequence[Dict[str, Any]],
        normalize: bool = False,
        rank: bool = False,
        top_n: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Score caller-supplied raw score sets.

        Unlike batches of images, a bad score here is the caller's error and
        raises ValidationError.
        """
        persona = self.resolve_persona(curator_id)
        scored: List[ScoredItem] = []
        for index, entry in enumerate(items):
            raw = RawScoreSet(
                scores=dict(entry.get("scores") or {}),
                flags=tuple(entry.get("flags") or ()),
                gate=Gate.from_dict(entry.get("gate")),
            )
            scored.append(
                score_item(
                    persona.registry,
                    raw,
                    persona.penalties,
                    persona.thresholds,
                    item_id=entry.get("id") or f"item_{index + 1:03d}",
                )
            )

        if normalize:
            normalize_batch(persona.registry, scored)
        top: List[ScoredItem] = []
        if rank:
            top = rank_top_candidates(
                scored,
                persona.compare_keys,
                self.top_n if top_n is None else top_n,
                pool_size=self.pool_size,
                tie_break_key=persona.tie_break_key,
            )
        return {
            "curator_id": persona.id,
            "items": [i.to_dict() for i in scored],
            "top_candidates": [i.to_dict() for i in top],
            "stats": batch_stats(scored),
        }

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def history(self, curator_id: Optional[str] = None, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Dict[str, Any]]:
        prefix = f"{KEY_PREFIX}:{curator_id}:" if curator_id else f"{KEY_PREFIX}:"
        records = self.store.list(prefix)
        records.sort(key=lambda r: r.get("evaluated_at") or "", reverse=True)
        return records[: max(0, limit)]

    def get_evaluation(self, curator_id: str, item_id: str) -> Dict[str, Any]:
        key = evaluation_key(curator_id, item_id)
        record = self.store.get(key)
        if record is None:
            raise EvaluationNotFoundException(key)
        return record
