from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from curation.config import settings
from curation.models.enumerations import GoldStandard, Verdict


class ErrorResponse(BaseModel):
    """
    Standard error body for every non-2xx response.
    """

    error_code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Direct scoring
# ---------------------------------------------------------------------------


class GateInput(BaseModel):
    compositional_integrity: Optional[bool] = None
    artifact_control: Optional[bool] = None
    ethics_process: Optional[str] = Field(
        default=None,
        description="present | visible | todo | unclear | missing",
    )


class RawScoreInput(BaseModel):
    """
    One item's raw scores. Values are range-checked by the scorer, which
    answers 422 VALIDATION_ERROR for anything outside [0, 100].
    """

    id: Optional[str] = Field(default=None, max_length=255)
    scores: Dict[str, Any] = Field(..., description="Dimension key → score in [0, 100]")
    flags: List[Any] = Field(default_factory=list)
    gate: Optional[GateInput] = None


class ScoreRequest(BaseModel):
    curator_id: str = Field(default=settings.DEFAULT_CURATOR, min_length=1, max_length=50)
    items: List[RawScoreInput] = Field(..., min_length=1, max_length=500)
    normalize: bool = Field(default=False, description="Z-score normalize the batch")
    rank: bool = Field(default=False, description="Run the pairwise playoff")
    top_n: Optional[int] = Field(default=None, ge=0, le=500)


# ---------------------------------------------------------------------------
# Image evaluation
# ---------------------------------------------------------------------------


class ImageInput(BaseModel):
    image: str = Field(..., min_length=1, description="Base64 string or data URL")
    id: Optional[str] = Field(default=None, max_length=255)


class EvaluateRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Base64 string or data URL")
    curator_id: str = Field(default=settings.DEFAULT_CURATOR, min_length=1, max_length=50)
    image_id: Optional[str] = Field(default=None, max_length=255)


class BatchRequest(BaseModel):
    images: List[ImageInput] = Field(..., min_length=1, max_length=200)
    curator_id: str = Field(default=settings.DEFAULT_CURATOR, min_length=1, max_length=50)
    top_n: Optional[int] = Field(default=None, ge=0, le=200)


class CalibrateRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Base64 string or data URL")
    curator_id: str = Field(default=settings.DEFAULT_CURATOR, min_length=1, max_length=50)
    gold_type: GoldStandard


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ScoredItemResponse(BaseModel):
    id: str
    scores_raw: Dict[str, Any]
    composite_raw: float
    composite_z: Optional[float] = None
    verdict: Verdict
    flags: List[Any]
    pairwise_wins: Optional[int] = None
    pairwise_losses: Optional[int] = None
    playoff_score: Optional[int] = None
    rank: Optional[int] = None
    gate: Optional[Dict[str, Any]] = None
    warnings: List[str] = Field(default_factory=list)
    percentile_override: bool = False
    fallback: bool = False


class EvaluationDetail(BaseModel):
    source: str
    i_see: str = ""
    rationales: Dict[str, str] = Field(default_factory=dict)
    confidence: Optional[float] = None
    failure_reason: Optional[str] = None


class CurationItemResponse(ScoredItemResponse):
    curator_id: str
    evaluated_at: str
    cached: bool = False
    evaluation: EvaluationDetail


class BatchStats(BaseModel):
    total: int
    include: int
    maybe: int
    exclude: int
    fallback: int
    validation_failed: int = 0


class ScoreResponse(BaseModel):
    curator_id: str
    items: List[ScoredItemResponse]
    top_candidates: List[ScoredItemResponse]
    stats: BatchStats


class BatchResponse(BaseModel):
    curator_id: str
    items: List[CurationItemResponse]
    top_candidates: List[CurationItemResponse]
    stats: BatchStats


class CalibrationDetail(BaseModel):
    gold_type: str
    expected_score: float
    actual_score: float
    drift: float
    expected_verdict: str
    actual_verdict: str
    verdict_match: bool
    warning: Optional[str] = None


class CalibrateResponse(BaseModel):
    evaluation: CurationItemResponse
    calibration: CalibrationDetail


class CuratorSummary(BaseModel):
    id: str
    name: str
    title: str
    description: str
    dimensions: List[str]


class CuratorDetail(CuratorSummary):
    weights: Dict[str, float]
    dimension_names: Dict[str, str]
    thresholds: Dict[str, float]
    penalties: Dict[str, Dict[str, float]]
    compare_keys: List[str]
    tie_break_key: Optional[str] = None


class HistoryResponse(BaseModel):
    items: List[CurationItemResponse]
    count: int
    curator_id: Optional[str] = None

