"""
Vision Evaluators - Curation Critique Service
curation/services/evaluator.py

Strategy objects that turn one image into a RawScoreSet for a curator persona:

    AnthropicVisionEvaluator - Anthropic Messages API over httpx
    SyntheticEvaluator       - seedable demo scores, no network

build_evaluator() picks one from settings. Every failure surfaces as
ExternalEvaluationFailure; the curation service turns that into a fallback.
"""

import base64
import binascii
import hashlib
import json
import logging
import math
import random
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from curation.core.exceptions import ExternalEvaluationFailure, PayloadTooLargeError, ValidationError
from curation.models.enumerations import EthicsProcess, EvaluationSource
from curation.scoring.personas import FLAG_VOCABULARY, CuratorPersona
from curation.scoring.scorer import Gate, RawScoreSet

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAYLOAD_BYTES = 4_500_000
SUPPORTED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

# Leading base64 characters of each format's magic bytes
_BASE64_SIGNATURES = {
    "/9j/": "image/jpeg",
    "iVBORw0KGgo": "image/png",
    "R0lGOD": "image/gif",
    "UklGR": "image/webp",
}

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


# ---------------------------------------------------------------------------
# Image payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImagePayload:
    data: str           # base64 body, data-URL header stripped
    media_type: str
    sha256: str         # digest of the base64 body, used for cache keys and seeding

    @property
    def size_bytes(self) -> int:
        return len(self.data)


def parse_image_data(image: str, max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES) -> ImagePayload:
    """
    Accept a raw base64 string or a data URL ("data:image/png;base64,....").

    Raises:
        PayloadTooLargeError: base64 body larger than max_bytes.
        ValidationError: empty, not base64, or an unsupported media type.
    """
    if not isinstance(image, str) or not image.strip():
        raise ValidationError("Image payload is empty", field="image")

    image = image.strip()
    media_type = None
    if image.startswith("data:"):
        header, sep, body = image.partition(",")
        if not sep:
            raise ValidationError("Malformed data URL", field="image")
        media_type = header[len("data:"):].split(";")[0].strip().lower() or None
        image = body

    if len(image) > max_bytes:
        raise PayloadTooLargeError(len(image), max_bytes)

    if media_type is None:
        media_type = next(
            (mt for prefix, mt in _BASE64_SIGNATURES.items() if image.startswith(prefix)),
            "image/jpeg",
        )
    if media_type == "image/jpg":
        media_type = "image/jpeg"
    if media_type not in SUPPORTED_MEDIA_TYPES:
        raise ValidationError(f"Unsupported media type '{media_type}'", field="image")

    try:
        base64.b64decode(image, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image payload is not valid base64", field="image")

    return ImagePayload(
        data=image,
        media_type=media_type,
        sha256=hashlib.sha256(image.encode("ascii")).hexdigest(),
    )


# ---------------------------------------------------------------------------
# Evaluation result
# ---------------------------------------------------------------------------


@dataclass
class Evaluation:
    """Evaluator output: scores to feed the scorer plus the critique text."""
    raw: RawScoreSet
    source: EvaluationSource
    i_see: str = ""
    rationales: Dict[str, str] = field(default_factory=dict)
    confidence: Optional[float] = None
    failure_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "i_see": self.i_see,
            "rationales": dict(self.rationales),
            "confidence": self.confidence,
            "failure_reason": self.failure_reason,
        }


def build_prompt(persona: CuratorPersona) -> str:
    """Critique instructions for one persona, ending in the JSON shape to return."""
    dimension_lines = "\n".join(
        f"- {d.key} ({d.weight:g}): {d.display_name}" for d in persona.registry
    )
    score_lines = ",\n".join(f'    "{key}": [0-100]' for key in persona.registry.keys)
    rationale_lines = ",\n".join(
        f'    "{key}": "[1-2 sentences with specific visual evidence]"' for key in persona.registry.keys
    )
    return (
        f"You are {persona.name}, {persona.voice}.\n\n"
        "Be ruthlessly critical. Only the top 15-25% of work deserves INCLUDE. "
        "Start every dimension at 50 and justify upward movement with specific visual evidence.\n\n"
        "EVALUATION PROCESS:\n"
        '1) "i_see": 2 sentences - what you literally observe, no interpretation\n'
        "2) Gates: check compositional coherence, AI artifacts, and ethics documentation\n"
        "3) Dimensions: score harshly, most images are 40-70\n"
        "4) Flags: mark every flaw you notice\n\n"
        f"DIMENSIONS:\n{dimension_lines}\n\n"
        f"FLAGS TO CHECK:\n{json.dumps(list(FLAG_VOCABULARY))}\n\n"
        "RETURN EXACTLY THIS JSON STRUCTURE:\n"
        "{\n"
        '  "i_see": "[2 sentences: subject/setting/form/gesture]",\n'
        '  "gate": {\n'
        '    "compositional_integrity": [true/false],\n'
        '    "artifact_control": [true/false],\n'
        '    "ethics_process": "[present/visible/todo/unclear/missing]"\n'
        "  },\n"
        f'  "scores_raw": {{\n{score_lines}\n  }},\n'
        f'  "rationales": {{\n{rationale_lines}\n  }},\n'
        '  "flags": ["array of applicable flags"],\n'
        '  "confidence": [0.0-1.0]\n'
        "}\n\n"
        "Be specific about what you SEE in the image, not generic theory."
    )


def _coerce_score(value: Any) -> Any:
    # Numeric strings are accepted; anything else is left for the scorer to reject
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return value
    return value


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _coerce_gate(data: Any) -> Optional[Gate]:
    if not isinstance(data, dict):
        return None
    ethics = data.get("ethics_process")
    if ethics is not None:
        ethics = str(ethics).strip().lower()
        if ethics not in {e.value for e in EthicsProcess}:
            ethics = EthicsProcess.UNCLEAR.value
    return Gate.from_dict(
        {
            "compositional_integrity": _coerce_bool(data.get("compositional_integrity")),
            "artifact_control": _coerce_bool(data.get("artifact_control")),
            "ethics_process": ethics,
        }
    )


def parse_model_response(text: str, persona: CuratorPersona, source: EvaluationSource) -> Evaluation:
    """
    Pull the first {...} block out of a model reply and map it to an Evaluation.

    Raises:
        ExternalEvaluationFailure: no JSON object, or the object is not parseable.
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        raise ExternalEvaluationFailure("No JSON found in model response", reason="invalid_response")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ExternalEvaluationFailure(f"Unparseable model response: {e}", reason="invalid_response")
    if not isinstance(payload, dict):
        raise ExternalEvaluationFailure("Model response is not a JSON object", reason="invalid_response")

    scores = payload.get("scores_raw") or {}
    if not isinstance(scores, dict):
        scores = {}
    flags = payload.get("flags") or []
    if not isinstance(flags, list):
        flags = [flags]
    confidence = payload.get("confidence")
    rationales = payload.get("rationales")

    raw = RawScoreSet(
        scores={k: _coerce_score(v) for k, v in scores.items()},
        flags=tuple(flags),
        gate=_coerce_gate(payload.get("gate")),
    )
    return Evaluation(
        raw=raw,
        source=source,
        i_see=str(payload.get("i_see") or ""),
        rationales={str(k): str(v) for k, v in rationales.items()} if isinstance(rationales, dict) else {},
        confidence=float(confidence) if isinstance(confidence, (int, float)) and not isinstance(confidence, bool) else None,
    )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class VisionEvaluator(ABC):
    """Scores one image for one persona."""

    source: EvaluationSource

    @abstractmethod
    async def evaluate(self, image: ImagePayload, persona: CuratorPersona) -> Evaluation:
        ...

    async def aclose(self) -> None:
        return None


class AnthropicVisionEvaluator(VisionEvaluator):
    """Anthropic Messages API with a base64 image block and the persona prompt."""

    source = EvaluationSource.ANTHROPIC

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 2000,
        timeout: float = 60.0,
        api_url: str = "https://api.anthropic.com/v1/messages",
        api_version: str = "2023-06-01",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.api_url = api_url
        self.api_version = api_version
        self._client = client

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "content-type": "application/json",
        }

    def build_request(self, image: ImagePayload, persona: CuratorPersona) -> Dict[str, Any]:
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {"type": "base64", "media_type": image.media_type, "data": image.data},
                        },
                        {"type": "text", "text": build_prompt(persona)},
                    ],
                }
            ],
        }

    async def _post(self, body: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.api_url, json=body, headers=self.headers, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.api_url, json=body, headers=self.headers)

    async def evaluate(self, image: ImagePayload, persona: CuratorPersona) -> Evaluation:
        if not self.api_key:
            raise ExternalEvaluationFailure("Anthropic API key not configured", reason="not_configured")

        logger.info(
            "Vision evaluation starting",
            extra={"curator": persona.id, "model": self.model, "size_kb": image.size_bytes // 1024},
        )
        try:
            response = await self._post(self.build_request(image, persona))
        except httpx.TimeoutException as e:
            raise ExternalEvaluationFailure(f"Vision API timed out: {e}", reason="timeout")
        except httpx.HTTPError as e:
            raise ExternalEvaluationFailure(f"Vision API request failed: {e}", reason="transport")

        if response.status_code != 200:
            logger.error(f"Vision API error {response.status_code}: {response.text[:200]}")
            raise ExternalEvaluationFailure(
                f"Vision API returned HTTP {response.status_code}", reason="http_error"
            )

        try:
            data = response.json()
        except ValueError:
            raise ExternalEvaluationFailure("Vision API returned non-JSON body", reason="invalid_response")
        if not isinstance(data, dict) or not isinstance(data.get("content"), list):
            raise ExternalEvaluationFailure(
                "Vision API response has no content blocks", reason="invalid_response"
            )

        text = "".join(
            str(block.get("text") or "")
            for block in data["content"]
            if isinstance(block, dict) and block.get("type") == "text"
        )
        return parse_model_response(text, persona, self.source)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


_DEMO_DESCRIPTIONS = (
    "Figure captured in three-quarter view with synthetic overlays merging organic and digital forms; {info}. "
    "The composition creates dialogue between human presence and algorithmic intervention.",
    "Environmental portrait situating subject within data-driven architecture; {info}. "
    "Lighting suggests artificial sources while maintaining naturalistic skin rendering.",
    "Close examination of gesture and interface, hands positioned to suggest manipulation of invisible systems; {info}. "
    "The frame crops tightly to emphasize tactile relationship with digital space.",
    "Wide shot revealing figure dwarfed by generative patterns suggesting infinite recursive systems; {info}. "
    "Multiple light sources create complex shadow networks across the surface.",
)

# Spread multiplier per dimension position; the last dimension also sits 5 points lower
_DEMO_SPREAD = (1.0, 1.2, 1.0, 0.8, 1.0)
DEMO_VARIANCE = 15
DEMO_MIN_SCORE = 20
DEMO_MAX_SCORE = 95


class SyntheticEvaluator(VisionEvaluator):
    """
    Demo evaluator producing plausible, tiered scores without any network call.

    A quality draw q in [0, 1) picks a base score (30 / 50 / 70 / 85) and
    drives the gates, flags and confidence. With a seed, results are
    deterministic per (seed, image, persona).
    """

    source = EvaluationSource.SYNTHETIC

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed

    def _rng(self, image: ImagePayload, persona: CuratorPersona) -> random.Random:
        if self.seed is None:
            return random.Random()
        return random.Random(f"{self.seed}:{image.sha256}:{persona.id}")

    @staticmethod
    def base_score(quality: float) -> int:
        if quality < 0.2:
            return 30
        if quality < 0.5:
            return 50
        if quality < 0.8:
            return 70
        return 85

    async def evaluate(self, image: ImagePayload, persona: CuratorPersona) -> Evaluation:
        rng = self._rng(image, persona)
        quality = rng.random()
        base = self.base_score(quality)

        keys = persona.registry.keys
        scores: Dict[str, float] = {}
        for position, key in enumerate(keys):
            spread = _DEMO_SPREAD[position % len(_DEMO_SPREAD)]
            offset = -5 if position == len(keys) - 1 and len(keys) > 1 else 0
            jitter = math.floor((rng.random() - 0.5) * DEMO_VARIANCE * spread)
            scores[key] = float(max(DEMO_MIN_SCORE, min(DEMO_MAX_SCORE, base + offset + jitter)))

        if quality > 0.6:
            ethics = EthicsProcess.VISIBLE
        elif quality > 0.3:
            ethics = EthicsProcess.UNCLEAR
        else:
            ethics = EthicsProcess.MISSING
        gate = Gate(
            compositional_integrity=quality > 0.3,
            artifact_control=quality > 0.25,
            ethics_process=ethics,
        )
        flags = ("weak_print", "halo_edge") if quality < 0.4 else ()

        info = " with ".join(
            (
                "portrait orientation" if rng.random() > 0.5 else "landscape orientation",
                "high contrast" if rng.random() > 0.5 else "subtle tonal range",
                "high resolution capture" if image.size_bytes > 100_000 else "compressed format",
            )
        )
        return Evaluation(
            raw=RawScoreSet(scores=scores, flags=flags, gate=gate),
            source=self.source,
            i_see=rng.choice(_DEMO_DESCRIPTIONS).format(info=info),
            rationales={
                d.key: f"Demo assessment of {d.display_name.lower() or d.key}; "
                       "configure an API key for a real critique."
                for d in persona.registry
            },
            confidence=round(0.6 + quality * 0.35, 4),
        )


def build_evaluator(settings, client: Optional[httpx.AsyncClient] = None) -> VisionEvaluator:
    """Select the evaluator strategy from EVALUATOR_MODE (auto picks anthropic iff a key is set)."""
    if settings.use_anthropic:
        api_key = settings.ANTHROPIC_API_KEY.get_secret_value() if settings.ANTHROPIC_API_KEY else ""
        logger.info(f"Using Anthropic vision evaluator ({settings.VISION_MODEL})")
        return AnthropicVisionEvaluator(
            api_key=api_key,
            model=settings.VISION_MODEL,
            max_tokens=settings.LLM_MAX_TOKENS,
            timeout=settings.LLM_TIMEOUT_SECONDS,
            api_url=settings.ANTHROPIC_API_URL,
            api_version=settings.ANTHROPIC_API_VERSION,
            client=client,
        )
    logger.info("Using synthetic evaluator (no API key configured)")
    return SyntheticEvaluator(seed=settings.SYNTHETIC_SEED)
