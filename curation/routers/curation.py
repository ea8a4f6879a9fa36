"""
Image Curation API Router
curation/routers/curation.py

Endpoints:
  POST /api/v1/curation/evaluate   - Evaluate and score one image
  POST /api/v1/curation/batch      - Evaluate many images, normalize and rank
  POST /api/v1/curation/calibrate  - Evaluate an image against a gold standard

Also home of validation_exception_handler, registered in main.py.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from curation.config import settings
from curation.core.dependencies import get_curation_service
from curation.models.evaluation import (
    BatchRequest,
    BatchResponse,
    CalibrateRequest,
    CalibrateResponse,
    CurationItemResponse,
    ErrorResponse,
    EvaluateRequest,
)
from curation.services.curation_service import CurationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/curation", tags=["Curation"])


# =====================================================================
# Request validation messages
# =====================================================================

FIELD_MESSAGES = {
    "image": {
        "missing": "Image payload is required",
        "string_too_short": "Image payload cannot be empty",
        "string_type": "Image payload must be a base64 string or data URL",
    },
    "curator_id": {
        "string_too_short": "Curator ID cannot be empty",
        "string_too_long": "Curator ID must not exceed 50 characters",
        "string_type": "Curator ID must be a string",
    },
    "images": {
        "missing": "At least one image is required",
        "too_short": "At least one image is required",
        "too_long": "A batch may contain at most 200 images",
    },
    "gold_type": {
        "missing": "Gold standard type is required",
        "enum": "Gold standard must be high_quality, medium_quality or low_quality",
    },
    "top_n": {
        "less_than_equal": "top_n exceeds maximum allowed value",
        "greater_than_equal": "top_n must be >= 0",
        "int_type": "top_n must be an integer",
    },
}

DEFAULT_MESSAGES = {
    "missing": "Field '{field}' is required",
    "string_too_short": "Field '{field}' is too short",
    "string_too_long": "Field '{field}' is too long",
    "too_short": "Field '{field}' has too few items",
    "too_long": "Field '{field}' has too many items",
    "less_than_equal": "Field '{field}' exceeds maximum allowed value",
    "greater_than_equal": "Field '{field}' is below minimum allowed value",
    "string_type": "Field '{field}' must be a string",
    "float_type": "Field '{field}' must be a number",
    "float_parsing": "Field '{field}' must be a valid number",
    "int_type": "Field '{field}' must be an integer",
    "int_parsing": "Field '{field}' must be a valid integer",
    "bool_type": "Field '{field}' must be a boolean",
    "bool_parsing": "Field '{field}' must be a boolean",
    "dict_type": "Field '{field}' must be an object",
    "list_type": "Field '{field}' must be an array",
    "enum": "Field '{field}' has an unsupported value",
}


def get_validation_message(field: str, error_type: str) -> str:
    leaf = field.split(".")[-1] if field else field
    for name in (field, leaf):
        if name in FIELD_MESSAGES:
            for key in FIELD_MESSAGES[name]:
                if key in error_type:
                    return FIELD_MESSAGES[name][key]
    for key, template in DEFAULT_MESSAGES.items():
        if key in error_type:
            return template.format(field=field)
    return f"Invalid value for field '{field}'"


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error_code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": None,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
    err = errors[0]
    error_type = err.get("type", "")
    loc = err.get("loc", [])
    if "json_invalid" in error_type:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error_code": "INVALID_REQUEST",
                "message": "Malformed JSON request body",
                "details": None,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
    field = ".".join(str(l) for l in loc if l != "body")
    message = get_validation_message(field, error_type)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "VALIDATION_ERROR",
            "message": message,
            "details": {"field": field, "type": error_type} if field else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# =====================================================================
# POST /api/v1/curation/evaluate
# =====================================================================

@router.post(
    "/evaluate",
    response_model=CurationItemResponse,
    summary="Evaluate one image",
    description="""
    Sends one image to the configured vision evaluator and scores the result
    for the chosen curator on the absolute 0-100 scale. Upstream failures
    return a neutral fallback item (`fallback: true`, verdict EXCLUDE).
    """,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown curator"},
        413: {"model": ErrorResponse, "description": "Image payload too large"},
        422: {"model": ErrorResponse, "description": "Invalid image payload"},
    },
)
async def evaluate_image(
    body: EvaluateRequest,
    service: CurationService = Depends(get_curation_service),
):
    result = await service.evaluate_image(body.image, body.curator_id, image_id=body.image_id)
    return result.to_dict()


# =====================================================================
# POST /api/v1/curation/batch
# =====================================================================

@router.post(
    "/batch",
    response_model=BatchResponse,
    summary="Evaluate, normalize and rank a batch of images",
    description="""
    Evaluates every image concurrently, z-score normalizes the batch, restricts
    INCLUDE to the top fraction (when enabled) and runs the pairwise playoff
    over the strongest candidates. Returns one item per submitted image.
    """,
    responses={404: {"model": ErrorResponse, "description": "Unknown curator"}},
)
async def evaluate_batch(
    body: BatchRequest,
    service: CurationService = Depends(get_curation_service),
):
    images = [{"image": entry.image, "id": entry.id} for entry in body.images]
    result = await service.evaluate_batch(images, body.curator_id, top_n=body.top_n)
    return result.to_dict()


# =====================================================================
# POST /api/v1/curation/calibrate
# =====================================================================

@router.post(
    "/calibrate",
    response_model=CalibrateResponse,
    summary="Check evaluator drift against a gold standard",
    responses={
        404: {"model": ErrorResponse, "description": "Unknown curator"},
        422: {"model": ErrorResponse, "description": "Invalid payload or gold type"},
    },
)
async def calibrate(
    body: CalibrateRequest,
    service: CurationService = Depends(get_curation_service),
):
    return await service.calibrate(body.image, body.curator_id, body.gold_type.value)
