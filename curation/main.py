import signal
import asyncio
import logging
from datetime import datetime, timezone

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from curation.config import settings
from curation.core.exceptions import (
    ConfigError,
    CurationException,
    EvaluationNotFoundException,
    PayloadTooLargeError,
    PersonaNotFoundException,
    ValidationError,
)
from curation.logging_config import configure_logging

# IMPORT ROUTERS
from curation.routers.health import router as health_router
from curation.routers.curators import router as curators_router
from curation.routers.scoring import router as scoring_router
from curation.routers.curation import router as curation_router
from curation.routers.curation import validation_exception_handler
from curation.routers.evaluations import router as evaluations_router

from curation.shutdown import clear_shutdown, set_shutdown

configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


# SWAGGER UI - tag display order
_OPENAPI_TAGS = [
    {"name": "Root"},
    {"name": "Health"},
    {"name": "Curators"},
    {"name": "Scoring"},
    {"name": "Curation"},
    {"name": "Evaluations"},
]

# FASTAPI APPLICATION CONFIGURATION
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    openapi_tags=_OPENAPI_TAGS,
)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


# DOMAIN EXCEPTION HANDLERS
def _error(status_code: int, error_code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


async def payload_too_large_handler(request: Request, exc: PayloadTooLargeError):
    return _error(
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        "PAYLOAD_TOO_LARGE",
        exc.message,
        {"size": exc.size, "limit": exc.limit},
    )


async def scoring_validation_handler(request: Request, exc: ValidationError):
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        exc.message,
        {"field": exc.field} if exc.field else None,
    )


async def config_error_handler(request: Request, exc: ConfigError):
    logger.error(f"Scoring configuration error: {exc.message}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "CONFIG_ERROR", exc.message)


async def persona_not_found_handler(request: Request, exc: PersonaNotFoundException):
    return _error(
        status.HTTP_404_NOT_FOUND,
        "CURATOR_NOT_FOUND",
        f"Curator '{exc.curator_id}' not found",
        {"curator_id": exc.curator_id},
    )


async def evaluation_not_found_handler(request: Request, exc: EvaluationNotFoundException):
    return _error(status.HTTP_404_NOT_FOUND, "EVALUATION_NOT_FOUND", str(exc), {"key": exc.key})


async def curation_exception_handler(request: Request, exc: CurationException):
    logger.error(f"Unhandled curation error: {exc}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "CURATION_ERROR", str(exc))


# REGISTER EXCEPTION HANDLERS
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(PayloadTooLargeError, payload_too_large_handler)
app.add_exception_handler(ValidationError, scoring_validation_handler)
app.add_exception_handler(ConfigError, config_error_handler)
app.add_exception_handler(PersonaNotFoundException, persona_not_found_handler)
app.add_exception_handler(EvaluationNotFoundException, evaluation_not_found_handler)
app.add_exception_handler(CurationException, curation_exception_handler)

# REGISTER ROUTERS (order matches _OPENAPI_TAGS / Swagger UI display order)
app.include_router(health_router)       # Health
app.include_router(curators_router)     # Curators
app.include_router(scoring_router)      # Scoring
app.include_router(curation_router)     # Curation
app.include_router(evaluations_router)  # Evaluations


# ROOT ENDPOINT
@app.get("/", tags=["Root"], summary="Root endpoint")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc"
        },
        "status": "running"
    }


# STARTUP EVENT
@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION} ({settings.APP_ENV})")
    clear_shutdown()

    # Register signal handlers for graceful shutdown (Ctrl+C / kill)
    loop = asyncio.get_running_loop()

    def _signal_handler(sig):
        logger.warning(f"Received {sig.name}; finishing in-flight evaluations")
        set_shutdown()

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler, sig)
    except (NotImplementedError, RuntimeError):
        # Windows, or a loop outside the main thread (TestClient)
        logger.info("Signal handlers not supported here; relying on shutdown event")


# SHUTDOWN EVENT
@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.APP_NAME}...")
    set_shutdown()  # Ensure flag is set even if signal handler didn't fire


# RUN WITH UVICORN
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "curation.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
