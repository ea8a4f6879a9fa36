"""
Logging Setup - Curation Critique Service
curation/logging_config.py

The scoring core logs through structlog (event name + key/value pairs);
services and routers use stdlib logging. Both are configured here once,
at application startup.
"""

import logging

import structlog


def configure_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure stdlib logging and structlog with a shared level."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%H:%M:%S',
    )
    logging.getLogger().setLevel(numeric_level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )
