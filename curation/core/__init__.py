"""
Core Package - Curation Critique Service
curation/core/__init__.py

Core infrastructure: dependencies, exceptions.
"""

from curation.core.exceptions import (
    ConfigError,
    CurationException,
    EvaluationNotFoundException,
    ExternalEvaluationFailure,
    PayloadTooLargeError,
    PersonaNotFoundException,
    ValidationError,
)

__all__ = [
    "ConfigError",
    "CurationException",
    "EvaluationNotFoundException",
    "ExternalEvaluationFailure",
    "PayloadTooLargeError",
    "PersonaNotFoundException",
    "ValidationError",
]
