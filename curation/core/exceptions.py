"""
Custom Exceptions - Curation Critique Service
curation/core/exceptions.py

Exception classes for the scoring pipeline and its collaborators.
"""


class CurationException(Exception):
    """Base exception for curation and scoring operations."""

    pass


class ConfigError(CurationException):
    """Malformed dimension registry, penalty table or verdict thresholds."""

    def __init__(self, message: str = "Invalid scoring configuration"):
        self.message = message
        super().__init__(message)


class ValidationError(CurationException):
    """A raw score, flag or request payload failed validation."""

    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(message)


class ExternalEvaluationFailure(CurationException):
    """The upstream vision evaluator failed or timed out."""

    def __init__(self, message: str = "Vision evaluation failed", reason: str = "error"):
        self.message = message
        self.reason = reason
        super().__init__(message)


class PersonaNotFoundException(CurationException, KeyError):
    """Unknown curator persona id."""

    def __init__(self, curator_id: str):
        self.curator_id = curator_id
        super().__init__(f"Curator '{curator_id}' not found")


class EvaluationNotFoundException(CurationException):
    """Stored evaluation not found in the history store."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Evaluation {key} not found")


class PayloadTooLargeError(ValidationError):
    """Image payload exceeds the configured byte limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Image payload of {size} bytes exceeds limit of {limit} bytes", field="image")
