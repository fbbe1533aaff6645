"""
Domain exceptions shared by every pipeline stage.

Each error carries a stable ``error_code`` and the HTTP status the transport
layer should answer with. The core never imports FastAPI; ``main.py`` maps
these onto ``ErrorResponse`` bodies.
"""

from __future__ import annotations


class MarkerflowError(Exception):
    """Base class for all expected pipeline failures."""

    error_code:  str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(self, message: str, *, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class ValidationError(MarkerflowError):
    """Malformed or unsafe identifier (namespace segment, artifact id, kind)."""

    error_code  = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(MarkerflowError):
    """Referenced namespace, upload, marker or embedding artifact is absent."""

    error_code  = "NOT_FOUND"
    http_status = 404


class ExtractionError(MarkerflowError):
    """Content parsing failed. Never cached, so the next call retries."""

    error_code  = "EXTRACTION_ERROR"
    http_status = 422


class DeletionError(MarkerflowError):
    """A cascade step failed for a reason other than the file being absent."""

    error_code  = "DELETION_INCOMPLETE"
    http_status = 500


class UpstreamUnavailable(MarkerflowError):
    """
    Raised by an embedding strategy to hand over to the next one.
    Never escapes EmbeddingProvider.embed().
    """

    error_code  = "UPSTREAM_UNAVAILABLE"
    http_status = 503
