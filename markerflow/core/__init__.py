from markerflow.core.config import Settings, get_settings
from markerflow.core.errors import (
    DeletionError,
    ExtractionError,
    MarkerflowError,
    NotFoundError,
    UpstreamUnavailable,
    ValidationError,
)

__all__ = [
    "Settings",
    "get_settings",
    "MarkerflowError",
    "ValidationError",
    "NotFoundError",
    "ExtractionError",
    "DeletionError",
    "UpstreamUnavailable",
]
