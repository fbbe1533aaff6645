"""
Document Processing Package
════════════════════════════

The two text stages of the pipeline:

  Raw upload → Canonical text (cached) → Marker records

Modules
───────
  formats.py           Extension-selected extractors (PDF, CSV, XLSX, XLS)
  extraction_cache.py  Memoises upload → canonical text in outputs/<upload_id>.md
  markers.py           Line heuristic that turns canonical text into Field_n records

Design principles
─────────────────
  • Every step is deterministic: same bytes → same text → same markers.
  • Blocking parsers run in the thread executor, never on the event loop.
  • Extraction failures surface as ExtractionError and are never cached.
"""

from markerflow.processing.extraction_cache import ExtractionCache
from markerflow.processing.formats import (
    SUPPORTED_EXTENSIONS,
    UNSUPPORTED_TEXT,
    BaseFormatExtractor,
    default_extractors,
)
from markerflow.processing.markers import MarkerRecord, derive_markers

__all__ = [
    "ExtractionCache",
    "BaseFormatExtractor",
    "default_extractors",
    "SUPPORTED_EXTENSIONS",
    "UNSUPPORTED_TEXT",
    "MarkerRecord",
    "derive_markers",
]
