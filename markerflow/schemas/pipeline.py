"""
Pipeline — Pydantic Response Schemas

Covers every operation the transport layer exposes:
  - upload / derive markers / derive embeddings (with per-file summaries)
  - artifact listings and view payloads
  - cascade deletion and orphan sweep results
  - structured error bodies (400, 404, 422, 500)

Design decisions:
  - Batch results always carry a per-file summary, so partial progress stays
    visible even when ``success`` is False.
  - Field names mirror the persisted JSON (`field`, `value`, `embedding`) so
    view payloads are the stored documents, unchanged.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

class MarkerRecordModel(BaseModel):
    field: str
    value: str


class EmbeddingRecordModel(BaseModel):
    field:     str
    text:      str
    embedding: list[float]


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    message:       str = "File uploaded successfully."
    filename:      str = Field(..., description="Server-generated upload id")
    original_name: str
    size_bytes:    int
    username:      str
    project_name:  str


# ---------------------------------------------------------------------------
# Batch summaries
# ---------------------------------------------------------------------------

class ItemStatus(str, Enum):
    OK      = "ok"
    SKIPPED = "skipped"    # unsupported type, nothing to do
    FAILED  = "failed"     # extraction or read error; batch continued


class MarkerFileSummary(BaseModel):
    file:        str
    marker_file: str | None = None
    fields:      int        = 0
    status:      ItemStatus = ItemStatus.OK
    error:       str | None = None


class MarkerBatchResult(BaseModel):
    success:  bool
    message:  str
    produced: int = 0
    skipped:  int = 0
    failed:   int = 0
    summary:  list[MarkerFileSummary] = Field(default_factory=list)


class EmbeddingFileSummary(BaseModel):
    file:           str
    embedding_file: str | None = None
    embedded_count: int        = 0
    skipped:        int        = Field(0, description="Marker values shorter than the minimum length")
    strategies:     dict[str, int] = Field(default_factory=dict, description="Vectors produced per strategy")
    status:         ItemStatus = ItemStatus.OK
    error:          str | None = None


class EmbeddingBatchResult(BaseModel):
    success:    bool
    message:    str
    dimensions: int
    produced:   int = 0
    failed:     int = 0
    summary:    list[EmbeddingFileSummary] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Listings + views
# ---------------------------------------------------------------------------

class ArtifactListing(BaseModel):
    uploaded_files: list[str] = Field(default_factory=list)
    marked_files:   list[str] = Field(default_factory=list)
    embedded_files: list[str] = Field(default_factory=list)


class UploadView(BaseModel):
    filename:     str
    content_type: str = "text/plain"
    content:      str


class MarkerView(BaseModel):
    filename: str
    records:  list[MarkerRecordModel]


class EmbeddingView(BaseModel):
    filename: str
    records:  list[EmbeddingRecordModel]


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------

class DeletionResponse(BaseModel):
    message: str = "Deleted successfully."
    kind:    str
    target:  str
    removed: list[str] = Field(default_factory=list, description="Derived artifacts removed by the cascade")
    absent:  list[str] = Field(default_factory=list, description="Cascade steps whose target was already gone")


class SweepResponse(BaseModel):
    removed_uploads:    list[str] = Field(default_factory=list, description="Index entries whose upload bytes were gone")
    removed_markers:    list[str] = Field(default_factory=list)
    removed_embeddings: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Registry read surface
# ---------------------------------------------------------------------------

class UserResponse(BaseModel):
    exists:   bool
    projects: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str        = Field(..., description="Machine-readable error code for client handling")


class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")
