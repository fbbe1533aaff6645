"""
Pipeline API Router
/api/v1/namespaces/{user}/{project}/...

Thin transport over PipelineService and CascadeDeletionEngine: parse the
request, call one core operation, return its schema. No business logic here;
MarkerflowError subclasses are turned into ErrorResponse bodies by the
exception handler in main.py.

  POST    /uploads                      multipart "file"
  POST    /markers                      derive markers for every upload
  POST    /embeddings                   derive embeddings for every marker file
  GET     /artifacts                    per-kind listings
  GET     /uploads/{upload_id}/text     canonical text (extraction cache)
  GET     /markers/{marker_id}          marker JSON
  GET     /embeddings/{embedding_id}    embedding JSON
  DELETE  /{kind}/{artifact_id}         cascade delete
  POST    /sweep                        remove orphaned markers / embeddings
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, File, Request, UploadFile, status

from markerflow.api.dependencies import AppServices, ProjectScope
from markerflow.core.errors import ValidationError
from markerflow.schemas.pipeline import (
    ArtifactListing,
    DeletionResponse,
    EmbeddingBatchResult,
    EmbeddingView,
    ErrorResponse,
    MarkerBatchResult,
    MarkerView,
    SweepResponse,
    UploadResponse,
    UploadView,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/namespaces/{user}/{project}",
    tags=["Pipeline"],
    responses={
        400: {"model": ErrorResponse, "description": "Unsafe namespace or artifact id"},
        404: {"model": ErrorResponse, "description": "Namespace or artifact not found"},
    },
)


# ---------------------------------------------------------------------------
# Stage operations
# ---------------------------------------------------------------------------

@router.post(
    "/uploads",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document (PDF, CSV, XLSX, XLS)",
)
async def upload_file(
    request:   Request,
    namespace: ProjectScope,
    services:  AppServices,
    file:      UploadFile = File(..., description="Document file"),
) -> UploadResponse:
    # Guard: reject oversized requests before reading body
    content_length = request.headers.get("content-length")
    limit = services.settings.max_upload_bytes
    if content_length and content_length.isdigit() and int(content_length) > limit + 4096:
        raise ValidationError(
            "Uploaded file is too large.",
            details=[f"request is {int(content_length):,} bytes; limit is {limit:,}"],
        )

    data = await file.read()
    return await services.pipeline.upload(namespace, file.filename or "", data)


@router.post(
    "/markers",
    response_model=MarkerBatchResult,
    summary="Derive marker artifacts for every upload in the project",
)
async def create_markers(namespace: ProjectScope, services: AppServices) -> MarkerBatchResult:
    return await services.pipeline.derive_markers(namespace)


@router.post(
    "/embeddings",
    response_model=EmbeddingBatchResult,
    summary="Derive embedding artifacts for every marker artifact in the project",
)
async def create_embeddings(namespace: ProjectScope, services: AppServices) -> EmbeddingBatchResult:
    return await services.pipeline.derive_embeddings(namespace)


# ---------------------------------------------------------------------------
# Listings + views
# ---------------------------------------------------------------------------

@router.get("/artifacts", response_model=ArtifactListing, summary="List artifacts per kind")
async def list_artifacts(namespace: ProjectScope, services: AppServices) -> ArtifactListing:
    return services.pipeline.list_artifacts(namespace)


@router.get("/uploads/{upload_id}/text", response_model=UploadView, summary="Canonical text of an upload")
async def view_upload(upload_id: str, namespace: ProjectScope, services: AppServices) -> UploadView:
    return await services.pipeline.view_upload(namespace, upload_id)


@router.get("/markers/{marker_id}", response_model=MarkerView, summary="Marker artifact JSON")
async def view_marker(marker_id: str, namespace: ProjectScope, services: AppServices) -> MarkerView:
    return services.pipeline.view_marker(namespace, marker_id)


@router.get("/embeddings/{embedding_id}", response_model=EmbeddingView, summary="Embedding artifact JSON")
async def view_embedding(embedding_id: str, namespace: ProjectScope, services: AppServices) -> EmbeddingView:
    return services.pipeline.view_embedding(namespace, embedding_id)


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------

@router.delete(
    "/{kind}/{artifact_id}",
    response_model=DeletionResponse,
    summary="Delete an artifact and everything derived from it",
)
async def delete_artifact(
    kind:        str,
    artifact_id: str,
    namespace:   ProjectScope,
    services:    AppServices,
) -> DeletionResponse:
    result = await services.deletion.delete(kind, namespace, artifact_id)
    return DeletionResponse(
        kind=result.kind.value,
        target=result.target,
        removed=result.removed,
        absent=result.absent,
    )


@router.post("/sweep", response_model=SweepResponse, summary="Remove orphaned derived artifacts")
async def sweep_orphans(namespace: ProjectScope, services: AppServices) -> SweepResponse:
    result = await services.deletion.sweep_orphans(namespace)
    return SweepResponse(
        removed_uploads=result.removed_uploads,
        removed_markers=result.removed_markers,
        removed_embeddings=result.removed_embeddings,
    )
