"""
Pipeline Service

Orchestrates the three pipeline stages for one namespace:

  upload             raw bytes → uploads/<upload_id>            (+ index, + registry)
  derive_markers     every upload → canonical text → markers     (sequential)
  derive_embeddings  every marker artifact → embedding artifact  (records in parallel)

plus the read accessors the transport layer needs (listings, views).

Error policy:
  - ValidationError / NotFoundError propagate immediately.
  - An ExtractionError for one upload is recorded on that file's summary entry;
    the rest of the batch continues and ``success`` is False.
  - The embedding provider is total, so embedding never fails per record.

Invariant: a namespace is registered before any artifact is written under it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections import Counter

from markerflow.core.config import Settings
from markerflow.core.errors import ExtractionError, NotFoundError, ValidationError
from markerflow.core.namespace import Namespace
from markerflow.embeddings.provider import EmbeddingProvider
from markerflow.processing.extraction_cache import ExtractionCache
from markerflow.processing.markers import derive_markers
from markerflow.schemas.pipeline import (
    ArtifactListing,
    EmbeddingBatchResult,
    EmbeddingFileSummary,
    EmbeddingView,
    ItemStatus,
    MarkerBatchResult,
    MarkerFileSummary,
    MarkerView,
    UploadResponse,
    UploadView,
)
from markerflow.storage.artifacts import ArtifactKind, ArtifactStore, child_id, require_artifact_id
from markerflow.storage.index import UploadIndex
from markerflow.storage.registry import NamespaceRegistry

logger = logging.getLogger(__name__)


class PipelineService:
    """
    One instance per application; all collaborators are injected.
    """

    def __init__(
        self,
        settings: Settings,
        store:    ArtifactStore,
        index:    UploadIndex,
        registry: NamespaceRegistry,
        cache:    ExtractionCache,
        provider: EmbeddingProvider,
    ) -> None:
        self._settings = settings
        self._store    = store
        self._index    = index
        self._registry = registry
        self._cache    = cache
        self._provider = provider

    # ------------------------------------------------------------------
    # Stage 1 — upload
    # ------------------------------------------------------------------

    async def upload(self, namespace: Namespace, original_name: str, data: bytes) -> UploadResponse:
        original_name = (original_name or "").strip()
        if not original_name:
            raise ValidationError("Missing file name.")
        if not data:
            raise ValidationError("No file uploaded.", details=["the uploaded file is empty"])
        if len(data) > self._settings.max_upload_bytes:
            raise ValidationError(
                "Uploaded file is too large.",
                details=[f"received {len(data):,} bytes; limit is {self._settings.max_upload_bytes:,}"],
            )

        await self._registry.ensure_namespace(namespace)

        upload_id = self._store.create_upload(
            namespace, original_name, data, created_ms=int(time.time() * 1000),
        )
        await self._index.add(namespace, upload_id, original_name)

        return UploadResponse(
            filename=upload_id,
            original_name=original_name,
            size_bytes=len(data),
            username=namespace.user,
            project_name=namespace.project,
        )

    # ------------------------------------------------------------------
    # Stage 2 — markers
    # ------------------------------------------------------------------

    async def derive_markers(self, namespace: Namespace) -> MarkerBatchResult:
        uploads = [u for u in self._index.list_uploads(namespace) if self._store.upload_exists(u)]
        if not uploads:
            raise NotFoundError("No uploaded files found.")

        await self._registry.ensure_namespace(namespace)

        summary: list[MarkerFileSummary] = []
        for upload_id in uploads:
            summary.append(await self._derive_one_marker_file(namespace, upload_id))

        produced = sum(1 for s in summary if s.status is ItemStatus.OK)
        skipped  = sum(1 for s in summary if s.status is ItemStatus.SKIPPED)
        failed   = sum(1 for s in summary if s.status is ItemStatus.FAILED)

        logger.info(
            "Markers done | ns=%s produced=%d skipped=%d failed=%d",
            namespace, produced, skipped, failed,
        )
        return MarkerBatchResult(
            success=failed == 0,
            message="Marker files created." if failed == 0 else "Marker files created with errors.",
            produced=produced,
            skipped=skipped,
            failed=failed,
            summary=summary,
        )

    async def _derive_one_marker_file(self, namespace: Namespace, upload_id: str) -> MarkerFileSummary:
        if not self._cache.supports(upload_id):
            return MarkerFileSummary(
                file=upload_id, status=ItemStatus.SKIPPED, error="unsupported file type",
            )

        try:
            text = await self._cache.get_canonical_text(upload_id)
        except (ExtractionError, NotFoundError) as exc:
            logger.warning("Markers | ns=%s file=%s failed: %s", namespace, upload_id, exc)
            return MarkerFileSummary(file=upload_id, status=ItemStatus.FAILED, error=str(exc))

        markers = derive_markers(
            text,
            min_length=self._settings.marker_min_line_length,
            max_fields=self._settings.marker_max_fields,
        )
        marker_id = child_id(upload_id, ArtifactKind.MARKER)
        self._store.write_markers(namespace, marker_id, [m.to_dict() for m in markers])

        logger.info(
            "Markers | ns=%s file=%s marker_file=%s fields=%d",
            namespace, upload_id, marker_id, len(markers),
        )
        return MarkerFileSummary(file=upload_id, marker_file=marker_id, fields=len(markers))

    # ------------------------------------------------------------------
    # Stage 3 — embeddings
    # ------------------------------------------------------------------

    async def derive_embeddings(self, namespace: Namespace) -> EmbeddingBatchResult:
        marker_ids = self._store.list_markers(namespace)
        if not marker_ids:
            raise NotFoundError("No marker JSONs found.")

        await self._registry.ensure_namespace(namespace)

        semaphore = asyncio.Semaphore(self._settings.embedding_concurrency)
        summary: list[EmbeddingFileSummary] = []
        for marker_id in marker_ids:
            summary.append(await self._embed_one_marker_file(namespace, marker_id, semaphore))

        produced = sum(1 for s in summary if s.status is ItemStatus.OK)
        failed   = sum(1 for s in summary if s.status is ItemStatus.FAILED)

        logger.info("Embeddings done | ns=%s produced=%d failed=%d", namespace, produced, failed)
        return EmbeddingBatchResult(
            success=failed == 0,
            message="Embeddings created." if failed == 0 else "Embeddings created with errors.",
            dimensions=self._provider.dimensions,
            produced=produced,
            failed=failed,
            summary=summary,
        )

    async def _embed_one_marker_file(
        self,
        namespace: Namespace,
        marker_id: str,
        semaphore: asyncio.Semaphore,
    ) -> EmbeddingFileSummary:
        try:
            records = self._store.read_markers(namespace, marker_id)
        except (NotFoundError, json.JSONDecodeError) as exc:
            logger.warning("Embeddings | ns=%s file=%s unreadable: %s", namespace, marker_id, exc)
            return EmbeddingFileSummary(file=marker_id, status=ItemStatus.FAILED, error=str(exc))
        if not isinstance(records, list):
            return EmbeddingFileSummary(
                file=marker_id, status=ItemStatus.FAILED, error="marker file is not a JSON array",
            )

        candidates: list[tuple[str, str]] = []
        skipped = 0
        for item in records:
            item = item if isinstance(item, dict) else {}
            text = str(item.get("value") or "").strip()
            if len(text) < self._settings.embedding_min_text_length:
                skipped += 1
                continue
            candidates.append((str(item.get("field", "")), text))

        async def _embed(text: str):
            async with semaphore:
                return await self._provider.embed_with_source(text)

        results = await asyncio.gather(*(_embed(text) for _, text in candidates))

        embedded = [
            {"field": field, "text": text, "embedding": result.vector}
            for (field, text), result in zip(candidates, results)
        ]
        embedding_id = child_id(marker_id, ArtifactKind.EMBEDDING)
        self._store.write_embeddings(namespace, embedding_id, embedded)

        strategies = Counter(r.strategy for r in results)
        logger.info(
            "Embeddings | ns=%s file=%s embedded=%d skipped=%d strategies=%s",
            namespace, marker_id, len(embedded), skipped, dict(strategies),
        )
        return EmbeddingFileSummary(
            file=marker_id,
            embedding_file=embedding_id,
            embedded_count=len(embedded),
            skipped=skipped,
            strategies=dict(strategies),
        )

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def list_artifacts(self, namespace: Namespace) -> ArtifactListing:
        return ArtifactListing(
            uploaded_files=self._index.list_uploads(namespace),
            marked_files=self._store.list_markers(namespace),
            embedded_files=self._store.list_embeddings(namespace),
        )

    async def view_upload(self, namespace: Namespace, upload_id: str) -> UploadView:
        upload_id = require_artifact_id(upload_id)
        if not self._index.owns(namespace, upload_id):
            raise NotFoundError(f"Upload '{upload_id}' not found in {namespace}.")
        text = await self._cache.get_canonical_text(upload_id)
        return UploadView(filename=upload_id, content=text)

    def view_marker(self, namespace: Namespace, marker_id: str) -> MarkerView:
        marker_id = require_artifact_id(marker_id)
        return MarkerView(filename=marker_id, records=self._store.read_markers(namespace, marker_id))

    def view_embedding(self, namespace: Namespace, embedding_id: str) -> EmbeddingView:
        embedding_id = require_artifact_id(embedding_id)
        return EmbeddingView(
            filename=embedding_id,
            records=self._store.read_embeddings(namespace, embedding_id),
        )
