"""
Cascade Deletion Engine

    delete(kind, namespace, artifact_id)

Removal sequence per kind (linear, no branching):

  upload     1. uploads/<id>                         ← target
             2. markers/<u>/<p>/child_id(id, MARKER)
             3. embeds/<u>/<p>/child_id(marker, EMBEDDING)
             4. outputs/<id>.md                      (extraction cache)
             5. upload index entry
  marker     1. markers/<u>/<p>/<id>                 ← target
             2. embeds/<u>/<p>/child_id(id, EMBEDDING)
  embed      1. embeds/<u>/<p>/<id>                  ← target

Step contract:
  - A missing TARGET raises NotFoundError. For an upload whose bytes are gone
    but whose index entry remains, the cascade still runs first so the entry
    (and anything derived from it) does not outlive the bytes.
  - A missing descendant is not an error: logged at DEBUG and listed as absent.
  - Any other OSError on a descendant (permission denied, EIO, …) is logged,
    the remaining steps still run, and DeletionError is raised at the end
    naming the failed steps.

No lock is held across steps. A crash mid-cascade can leave orphaned
descendants; sweep_orphans() removes them on demand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable

from markerflow.core.errors import DeletionError, NotFoundError
from markerflow.core.namespace import Namespace
from markerflow.processing.extraction_cache import ExtractionCache
from markerflow.storage.artifacts import (
    ArtifactKind,
    ArtifactStore,
    cache_id,
    child_id,
    require_artifact_id,
)
from markerflow.storage.index import UploadIndex

logger = logging.getLogger(__name__)


@dataclass
class DeletionResult:
    kind:    ArtifactKind
    target:  str
    removed: list[str] = field(default_factory=list)
    absent:  list[str] = field(default_factory=list)


@dataclass
class SweepResult:
    removed_uploads:    list[str] = field(default_factory=list)
    removed_markers:    list[str] = field(default_factory=list)
    removed_embeddings: list[str] = field(default_factory=list)


# A cascade step returns True when it removed something, False when already absent.
_Step = tuple[str, Callable[[], Awaitable[bool]]]


class CascadeDeletionEngine:

    def __init__(
        self,
        store: ArtifactStore,
        index: UploadIndex,
        cache: ExtractionCache,
    ) -> None:
        self._store = store
        self._index = index
        self._cache = cache

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def delete(
        self,
        kind:        ArtifactKind | str,
        namespace:   Namespace,
        artifact_id: str,
    ) -> DeletionResult:
        kind = kind if isinstance(kind, ArtifactKind) else ArtifactKind.parse(kind)
        artifact_id = require_artifact_id(artifact_id)

        if kind is ArtifactKind.UPLOAD and not self._index.owns(namespace, artifact_id):
            raise NotFoundError(f"Upload '{artifact_id}' not found in {namespace}.")

        target = self._store.path_for(kind, namespace, artifact_id)
        if not self._store.remove(target):
            if kind is ArtifactKind.UPLOAD:
                logger.warning(
                    "Delete | ns=%s upload bytes missing, pruning index entry upload_id=%s",
                    namespace, artifact_id,
                )
                stale = DeletionResult(kind=kind, target=artifact_id)
                await self._run_steps(self._cascade_steps(kind, namespace, artifact_id), stale)
            raise NotFoundError(f"{kind.value.capitalize()} file '{artifact_id}' not found.")

        logger.info("Delete | ns=%s kind=%s target=%s", namespace, kind.value, artifact_id)

        result = DeletionResult(kind=kind, target=artifact_id)
        await self._run_steps(self._cascade_steps(kind, namespace, artifact_id), result)
        return result

    async def sweep_orphans(self, namespace: Namespace) -> SweepResult:
        """
        Remove index entries whose upload bytes are gone, markers whose upload is
        gone and embeddings whose marker is gone.
        On-demand only; never runs automatically.
        """
        result = SweepResult()

        live_uploads: list[str] = []
        for upload_id in self._index.list_uploads(namespace):
            if self._store.upload_exists(upload_id):
                live_uploads.append(upload_id)
            elif await self._index.remove(namespace, upload_id):
                self._cache.invalidate(upload_id)
                result.removed_uploads.append(upload_id)

        expected_markers = {child_id(u, ArtifactKind.MARKER) for u in live_uploads}

        for marker_id in self._store.list_markers(namespace):
            if marker_id not in expected_markers:
                if self._store.remove(self._store.marker_path(namespace, marker_id)):
                    result.removed_markers.append(marker_id)

        live_markers = {child_id(m, ArtifactKind.EMBEDDING) for m in self._store.list_markers(namespace)}
        for embedding_id in self._store.list_embeddings(namespace):
            if embedding_id not in live_markers:
                if self._store.remove(self._store.embedding_path(namespace, embedding_id)):
                    result.removed_embeddings.append(embedding_id)

        logger.info(
            "Sweep | ns=%s removed_uploads=%d removed_markers=%d removed_embeddings=%d",
            namespace, len(result.removed_uploads),
            len(result.removed_markers), len(result.removed_embeddings),
        )
        return result

    # ------------------------------------------------------------------
    # Cascade plans
    # ------------------------------------------------------------------

    def _cascade_steps(self, kind: ArtifactKind, namespace: Namespace, artifact_id: str) -> list[_Step]:
        if kind is ArtifactKind.EMBEDDING:
            return []

        if kind is ArtifactKind.MARKER:
            embedding_id = child_id(artifact_id, ArtifactKind.EMBEDDING)
            return [
                (embedding_id, self._unlink(self._store.embedding_path(namespace, embedding_id))),
            ]

        marker_id    = child_id(artifact_id, ArtifactKind.MARKER)
        embedding_id = child_id(marker_id, ArtifactKind.EMBEDDING)

        async def _drop_cache() -> bool:
            return self._cache.invalidate(artifact_id)

        async def _drop_index_entry() -> bool:
            return await self._index.remove(namespace, artifact_id)

        return [
            (marker_id,              self._unlink(self._store.marker_path(namespace, marker_id))),
            (embedding_id,           self._unlink(self._store.embedding_path(namespace, embedding_id))),
            (cache_id(artifact_id),  _drop_cache),
            ("upload index entry",   _drop_index_entry),
        ]

    def _unlink(self, path: Path) -> Callable[[], Awaitable[bool]]:
        async def _step() -> bool:
            return self._store.remove(path)
        return _step

    # ------------------------------------------------------------------
    # Step runner
    # ------------------------------------------------------------------

    async def _run_steps(self, steps: list[_Step], result: DeletionResult) -> None:
        failures: list[str] = []

        for label, step in steps:
            try:
                removed = await step()
            except OSError as exc:
                logger.error(
                    "Delete cascade step failed | target=%s step=%s error=%s",
                    result.target, label, exc,
                )
                failures.append(f"{label}: {exc}")
                continue

            if removed:
                result.removed.append(label)
                logger.info("Delete cascade | target=%s removed=%s", result.target, label)
            else:
                result.absent.append(label)
                logger.debug("Delete cascade | target=%s already absent=%s", result.target, label)

        if failures:
            raise DeletionError(
                f"'{result.target}' was deleted but {len(failures)} derived artifact(s) could not be removed.",
                details=failures,
            )
