"""
Extraction Cache — upload id → canonical text, computed once.

    get_canonical_text(upload_id)
      1. upload missing                 → NotFoundError
      2. outputs/<upload_id>.md exists  → return it (cache hit, no parsing)
      3. dispatch on the upload's extension:
           supported   → extractor output
           unsupported → UNSUPPORTED_TEXT sentinel
      4. persist atomically, return

An ExtractionError in step 3 propagates and nothing is written, so the next call
retries. Concurrent misses for the same upload share one parse (per-upload lock).
"""

from __future__ import annotations

import asyncio
import logging
import weakref

from markerflow.core.errors import NotFoundError
from markerflow.processing.formats import (
    UNSUPPORTED_TEXT,
    BaseFormatExtractor,
    default_extractors,
)
from markerflow.storage.artifacts import ArtifactStore, upload_extension
from markerflow.storage.jsonfile import write_text_atomic

logger = logging.getLogger(__name__)


class ExtractionCache:

    def __init__(
        self,
        store:      ArtifactStore,
        extractors: dict[str, BaseFormatExtractor] | None = None,
    ) -> None:
        self._store      = store
        self._extractors = extractors if extractors is not None else default_extractors()
        # Held only while some call is working on the upload.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self.hits   = 0
        self.misses = 0

    def supports(self, upload_id: str) -> bool:
        return upload_extension(upload_id) in self._extractors

    async def get_canonical_text(self, upload_id: str) -> str:
        if not self._store.upload_exists(upload_id):
            raise NotFoundError(f"Upload '{upload_id}' not found.")

        lock = self._locks.get(upload_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[upload_id] = lock
        async with lock:
            cached = self._read_cached(upload_id)
            if cached is not None:
                self.hits += 1
                logger.debug("ExtractionCache hit | upload_id=%s", upload_id)
                return cached

            self.misses += 1
            extractor = self._extractors.get(upload_extension(upload_id))
            if extractor is None:
                logger.info("ExtractionCache | unsupported type upload_id=%s", upload_id)
                text = UNSUPPORTED_TEXT
            else:
                data = self._store.read_upload(upload_id)
                text = await extractor.extract(data)

            write_text_atomic(self._store.cache_path(upload_id), text)
            logger.info(
                "ExtractionCache miss | upload_id=%s chars=%d cached=%s",
                upload_id, len(text), self._store.cache_path(upload_id).name,
            )
            return text

    def invalidate(self, upload_id: str) -> bool:
        """Drop the cached text. False if nothing was cached."""
        self._locks.pop(upload_id, None)
        return self._store.remove(self._store.cache_path(upload_id))

    def _read_cached(self, upload_id: str) -> str | None:
        try:
            with open(self._store.cache_path(upload_id), encoding="utf-8", newline="") as fh:
                return fh.read()
        except FileNotFoundError:
            return None
