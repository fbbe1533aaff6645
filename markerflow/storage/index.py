"""
Upload Index — which namespace owns which upload.

Backed by a single JSON array (uploads.json). Mutations are serialised by an
asyncio.Lock so a read-modify-write from one request can never drop another's
entry. Reads go straight to disk; writes are atomic renames, so a reader always
sees a complete file.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from markerflow.core.namespace import Namespace, is_safe_segment
from markerflow.storage.jsonfile import read_json, write_json_atomic

logger = logging.getLogger(__name__)


class UploadIndex:

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def entries(self) -> list[dict]:
        data = read_json(self._path, [])
        if not isinstance(data, list):
            logger.error("Upload index %s is not a list, ignoring", self._path)
            return []
        return [e for e in data if isinstance(e, dict)]

    def list_uploads(self, namespace: Namespace) -> list[str]:
        return [
            e["filename"]
            for e in self.entries()
            if e.get("username") == namespace.user
            and e.get("projectName") == namespace.project
            and e.get("filename")
        ]

    def owns(self, namespace: Namespace, upload_id: str) -> bool:
        return upload_id in self.list_uploads(namespace)

    def namespaces(self) -> set[Namespace]:
        """Every well-formed namespace referenced by an entry."""
        found: set[Namespace] = set()
        for e in self.entries():
            user = str(e.get("username") or "").strip()
            project = str(e.get("projectName") or "").strip()
            if is_safe_segment(user) and is_safe_segment(project):
                found.add(Namespace(user=user, project=project))
        return found

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add(self, namespace: Namespace, upload_id: str, original_name: str) -> None:
        async with self._lock:
            records = self.entries()
            records.append({
                "username":     namespace.user,
                "projectName":  namespace.project,
                "filename":     upload_id,
                "originalName": original_name,
                "createdAt":    datetime.now(timezone.utc).isoformat(),
            })
            write_json_atomic(self._path, records)

    async def remove(self, namespace: Namespace, upload_id: str) -> bool:
        """Drop the entry for ``upload_id``. Returns False if there was none."""
        async with self._lock:
            records = self.entries()
            kept = [
                e for e in records
                if not (
                    e.get("username") == namespace.user
                    and e.get("projectName") == namespace.project
                    and e.get("filename") == upload_id
                )
            ]
            if len(kept) == len(records):
                return False
            write_json_atomic(self._path, kept)
            return True
