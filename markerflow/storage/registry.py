"""
Namespace Registry — user → projects, with creation timestamps.

Persisted shape (db.json):

    {"users": {"<user>": {"createdAt": "...",
                          "projects": {"<project>": {"createdAt": "..."}}}}}

The whole document is read-modify-written on every mutation. All access goes
through one asyncio.Lock owned by the instance, making it the single writer
for the file; ensure_namespace() from two concurrent requests cannot lose an
update. Writes are temp-file-then-rename.

Namespaces referenced by the upload index but missing here are backfilled on
load and written back immediately (older data directories only had uploads.json).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

from markerflow.core.namespace import Namespace, require_safe_segment
from markerflow.storage.index import UploadIndex
from markerflow.storage.jsonfile import read_json, write_json_atomic

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class NamespaceRegistry:

    def __init__(self, path: Path, index: UploadIndex | None = None) -> None:
        self._path  = path
        self._index = index
        self._lock  = asyncio.Lock()

    # ------------------------------------------------------------------
    # Boundary contract
    # ------------------------------------------------------------------

    async def namespace_exists(self, namespace: Namespace) -> bool:
        async with self._lock:
            db = self._load()
        user = db["users"].get(namespace.user)
        return bool(user) and namespace.project in user.get("projects", {})

    async def ensure_namespace(self, namespace: Namespace) -> None:
        """Idempotent create of user + project."""
        async with self._lock:
            db = self._load()
            changed = self._ensure_user(db, namespace.user)
            projects = db["users"][namespace.user].setdefault("projects", {})
            if namespace.project not in projects:
                projects[namespace.project] = {"createdAt": _now_iso()}
                changed = True
                logger.info("Registry | created project ns=%s", namespace)
            if changed:
                write_json_atomic(self._path, db)

    # ------------------------------------------------------------------
    # User-level helpers
    # ------------------------------------------------------------------

    async def user_exists(self, user: str) -> bool:
        async with self._lock:
            db = self._load()
        return user in db["users"]

    async def ensure_user(self, user: str) -> None:
        require_safe_segment(user, "username")
        async with self._lock:
            db = self._load()
            if self._ensure_user(db, user):
                write_json_atomic(self._path, db)

    async def list_projects(self, user: str) -> list[str]:
        async with self._lock:
            db = self._load()
        return sorted(db["users"].get(user, {}).get("projects", {}))

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _load(self) -> dict:
        db = read_json(self._path, {"users": {}})
        if not isinstance(db, dict) or not isinstance(db.get("users"), dict):
            logger.error("Registry %s has unexpected shape, starting empty", self._path)
            db = {"users": {}}

        if self._index is None:
            return db

        backfilled = 0
        for ns in self._index.namespaces():
            backfilled += self._ensure_user(db, ns.user)
            projects = db["users"][ns.user].setdefault("projects", {})
            if ns.project not in projects:
                projects[ns.project] = {"createdAt": _now_iso()}
                backfilled += 1
        if backfilled:
            # createdAt is minted once, on the first load that sees the namespace.
            write_json_atomic(self._path, db)
            logger.info("Registry | backfilled %d entries from upload index", backfilled)
        return db

    @staticmethod
    def _ensure_user(db: dict, user: str) -> bool:
        if user in db["users"]:
            return False
        db["users"][user] = {"createdAt": _now_iso(), "projects": {}}
        logger.info("Registry | created user=%s", user)
        return True
