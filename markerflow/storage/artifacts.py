"""
Artifact Store — Filesystem-Backed, Namespace-Scoped

Layout (relative to Settings.data_root):

    uploads/<upload_id>                                 raw bytes (immutable)
    outputs/<upload_id>.md                              cached canonical text
    markers/<user>/<project>/<base>_markers.json        [{field, value}]
    embeds/<user>/<project>/<base>_embedding.json       [{field, text, embedding}]

Identity model:
    Derived artifact ids are pure functions of their parent id (child_id()).
    No lookup table is needed to find what an artifact produced, which is what
    lets the cascade deletion engine work from a single id.

    upload_id   = "<created_ms>_<user>_<project>_<stem><ext>"
    marker_id   = child_id(upload_id, MARKER)    → "<base>_markers.json"
    embedding_id= child_id(marker_id, EMBEDDING) → "<base>_embedding.json"
"""

from __future__ import annotations

import glob
import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any

from markerflow.core.config import Settings
from markerflow.core.errors import NotFoundError, ValidationError
from markerflow.core.namespace import Namespace, is_safe_segment
from markerflow.storage.jsonfile import write_json_atomic

logger = logging.getLogger(__name__)

MARKER_SUFFIX    = "_markers.json"
EMBEDDING_SUFFIX = "_embedding.json"
CACHE_SUFFIX     = ".md"

_STEM_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9_\-]")
_MAX_STEM_CHARS = 80


# ---------------------------------------------------------------------------
# Artifact kinds
# ---------------------------------------------------------------------------

class ArtifactKind(str, Enum):
    UPLOAD    = "upload"
    MARKER    = "marker"
    EMBEDDING = "embed"

    @classmethod
    def parse(cls, value: str) -> "ArtifactKind":
        v = (value or "").strip().lower()
        if v in ("embedding", "embeddings", "embeds"):
            v = "embed"
        elif v in ("uploads", "markers"):
            v = v[:-1]
        try:
            return cls(v)
        except ValueError:
            raise ValidationError(
                f"Invalid artifact type '{value}'.",
                details=["type must be one of: upload, marker, embed"],
            ) from None


# ---------------------------------------------------------------------------
# Identity derivation (pure)
# ---------------------------------------------------------------------------

def require_artifact_id(artifact_id: str | None) -> str:
    """Artifact ids are bare file names — anything path-like is rejected."""
    value = (artifact_id or "").strip()
    if not is_safe_segment(value):
        raise ValidationError(
            "Invalid artifact id.",
            details=["artifact id must be a bare file name"],
        )
    return value


def split_upload_id(upload_id: str) -> tuple[str, str]:
    """Return (base, ext) — ext keeps its leading dot and original case."""
    ext = Path(upload_id).suffix
    base = upload_id[: -len(ext)] if ext else upload_id
    return base, ext


def upload_extension(upload_id: str) -> str:
    return split_upload_id(upload_id)[1].lower()


def child_id(parent_id: str, stage: ArtifactKind) -> str:
    """
    Derive the id of the artifact produced from ``parent_id`` at ``stage``.

    MARKER    : parent is an upload id
    EMBEDDING : parent is a marker id
    """
    if stage is ArtifactKind.MARKER:
        base, _ = split_upload_id(parent_id)
        return f"{base}{MARKER_SUFFIX}"
    if stage is ArtifactKind.EMBEDDING:
        if parent_id.lower().endswith(MARKER_SUFFIX):
            base = parent_id[: -len(MARKER_SUFFIX)]
        else:
            base = parent_id
        return f"{base}{EMBEDDING_SUFFIX}"
    raise ValueError(f"Uploads have no parent artifact (stage={stage})")


def cache_id(upload_id: str) -> str:
    return f"{upload_id}{CACHE_SUFFIX}"


def make_upload_id(namespace: Namespace, original_name: str, created_ms: int) -> str:
    """
    Build the upload identity from namespace, original name and creation time.
    The stem is sanitised; the extension is preserved so extraction can dispatch on it.
    """
    name = (original_name or "").replace("\\", "/").rsplit("/", 1)[-1]
    stem, ext = split_upload_id(name)
    safe_ext = _STEM_UNSAFE_RE.sub("", ext[1:]) if ext else ""
    safe_stem = _STEM_UNSAFE_RE.sub("_", stem)[:_MAX_STEM_CHARS] or "file"
    suffix = f".{safe_ext}" if safe_ext else ""
    return f"{created_ms}_{namespace.user}_{namespace.project}_{safe_stem}{suffix}"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ArtifactStore:
    """
    Keyed file storage for the three artifact kinds.

    Uploads and the extraction cache are global directories keyed by upload id;
    markers and embeddings are nested under <user>/<project>.
    """

    def __init__(self, settings: Settings) -> None:
        self._upload_dir = settings.upload_dir
        self._output_dir = settings.output_dir
        self._marker_dir = settings.marker_dir
        self._embed_dir  = settings.embed_dir

    def ensure_dirs(self) -> None:
        for d in (self._upload_dir, self._output_dir, self._marker_dir, self._embed_dir):
            d.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def upload_path(self, upload_id: str) -> Path:
        return self._upload_dir / upload_id

    def cache_path(self, upload_id: str) -> Path:
        return self._output_dir / cache_id(upload_id)

    def marker_dir(self, namespace: Namespace) -> Path:
        return self._marker_dir / namespace.user / namespace.project

    def embed_dir(self, namespace: Namespace) -> Path:
        return self._embed_dir / namespace.user / namespace.project

    def marker_path(self, namespace: Namespace, marker_id: str) -> Path:
        return self.marker_dir(namespace) / marker_id

    def embedding_path(self, namespace: Namespace, embedding_id: str) -> Path:
        return self.embed_dir(namespace) / embedding_id

    def path_for(self, kind: ArtifactKind, namespace: Namespace, artifact_id: str) -> Path:
        if kind is ArtifactKind.UPLOAD:
            return self.upload_path(artifact_id)
        if kind is ArtifactKind.MARKER:
            return self.marker_path(namespace, artifact_id)
        return self.embedding_path(namespace, artifact_id)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def create_upload(
        self,
        namespace:     Namespace,
        original_name: str,
        data:          bytes,
        created_ms:    int,
    ) -> str:
        """
        Store upload bytes exactly once. Opening with mode "xb" guarantees an
        existing upload is never overwritten. The timestamp is bumped on a clash,
        and also when another upload already has the same base (e.g. report.csv
        vs report.xlsx), since derived ids drop the extension.
        """
        self._upload_dir.mkdir(parents=True, exist_ok=True)
        ms = created_ms
        while True:
            upload_id = make_upload_id(namespace, original_name, ms)
            if self._base_taken(split_upload_id(upload_id)[0]):
                ms += 1
                continue
            try:
                with open(self.upload_path(upload_id), "xb") as fh:
                    fh.write(data)
            except FileExistsError:
                ms += 1
                continue
            logger.info(
                "Upload stored | ns=%s upload_id=%s bytes=%d",
                namespace, upload_id, len(data),
            )
            return upload_id

    def upload_exists(self, upload_id: str) -> bool:
        return self.upload_path(upload_id).is_file()

    def _base_taken(self, base: str) -> bool:
        """True if any stored upload maps to the same derived-artifact base."""
        if (self._upload_dir / base).exists():
            return True
        return any(
            split_upload_id(p.name)[0] == base
            for p in self._upload_dir.glob(f"{glob.escape(base)}.*")
        )

    def read_upload(self, upload_id: str) -> bytes:
        try:
            return self.upload_path(upload_id).read_bytes()
        except FileNotFoundError:
            raise NotFoundError(f"Upload '{upload_id}' not found.") from None

    # ------------------------------------------------------------------
    # Markers
    # ------------------------------------------------------------------

    def write_markers(self, namespace: Namespace, marker_id: str, records: list[dict]) -> Path:
        path = self.marker_path(namespace, marker_id)
        write_json_atomic(path, records)
        return path

    def read_markers(self, namespace: Namespace, marker_id: str) -> list[dict]:
        return self._read_json_artifact(self.marker_path(namespace, marker_id), "Marker")

    def list_markers(self, namespace: Namespace) -> list[str]:
        return self._list(self.marker_dir(namespace), MARKER_SUFFIX)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def write_embeddings(self, namespace: Namespace, embedding_id: str, records: list[dict]) -> Path:
        path = self.embedding_path(namespace, embedding_id)
        write_json_atomic(path, records)
        return path

    def read_embeddings(self, namespace: Namespace, embedding_id: str) -> list[dict]:
        return self._read_json_artifact(self.embedding_path(namespace, embedding_id), "Embedding")

    def list_embeddings(self, namespace: Namespace) -> list[str]:
        return self._list(self.embed_dir(namespace), EMBEDDING_SUFFIX)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    @staticmethod
    def remove(path: Path) -> bool:
        """
        Unlink ``path``. Returns False if it was already absent.
        Any other OSError propagates to the caller.
        """
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _list(directory: Path, suffix: str) -> list[str]:
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir() if p.is_file() and p.name.endswith(suffix))

    @staticmethod
    def _read_json_artifact(path: Path, label: str) -> Any:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFoundError(f"{label} file '{path.name}' not found.") from None
        return json.loads(raw)
