from markerflow.storage.artifacts import ArtifactKind, ArtifactStore, cache_id, child_id
from markerflow.storage.index import UploadIndex
from markerflow.storage.registry import NamespaceRegistry

__all__ = [
    "ArtifactKind",
    "ArtifactStore",
    "child_id",
    "cache_id",
    "UploadIndex",
    "NamespaceRegistry",
]
