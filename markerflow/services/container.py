"""
Service wiring — one object graph per application instance.

    services = build_services(settings)
    app.state.services = services

Tests build their own graph against a temporary data_root (or swap a single
collaborator, e.g. an EmbeddingProvider with only the deterministic strategy).
"""

from __future__ import annotations

from dataclasses import dataclass

from markerflow.core.config import Settings
from markerflow.embeddings.factory import build_embedding_provider
from markerflow.embeddings.provider import EmbeddingProvider
from markerflow.processing.extraction_cache import ExtractionCache
from markerflow.services.deletion import CascadeDeletionEngine
from markerflow.services.pipeline import PipelineService
from markerflow.storage.artifacts import ArtifactStore
from markerflow.storage.index import UploadIndex
from markerflow.storage.registry import NamespaceRegistry


@dataclass
class Services:
    settings: Settings
    store:    ArtifactStore
    index:    UploadIndex
    registry: NamespaceRegistry
    cache:    ExtractionCache
    provider: EmbeddingProvider
    pipeline: PipelineService
    deletion: CascadeDeletionEngine


def build_services(settings: Settings, provider: EmbeddingProvider | None = None) -> Services:
    store    = ArtifactStore(settings)
    index    = UploadIndex(settings.upload_index_path)
    registry = NamespaceRegistry(settings.registry_path, index=index)
    cache    = ExtractionCache(store)
    provider = provider or build_embedding_provider(settings)

    return Services(
        settings=settings,
        store=store,
        index=index,
        registry=registry,
        cache=cache,
        provider=provider,
        pipeline=PipelineService(settings, store, index, registry, cache, provider),
        deletion=CascadeDeletionEngine(store, index, cache),
    )
