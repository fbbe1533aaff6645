"""
Embedding Provider Factory

Builds the strategy chain from settings. The rest of the app only calls
build_embedding_provider() — never assembles strategies by hand.
"""

from __future__ import annotations

from markerflow.core.config import Settings
from markerflow.embeddings.base import EmbeddingStrategy
from markerflow.embeddings.provider import EmbeddingProvider
from markerflow.embeddings.strategies import (
    DeterministicStrategy,
    LocalModelStrategy,
    OpenAIEmbeddingStrategy,
)


def build_embedding_provider(settings: Settings) -> EmbeddingProvider:
    strategies: list[EmbeddingStrategy] = []

    if settings.local_embeddings_enabled:
        strategies.append(LocalModelStrategy(settings.local_embedding_model))

    if settings.openai_api_key:
        strategies.append(OpenAIEmbeddingStrategy(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            dimensions=settings.embedding_dimensions,
            timeout=settings.openai_timeout_seconds,
        ))

    strategies.append(DeterministicStrategy(settings.embedding_dimensions))
    return EmbeddingProvider(strategies, dimensions=settings.embedding_dimensions)
