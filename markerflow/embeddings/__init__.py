from markerflow.embeddings.base import EmbeddingStrategy
from markerflow.embeddings.factory import build_embedding_provider
from markerflow.embeddings.provider import Embedding, EmbeddingProvider
from markerflow.embeddings.strategies import (
    DeterministicStrategy,
    LocalModelStrategy,
    OpenAIEmbeddingStrategy,
    deterministic_embedding,
)

__all__ = [
    "EmbeddingStrategy",
    "EmbeddingProvider",
    "Embedding",
    "build_embedding_provider",
    "DeterministicStrategy",
    "LocalModelStrategy",
    "OpenAIEmbeddingStrategy",
    "deterministic_embedding",
]
