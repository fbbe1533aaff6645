"""
Embedding Strategies
════════════════════

Tried in this order by the default provider:

  1. LocalModelStrategy
       sentence-transformers all-MiniLM-L6-v2 — 384 dims, mean pooled,
       L2-normalised. CPU friendly, no network. Optional dependency: when the
       package or model weights are missing the load failure is remembered and
       the strategy stays unavailable for the life of the instance.

  2. OpenAIEmbeddingStrategy
       text-embedding-3-small with dimensions=384. Only wired in when an API
       key is configured.

  3. DeterministicStrategy
       sha256(text) seeds a PRNG that fills the vector with values in [-1, 1].
       Pure: identical output for identical (text, dimensions) across calls,
       processes and machines. Never raises.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import random
import time
from functools import partial
from typing import Any

from markerflow.core.errors import UpstreamUnavailable
from markerflow.embeddings.base import EmbeddingStrategy

logger = logging.getLogger(__name__)

DEFAULT_DIMENSIONS = 384


# ---------------------------------------------------------------------------
# Deterministic fallback
# ---------------------------------------------------------------------------

def deterministic_embedding(text: str, dimensions: int = DEFAULT_DIMENSIONS) -> list[float]:
    """Seeded from the SHA-256 digest of the UTF-8 text; values in [-1, 1]."""
    digest = hashlib.sha256(str(text).encode("utf-8")).digest()
    rng = random.Random(int.from_bytes(digest, "big"))
    return [rng.uniform(-1.0, 1.0) for _ in range(dimensions)]


class DeterministicStrategy(EmbeddingStrategy):

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS) -> None:
        self._dimensions = dimensions

    @property
    def name(self) -> str:
        return "deterministic"

    async def embed(self, text: str) -> list[float]:
        return deterministic_embedding(text, self._dimensions)


# ---------------------------------------------------------------------------
# Local semantic model
# ---------------------------------------------------------------------------

class LocalModelStrategy(EmbeddingStrategy):
    """
    Lazily loads a SentenceTransformer on first use and reuses it.

    Loading happens at most once per instance (guarded by an asyncio.Lock);
    both load and inference run in the default thread executor.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2") -> None:
        self._model_name = model_name
        self._model: Any = None
        self._load_error: Exception | None = None
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "local"

    async def warmup(self) -> bool:
        try:
            await self._get_model()
        except UpstreamUnavailable:
            return False
        return True

    async def embed(self, text: str) -> list[float]:
        model = await self._get_model()
        loop = asyncio.get_running_loop()
        try:
            vector = await loop.run_in_executor(
                None,
                partial(model.encode, text, normalize_embeddings=True),
            )
        except Exception as exc:
            raise UpstreamUnavailable(f"local model inference failed: {exc}") from exc
        return [float(x) for x in vector]

    async def _get_model(self) -> Any:
        if self._model is not None:
            return self._model
        if self._load_error is not None:
            raise UpstreamUnavailable(f"local model unavailable: {self._load_error}")

        async with self._lock:
            if self._model is None and self._load_error is None:
                loop = asyncio.get_running_loop()
                t0 = time.monotonic()
                try:
                    self._model = await loop.run_in_executor(None, self._load_sync)
                except Exception as exc:
                    self._load_error = exc
                    logger.warning(
                        "Local embedding model '%s' could not be loaded: %s",
                        self._model_name, exc,
                    )
                else:
                    logger.info(
                        "Local embedding model loaded | model=%s elapsed_ms=%.0f",
                        self._model_name, (time.monotonic() - t0) * 1000,
                    )

        if self._model is None:
            raise UpstreamUnavailable(f"local model unavailable: {self._load_error}")
        return self._model

    def _load_sync(self) -> Any:
        from sentence_transformers import SentenceTransformer  # optional extra

        return SentenceTransformer(self._model_name)


# ---------------------------------------------------------------------------
# OpenAI remote API
# ---------------------------------------------------------------------------

class OpenAIEmbeddingStrategy(EmbeddingStrategy):
    """
    Single-text embeddings via openai.AsyncOpenAI.
    Any client, network or API error is reported as UpstreamUnavailable.
    """

    def __init__(
        self,
        api_key:    str,
        model:      str   = "text-embedding-3-small",
        dimensions: int   = DEFAULT_DIMENSIONS,
        timeout:    float = 30.0,
    ) -> None:
        self._api_key    = api_key
        self._model      = model
        self._dimensions = dimensions
        self._timeout    = timeout
        self._client: Any = None

    @property
    def name(self) -> str:
        return "openai"

    def _get_client(self) -> Any:
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def embed(self, text: str) -> list[float]:
        if not self._api_key:
            raise UpstreamUnavailable("no OpenAI API key configured")

        t_api = time.monotonic()
        try:
            response = await self._get_client().embeddings.create(
                model=self._model,
                input=[text],
                dimensions=self._dimensions,
            )
            vector = list(response.data[0].embedding)
        except Exception as exc:
            raise UpstreamUnavailable(f"{type(exc).__name__}: {exc}") from exc

        logger.debug(
            "OpenAI embeddings | model=%s chars=%d api_ms=%.0f",
            self._model, len(text), (time.monotonic() - t_api) * 1000,
        )
        return vector
