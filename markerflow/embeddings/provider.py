"""
Embedding Provider — Ordered Strategy Chain, Total

    vector = await provider.embed(text)      # never raises

Each strategy is tried in order; the first one that returns a vector of the
provider's dimension wins. A strategy that raises, or returns the wrong
dimension, hands over to the next. The chain always ends with a
DeterministicStrategy (appended if the caller did not supply one), so the
provider cannot fail and every vector it returns has the same length.

Circuit breaker:
  If a strategy fails OPEN_THRESHOLD times in a row it is skipped for
  RESET_SECONDS. This keeps a batch from paying a network timeout per record
  while the remote API is down. State is per provider instance.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Sequence

from markerflow.core.errors import UpstreamUnavailable
from markerflow.embeddings.base import EmbeddingStrategy
from markerflow.embeddings.strategies import DEFAULT_DIMENSIONS, DeterministicStrategy

logger = logging.getLogger(__name__)


@dataclass
class _CircuitState:
    failures:       int   = 0
    open_until:     float = 0.0
    OPEN_THRESHOLD: int   = 3
    RESET_SECONDS:  int   = 60

    def is_open(self) -> bool:
        if self.failures < self.OPEN_THRESHOLD:
            return False
        if time.monotonic() >= self.open_until:
            self.failures = 0
            return False
        return True

    def record_failure(self) -> None:
        self.failures  += 1
        self.open_until = time.monotonic() + self.RESET_SECONDS

    def record_success(self) -> None:
        self.failures = 0


@dataclass(frozen=True)
class Embedding:
    vector:   list[float]
    strategy: str


class EmbeddingProvider:

    def __init__(
        self,
        strategies: Sequence[EmbeddingStrategy] = (),
        dimensions: int = DEFAULT_DIMENSIONS,
    ) -> None:
        chain = list(strategies)
        if not chain or not isinstance(chain[-1], DeterministicStrategy):
            chain.append(DeterministicStrategy(dimensions))
        self._strategies = chain
        self._dimensions = dimensions
        self._circuits: dict[int, _CircuitState] = {i: _CircuitState() for i in range(len(chain))}

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self._strategies]

    async def warmup(self) -> dict[str, bool]:
        """Load expensive strategy state up front (e.g. local model weights)."""
        return {s.name: await s.warmup() for s in self._strategies}

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_with_source(text)).vector

    async def embed_with_source(self, text: str) -> Embedding:
        last = len(self._strategies) - 1
        for idx, strategy in enumerate(self._strategies):
            circuit = self._circuits[idx]
            if idx != last and circuit.is_open():
                logger.debug("Embedding | skipping strategy=%s (circuit open)", strategy.name)
                continue

            try:
                vector = await strategy.embed(text)
                if len(vector) != self._dimensions:
                    raise UpstreamUnavailable(
                        f"expected {self._dimensions} dims, got {len(vector)}"
                    )
            except UpstreamUnavailable as exc:
                logger.debug("Embedding | strategy=%s unavailable: %s", strategy.name, exc)
                circuit.record_failure()
                continue
            except Exception as exc:
                logger.warning(
                    "Embedding | strategy=%s failed: %s: %s",
                    strategy.name, type(exc).__name__, exc,
                )
                circuit.record_failure()
                continue

            circuit.record_success()
            return Embedding(vector=vector, strategy=strategy.name)

        # Unreachable while the last strategy is deterministic.
        logger.error("Embedding | every strategy failed, using deterministic vector")
        return Embedding(
            vector=await DeterministicStrategy(self._dimensions).embed(text),
            strategy="deterministic",
        )
