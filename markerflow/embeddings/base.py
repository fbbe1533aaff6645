"""
Embedding Strategy — Abstract Base

Every way of turning text into a vector implements this interface. The
EmbeddingProvider only speaks this protocol, so strategies are injected and
reordered without touching pipeline code.

Contract (enforced by ALL implementations):
  - embed() returns a list of floats, ideally of the provider's dimension.
  - A strategy that cannot serve a request raises UpstreamUnavailable
    (model not installed, no credential, network error, bad response).
  - Any lazy state (loaded model, API client) is owned by the instance.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class EmbeddingStrategy(ABC):

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier used in logs and summaries."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed one text. Raise UpstreamUnavailable to hand over to the next strategy."""

    async def warmup(self) -> bool:
        """Prepare expensive state ahead of time. Returns True if usable."""
        return True
