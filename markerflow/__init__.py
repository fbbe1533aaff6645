"""markerflow — upload → markers → embeddings, with cascade deletion."""

__version__ = "1.0.0"
