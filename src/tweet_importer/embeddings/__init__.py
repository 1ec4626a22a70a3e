"""Embedding providers for text vectorization."""

from .base import EmbeddingProvider, l2_normalize
from .fastembed_provider import FastEmbedProvider
from .batcher import EmbeddingBatcher

__all__ = [
    "EmbeddingProvider",
    "FastEmbedProvider",
    "EmbeddingBatcher",
    "l2_normalize"
]
