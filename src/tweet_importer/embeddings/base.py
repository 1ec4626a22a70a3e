"""Abstract base class for embedding providers."""

import asyncio
import math
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from ..core.exceptions import EmbeddingError


class EmbeddingProvider(ABC):
    """
    Abstract interface for embedding providers.

    Providers turn one text into one fixed-length, L2-normalised vector.
    Synchronous model work is exposed through ``embed_texts``; ``embed`` is
    the async single-text entry point used by the batcher.
    """

    def __init__(self):
        self._last_error: Optional[Exception] = None
        self._initialized: bool = False

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the embedding provider.

        Raises:
            EmbeddingError: If initialization fails
        """
        pass

    @abstractmethod
    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Raises:
            EmbeddingError: If embedding generation fails
        """
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of embeddings produced by this provider."""
        pass

    @abstractmethod
    def validate_embedding(self, embedding: List[float]) -> bool:
        """Validate that an embedding is well-formed and not degenerate."""
        pass

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text without blocking the event loop.

        Raises:
            EmbeddingError: If embedding generation fails
        """
        vectors = await asyncio.to_thread(self.embed_texts, [text])
        if len(vectors) != 1:
            raise EmbeddingError(
                f"Expected 1 embedding, got {len(vectors)}",
                provider=self.__class__.__name__,
            )
        return vectors[0]

    def get_last_error(self) -> Optional[Exception]:
        """Retrieve the last error for diagnostics."""
        return self._last_error

    def is_initialized(self) -> bool:
        """Check if provider is initialized and ready."""
        return self._initialized

    def get_provider_info(self) -> Dict[str, Any]:
        """Get information about this embedding provider."""
        return {
            "provider": self.__class__.__name__,
            "initialized": self._initialized,
            "dimension": self.get_dimension() if self._initialized else None,
            "has_error": self._last_error is not None
        }


def l2_normalize(vector: List[float]) -> List[float]:
    """Scale a vector to unit length; zero vectors are returned unchanged."""
    norm = math.sqrt(sum(x * x for x in vector))
    if norm == 0:
        return list(vector)
    return [x / norm for x in vector]
