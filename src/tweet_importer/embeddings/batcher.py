"""Bounded-concurrency driver for an embedding provider."""

import asyncio
import logging
import time
from typing import List, Optional

from .base import EmbeddingProvider
from ..core.exceptions import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingBatcher:
    """
    Embed texts in fixed-size batches.

    Texts inside a batch are embedded concurrently; the next batch only
    starts once the whole current batch has finished, so at most
    ``batch_size`` calls are ever in flight. Output order matches input
    order.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        batch_size: int = 50,
        timeout: Optional[float] = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.provider = provider
        self.batch_size = batch_size
        self.timeout = timeout

    async def embed_all(self, texts: List[str]) -> List[List[float]]:
        """
        Generate one vector per text.

        Raises:
            EmbeddingError: If any text in any batch fails or times out
        """
        if not texts:
            return []

        start_time = time.time()
        vectors: List[List[float]] = []
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            batch_num = start // self.batch_size + 1
            logger.debug(f"Embedding batch {batch_num}/{total_batches} ({len(batch)} texts)")
            # Every call in the batch settles before a failure is raised
            outcomes = await asyncio.gather(
                *(self._embed_one(text) for text in batch), return_exceptions=True
            )
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
            vectors.extend(outcomes)

        logger.debug(f"Embedded {len(texts)} texts in {time.time() - start_time:.2f}s")
        return vectors

    async def _embed_one(self, text: str) -> List[float]:
        provider_name = self.provider.__class__.__name__
        try:
            if self.timeout is not None:
                return await asyncio.wait_for(self.provider.embed(text), timeout=self.timeout)
            return await self.provider.embed(text)
        except asyncio.TimeoutError:
            raise EmbeddingError(
                f"Embedding timed out after {self.timeout}s", provider=provider_name
            )
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}", provider=provider_name)
