"""Query-side operations over the tweet index."""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from .core import (
    ImportConfig,
    ImportHistoryEntry,
    ImportJob,
    SearchHit,
    SEARCH_PREPROCESSING
)
from .core.exceptions import ValidationError
from .embeddings import EmbeddingProvider
from .processors import clean_tweet
from .state import ImportHistory, JobStore
from .storage import QdrantStorage

logger = logging.getLogger(__name__)


class TweetSearchService:
    """Semantic search, import history lookup, job status and reset."""

    def __init__(
        self,
        config: ImportConfig,
        storage: QdrantStorage,
        embedding_provider: EmbeddingProvider,
        history: ImportHistory,
        job_store: JobStore
    ):
        self.config = config
        self.storage = storage
        self.embedding_provider = embedding_provider
        self.history = history
        self.job_store = job_store

    async def prepare(self) -> None:
        """Connect to Qdrant and load the embedding model."""
        await self.storage.initialize()
        if not self.embedding_provider.is_initialized():
            await asyncio.to_thread(self.embedding_provider.initialize)

    async def search(
        self,
        query: str,
        username: Optional[str] = None,
        limit: int = 5,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[SearchHit]:
        """
        Find tweets semantically close to ``query``.

        Raises:
            ValidationError: If the query is empty after preprocessing
            CollectionNotFoundError: If nothing has been imported yet
        """
        if not query:
            raise ValidationError("query", query, "Query is required")

        cleaned = clean_tweet(query, SEARCH_PREPROCESSING)
        if not cleaned:
            raise ValidationError("query", query, "Query is empty after preprocessing")
        logger.debug(f"Cleaned query: {cleaned!r}")

        await self.prepare()

        vector = await self.embedding_provider.embed(cleaned)
        points = await self.storage.search(
            self.config.collection_name,
            vector,
            limit=limit,
            username=username,
            since=since,
            until=until
        )

        hits = []
        for point in points:
            payload = point.payload or {}
            hits.append(
                SearchHit(
                    id=str(point.id),
                    text=payload.get("text", ""),
                    username=payload.get("username", ""),
                    created_at=payload.get("created_at"),
                    original_id=payload.get("original_id"),
                    score=point.score or 0.0
                )
            )
        return hits

    async def get_import_history(self, username: str) -> Optional[ImportHistoryEntry]:
        return await self.history.get_entry(username)

    def get_job(self, job_id: str) -> ImportJob:
        """Raises ``JobNotFoundError`` for unknown ids."""
        return self.job_store.require(job_id)

    async def delete_all_embeddings(self) -> bool:
        """
        Drop the collection and reset the import history.

        Returns:
            False when there was no collection to delete
        """
        await self.storage.initialize()
        deleted = await self.storage.delete_collection(self.config.collection_name)
        if deleted:
            await self.history.clear()
        return deleted
