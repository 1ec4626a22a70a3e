"""Qdrant vector database storage implementation."""

import json
import logging
from datetime import datetime
from typing import List, Optional, Dict, Any

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    DatetimeRange,
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    OptimizersConfigDiff,
    PayloadSchemaType,
    PointStruct,
    QuantizationSearchParams,
    ScalarQuantization,
    ScalarQuantizationConfig,
    ScalarType,
    ScoredPoint,
    SearchParams,
    VectorParams,
    CollectionInfo,
    Record,
)

from ..core import IndexPoint
from ..core.exceptions import StorageError, CollectionNotFoundError
from ..utils.dates import to_iso

logger = logging.getLogger(__name__)

# Payload fields that get secondary indexes for filtered queries
PAYLOAD_INDEXES = {
    "username": PayloadSchemaType.KEYWORD,
    "created_at": PayloadSchemaType.DATETIME,
    "original_id": PayloadSchemaType.KEYWORD,
}


def error_details(error: Exception) -> Dict[str, Any]:
    """Extract the structured error body from a Qdrant response, if any."""
    if isinstance(error, UnexpectedResponse):
        details: Dict[str, Any] = {"status_code": error.status_code}
        try:
            details["content"] = json.loads(error.content)
        except (TypeError, ValueError):
            details["content"] = error.content.decode("utf-8", "replace") if error.content else None
        return details
    return {}


def build_filter(
    username: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
) -> Optional[Filter]:
    """Conjunctive filter on username match and created_at range."""
    must = []
    if username:
        must.append(FieldCondition(key="username", match=MatchValue(value=username)))
    if since or until:
        must.append(
            FieldCondition(key="created_at", range=DatetimeRange(gte=since, lte=until))
        )
    return Filter(must=must) if must else None


class QdrantStorage:
    """
    Qdrant storage backend implementation.

    Handles all interactions with the Qdrant vector database through the
    async client so every call yields to the event loop.
    """

    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        timeout: int = 30,
        client: Optional[AsyncQdrantClient] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.client = client
        self._initialized = client is not None

    async def initialize(self) -> None:
        """Initialize connection to Qdrant."""
        if self._initialized:
            return
        try:
            self.client = AsyncQdrantClient(
                url=self.url,
                api_key=self.api_key,
                timeout=self.timeout
            )

            # Test connection
            await self.client.get_collections()
            self._initialized = True
            logger.info(f"Connected to Qdrant at {self.url}")

        except Exception as e:
            raise StorageError(
                operation="initialize",
                collection="N/A",
                reason=f"Failed to connect to Qdrant: {e}"
            )

    def _require_client(self, operation: str, collection: str) -> None:
        if not self._initialized:
            raise StorageError(
                operation=operation,
                collection=collection,
                reason="Storage not initialized"
            )

    async def collection_exists(self, name: str) -> bool:
        """Check if a collection exists."""
        self._require_client("collection_exists", name)
        try:
            collections = (await self.client.get_collections()).collections
            return any(c.name == name for c in collections)
        except Exception as e:
            raise StorageError(
                operation="collection_exists",
                collection=name,
                reason=str(e),
                details=error_details(e)
            )

    async def ensure_collection(self, name: str, vector_size: int, shard_number: int = 2) -> bool:
        """
        Create the collection for bulk loading if it doesn't exist.

        Vectors and payload live on disk, int8 quantized vectors stay in
        RAM for scoring, and index building is deferred (threshold 0) until
        ``reenable_indexing`` runs after the import.

        Returns:
            True if created, False if already exists
        """
        self._require_client("ensure_collection", name)

        if await self.collection_exists(name):
            logger.debug(f"Collection {name} already exists")
            return False

        try:
            logger.info(f"Creating '{name}' collection in Qdrant...")
            await self.client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(
                    size=vector_size,
                    distance=Distance.COSINE,
                    on_disk=True
                ),
                optimizers_config=OptimizersConfigDiff(indexing_threshold=0),
                shard_number=shard_number,
                on_disk_payload=True,
                quantization_config=ScalarQuantization(
                    scalar=ScalarQuantizationConfig(
                        type=ScalarType.INT8,
                        always_ram=True
                    )
                )
            )

            for field_name, schema in PAYLOAD_INDEXES.items():
                await self.client.create_payload_index(
                    collection_name=name,
                    field_name=field_name,
                    field_schema=schema,
                    wait=True
                )

            logger.info(f"Created collection {name} with dimension {vector_size}")
            return True

        except Exception as e:
            raise StorageError(
                operation="create_collection",
                collection=name,
                reason=str(e),
                details=error_details(e)
            )

    async def upsert_points(self, collection: str, points: List[IndexPoint]) -> int:
        """
        Insert or replace points, waiting until the write is durable.

        Returns:
            Number of points upserted
        """
        self._require_client("upsert_points", collection)

        if not points:
            return 0

        dimension = points[0].dimension
        for point in points:
            if not point.validate_dimension(dimension):
                raise StorageError(
                    operation="upsert_points",
                    collection=collection,
                    reason=f"Mixed vector dimensions ({dimension} vs {point.dimension})"
                )

        try:
            qdrant_points = [
                PointStruct(id=point.id, vector=point.vector, payload=point.payload)
                for point in points
            ]
            await self.client.upsert(
                collection_name=collection,
                points=qdrant_points,
                wait=True
            )

            logger.debug(f"Upserted {len(points)} points to {collection}")
            return len(points)

        except Exception as e:
            raise StorageError(
                operation="upsert_points",
                collection=collection,
                reason=str(e),
                details=error_details(e)
            )

    async def reenable_indexing(self, collection: str, threshold: int = 20000) -> None:
        """Restore the normal indexing threshold after a bulk load."""
        self._require_client("reenable_indexing", collection)
        try:
            await self.client.update_collection(
                collection_name=collection,
                optimizers_config=OptimizersConfigDiff(indexing_threshold=threshold)
            )
            logger.info(f"Re-enabled indexing on {collection} (threshold {threshold})")
        except Exception as e:
            raise StorageError(
                operation="reenable_indexing",
                collection=collection,
                reason=str(e),
                details=error_details(e)
            )

    async def get_collection_info(self, name: str) -> Optional[CollectionInfo]:
        """Get information about a collection."""
        if not self._initialized:
            return None

        try:
            return await self.client.get_collection(collection_name=name)
        except Exception as e:
            logger.error(f"Failed to get collection info: {e}")
            return None

    async def count_points(self, collection: str) -> int:
        """Count points in a collection."""
        info = await self.get_collection_info(collection)
        return (info.points_count or 0) if info else 0

    async def sample_points(self, collection: str, username: str, limit: int = 100) -> List[Record]:
        """Fetch up to ``limit`` points for a username, payload included."""
        self._require_client("sample_points", collection)
        try:
            points, _ = await self.client.scroll(
                collection_name=collection,
                scroll_filter=build_filter(username=username),
                limit=limit,
                with_payload=True,
                with_vectors=False
            )
            return points
        except Exception as e:
            raise StorageError(
                operation="scroll",
                collection=collection,
                reason=str(e),
                details=error_details(e)
            )

    async def search(
        self,
        collection: str,
        vector: List[float],
        limit: int = 5,
        username: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[ScoredPoint]:
        """
        Nearest-neighbour search with optional payload filters.

        Quantized scores are rescored against the original vectors.

        Raises:
            CollectionNotFoundError: If the collection doesn't exist
        """
        self._require_client("search", collection)
        try:
            response = await self.client.query_points(
                collection_name=collection,
                query=vector,
                query_filter=build_filter(username, since, until),
                limit=limit,
                with_payload=True,
                search_params=SearchParams(
                    quantization=QuantizationSearchParams(rescore=True, oversampling=1.5)
                )
            )
            return response.points
        except UnexpectedResponse as e:
            if e.status_code == 404:
                raise CollectionNotFoundError(collection)
            raise StorageError(
                operation="search",
                collection=collection,
                reason=str(e),
                details=error_details(e)
            )
        except Exception as e:
            if "not found" in str(e).lower():
                raise CollectionNotFoundError(collection)
            raise StorageError(operation="search", collection=collection, reason=str(e))

    async def delete_collection(self, name: str) -> bool:
        """Delete a collection."""
        self._require_client("delete_collection", name)

        if not await self.collection_exists(name):
            return False

        try:
            await self.client.delete_collection(collection_name=name)
            logger.info(f"Deleted collection {name}")
            return True

        except Exception as e:
            raise StorageError(
                operation="delete_collection",
                collection=name,
                reason=str(e),
                details=error_details(e)
            )

    async def health_check(self) -> Dict[str, Any]:
        """Check health of Qdrant connection."""
        if not self._initialized:
            return {"healthy": False, "reason": "Not initialized"}

        try:
            collections = await self.client.get_collections()
            return {
                "healthy": True,
                "url": self.url,
                "collections_count": len(collections.collections),
                "checked_at": to_iso(datetime.now().astimezone()),
            }
        except Exception as e:
            return {"healthy": False, "reason": str(e)}

    async def close(self) -> None:
        """Close the underlying client."""
        if self.client is not None:
            await self.client.close()
        self._initialized = False
