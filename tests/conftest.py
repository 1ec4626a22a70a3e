"""Shared fixtures: archive builders, a deterministic embedder and an in-memory index."""

import hashlib
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

from tweet_importer.core import ImportConfig, IndexPoint, Post
from tweet_importer.core.exceptions import EmbeddingError, StorageError
from tweet_importer.embeddings import EmbeddingBatcher, EmbeddingProvider, l2_normalize
from tweet_importer.main import TweetImportPipeline
from tweet_importer.processors import ArchiveParser, ThreadBuilder
from tweet_importer.state import CutoffResolver, ImportHistory

ACCOUNT_ID = "1001"
USERNAME = "Alice"
DIMENSION = 8
BASE_TIME = datetime(2023, 5, 1, 12, 0, tzinfo=timezone.utc)


def archive_date(minutes: int) -> str:
    """Archive-format timestamp ``minutes`` after BASE_TIME."""
    return (BASE_TIME + timedelta(minutes=minutes)).strftime("%a %b %d %H:%M:%S %z %Y")


def make_post(post_id, text, minutes=0, reply_to=None, author=ACCOUNT_ID, **kwargs) -> Post:
    return Post(
        id=str(post_id),
        text=text,
        full_text=kwargs.pop("full_text", text),
        created_at=BASE_TIME + timedelta(minutes=minutes),
        author_id=author,
        in_reply_to_id=str(reply_to) if reply_to else None,
        in_reply_to_author_id=kwargs.pop("reply_author", author if reply_to else None),
        **kwargs
    )


def raw_tweet(post_id, text, minutes=0, reply_to=None, reply_author=None) -> Dict:
    return {
        "tweet": {
            "id_str": str(post_id),
            "id": str(post_id),
            "full_text": text,
            "created_at": archive_date(minutes),
            "entities": {},
            "in_reply_to_status_id_str": str(reply_to) if reply_to else None,
            "in_reply_to_user_id_str": reply_author,
        }
    }


def write_archive(path, tweets: List[Dict], username: str = USERNAME) -> str:
    data = {
        "account": [{"account": {"accountId": ACCOUNT_ID, "username": username,
                                 "accountDisplayName": "Alice A."}}],
        "tweets": tweets,
    }
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class HashEmbeddingProvider(EmbeddingProvider):
    """Deterministic stand-in: vectors derived from a hash of the text."""

    def __init__(self, dimension: int = DIMENSION, fail_on: Optional[str] = None):
        super().__init__()
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls: List[str] = []

    def initialize(self) -> None:
        self._initialized = True

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        vectors = []
        for text in texts:
            self.calls.append(text)
            if self.fail_on and self.fail_on in text:
                raise EmbeddingError(f"backend rejected {text!r}", provider="hash")
            digest = hashlib.sha256(text.encode("utf-8")).digest()
            vectors.append(l2_normalize([b + 1.0 for b in digest[:self.dimension]]))
        return vectors

    def get_dimension(self) -> int:
        return self.dimension

    def validate_embedding(self, embedding: List[float]) -> bool:
        return len(embedding) == self.dimension


class InMemoryStorage:
    """Async stand-in for QdrantStorage that keeps points in a dict."""

    def __init__(self, fail_upsert_on: Optional[int] = None, fail_sample: bool = False):
        self.collections: Dict[str, Dict[str, IndexPoint]] = {}
        self.indexing_threshold: Dict[str, int] = {}
        self.upsert_calls = 0
        self.fail_upsert_on = fail_upsert_on
        self.fail_sample = fail_sample
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    async def ensure_collection(self, name, vector_size, shard_number=2) -> bool:
        if name in self.collections:
            return False
        self.collections[name] = {}
        self.indexing_threshold[name] = 0
        return True

    async def upsert_points(self, collection, points) -> int:
        self.upsert_calls += 1
        if self.fail_upsert_on == self.upsert_calls:
            raise StorageError("upsert_points", collection, "boom", details={"status_code": 500})
        for point in points:
            self.collections[collection][point.id] = point
        return len(points)

    async def reenable_indexing(self, collection, threshold=20000) -> None:
        self.indexing_threshold[collection] = threshold

    async def count_points(self, collection) -> int:
        return len(self.collections.get(collection, {}))

    async def sample_points(self, collection, username, limit=100):
        if self.fail_sample:
            raise StorageError("scroll", collection, "unreachable")
        matches = [
            SimpleNamespace(id=p.id, payload=p.payload)
            for p in self.collections.get(collection, {}).values()
            if p.payload.get("username") == username
        ]
        return matches[:limit]

    async def delete_collection(self, name) -> bool:
        return self.collections.pop(name, None) is not None

    async def close(self) -> None:
        self.initialized = False

    def payloads(self, collection="tweets") -> List[Dict]:
        return [p.payload for p in self.collections.get(collection, {}).values()]


@pytest.fixture
def config(tmp_path):
    return ImportConfig(
        embedding_dimension=DIMENSION,
        chunk_size=500,
        embedding_batch_size=4,
        embedding_timeout=5.0,
        history_file=str(tmp_path / "import-history.json"),
    )


@pytest.fixture
def provider():
    return HashEmbeddingProvider()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def history(config):
    return ImportHistory(config.history_file_path)


def build_pipeline(config, storage, provider, history) -> TweetImportPipeline:
    return TweetImportPipeline(
        config=config,
        storage=storage,
        embedding_provider=provider,
        batcher=EmbeddingBatcher(provider, config.embedding_batch_size, config.embedding_timeout),
        history=history,
        resolver=CutoffResolver(history, storage, config.collection_name, config.sample_limit),
        thread_builder=ThreadBuilder(),
        parser=ArchiveParser(),
    )


@pytest.fixture
def pipeline(config, storage, provider, history):
    return build_pipeline(config, storage, provider, history)
