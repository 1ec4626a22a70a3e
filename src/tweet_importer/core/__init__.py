"""Core domain models and configuration."""

from .config import (
    ImportConfig,
    PreprocessingOptions,
    DEFAULT_PREPROCESSING,
    IMPORT_PREPROCESSING,
    SEARCH_PREPROCESSING
)
from .models import (
    Post,
    EmbeddableThread,
    ImportHistoryEntry,
    ImportJob,
    JobStatus,
    IndexPoint,
    TweetArchive,
    ImportResult,
    SearchHit
)
from .exceptions import (
    ImporterError,
    ValidationError,
    EmbeddingError,
    StorageError,
    CollectionNotFoundError,
    ParseError,
    ThreadCycleError,
    JobNotFoundError,
    DownloadError
)

__all__ = [
    "ImportConfig",
    "PreprocessingOptions",
    "DEFAULT_PREPROCESSING",
    "IMPORT_PREPROCESSING",
    "SEARCH_PREPROCESSING",
    "Post",
    "EmbeddableThread",
    "ImportHistoryEntry",
    "ImportJob",
    "JobStatus",
    "IndexPoint",
    "TweetArchive",
    "ImportResult",
    "SearchHit",
    "ImporterError",
    "ValidationError",
    "EmbeddingError",
    "StorageError",
    "CollectionNotFoundError",
    "ParseError",
    "ThreadCycleError",
    "JobNotFoundError",
    "DownloadError"
]
