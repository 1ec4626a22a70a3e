"""
Tweet Archive Importer
======================

Threads, deduplicates and embeds a Twitter archive export and upserts it
into a Qdrant collection for filtered semantic search.
"""

from .core.config import ImportConfig, PreprocessingOptions
from .core.models import Post, EmbeddableThread, ImportJob, ImportResult
from .main import TweetImportPipeline, ImportJobManager, ImporterContainer, create_container
from .service import TweetSearchService

__version__ = "1.0.0"
__all__ = [
    "ImportConfig",
    "PreprocessingOptions",
    "Post",
    "EmbeddableThread",
    "ImportJob",
    "ImportResult",
    "TweetImportPipeline",
    "ImportJobManager",
    "ImporterContainer",
    "create_container",
    "TweetSearchService"
]
