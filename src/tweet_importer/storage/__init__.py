"""Storage backends for vector data and archive files."""

from .archive_store import ArchiveStore
from .qdrant_storage import QdrantStorage, build_filter, error_details

__all__ = ["ArchiveStore", "QdrantStorage", "build_filter", "error_details"]
