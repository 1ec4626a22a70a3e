"""Custom exception hierarchy for the tweet import system."""

from typing import Optional, Any


class ImporterError(Exception):
    """Base exception for all import-related errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(ImporterError):
    """Raised when input validation fails."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(f"Validation failed for {field}: {reason}")
        self.field = field
        self.value = value
        self.reason = reason


class EmbeddingError(ImporterError):
    """Raised when embedding generation or validation fails."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class StorageError(ImporterError):
    """Raised when vector index operations fail."""

    def __init__(
        self,
        operation: str,
        collection: str,
        reason: str,
        details: Optional[dict] = None,
    ):
        super().__init__(f"Storage {operation} failed for {collection}: {reason}", details)
        self.operation = operation
        self.collection = collection


class CollectionNotFoundError(StorageError):
    """Raised when the target collection does not exist yet."""

    def __init__(self, collection: str):
        super().__init__(
            operation="search",
            collection=collection,
            reason="No tweets found. Please import tweets first.",
        )


class ParseError(ImporterError):
    """Raised when reading or parsing an archive export fails."""

    def __init__(self, file_path: str, reason: str = ""):
        message = f"Failed to parse {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.reason = reason


class ThreadCycleError(ImporterError):
    """Raised when reply links form a cycle."""

    def __init__(self, post_ids: list):
        super().__init__(
            f"Reply cycle detected among {len(post_ids)} posts",
            details={"post_ids": list(post_ids)},
        )
        self.post_ids = list(post_ids)


class JobNotFoundError(ImporterError):
    """Raised when an import job id is unknown."""

    def __init__(self, job_id: str):
        super().__init__(f"Import job not found: {job_id}")
        self.job_id = job_id


class DownloadError(ImporterError):
    """Raised when a remote archive can't be fetched."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        super().__init__(
            f"Failed to download archive: {reason}",
            details={"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code
