"""Core domain models for the tweet import system."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional, Tuple

from ..utils.dates import parse_datetime, to_iso


@dataclass(frozen=True)
class Post:
    """A single tweet as read from the archive export."""

    id: str
    text: str
    created_at: datetime
    author_id: str
    full_text: Optional[str] = None
    in_reply_to_id: Optional[str] = None
    in_reply_to_author_id: Optional[str] = None
    entities: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        """Validate post on creation."""
        if not self.id:
            raise ValueError("Post id cannot be empty")
        if self.created_at is None:
            raise ValueError(f"Post {self.id} has no creation date")

    @property
    def content(self) -> str:
        """Full text when the archive carries it, plain text otherwise."""
        return self.full_text or self.text or ""

    @property
    def is_retweet(self) -> bool:
        """Archive retweets start with the "RT @user" marker."""
        return self.content.startswith("RT @")


@dataclass(frozen=True)
class EmbeddableThread:
    """A reply chain reduced to one preprocessed text blob."""

    id: str
    text: str
    username: str
    created_at: datetime
    post_ids: Tuple[str, ...] = ()
    last_post_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.text:
            raise ValueError(f"Thread {self.id} text cannot be empty")
        if self.last_post_at is None:
            object.__setattr__(self, "last_post_at", self.created_at)


@dataclass(frozen=True)
class ImportHistoryEntry:
    """Ledger record of the last successful import for one author."""

    username: str
    last_import_date: datetime
    last_tweet_date: datetime
    tweet_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the ledger's camelCase keys."""
        return {
            "lastImportDate": to_iso(self.last_import_date),
            "lastTweetDate": to_iso(self.last_tweet_date),
            "tweetCount": self.tweet_count,
        }

    @classmethod
    def from_dict(cls, username: str, data: Dict[str, Any]) -> Optional["ImportHistoryEntry"]:
        """Build an entry from a ledger record; None when any field is unusable."""
        last_tweet = parse_datetime(data.get("lastTweetDate"))
        if last_tweet is None:
            return None
        last_import = parse_datetime(data.get("lastImportDate")) or last_tweet
        try:
            tweet_count = int(data.get("tweetCount") or 0)
        except (TypeError, ValueError):
            return None
        return cls(
            username=username,
            last_import_date=last_import,
            last_tweet_date=last_tweet,
            tweet_count=tweet_count,
        )


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImportJob:
    """Client-visible state of one import run."""

    id: str
    start_time: datetime
    username: str = "unknown"
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    total: int = 0
    error: Optional[str] = None
    end_time: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    archive_path: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "username": self.username,
            "status": self.status.value,
            "progress": self.progress,
            "total": self.total,
            "error": self.error,
            "startTime": to_iso(self.start_time),
            "endTime": to_iso(self.end_time),
            "result": self.result,
            "archivePath": self.archive_path,
        }


@dataclass
class IndexPoint:
    """A fully processed point ready for storage."""

    id: str
    vector: List[float]
    payload: Dict[str, Any]

    def __post_init__(self):
        """Validate point on creation."""
        if not self.id:
            raise ValueError("Point ID cannot be empty")
        if not self.vector:
            raise ValueError("Point vector cannot be empty")
        if not isinstance(self.vector, list):
            raise TypeError(f"Vector must be a list, got {type(self.vector)}")
        if not all(isinstance(x, (int, float)) for x in self.vector):
            raise TypeError("Vector must contain only numeric values")

    @property
    def dimension(self) -> int:
        """Get vector dimension."""
        return len(self.vector)

    def validate_dimension(self, expected: int) -> bool:
        """Check if vector has expected dimension."""
        return self.dimension == expected


@dataclass
class TweetArchive:
    """Account metadata plus the posts of one archive export."""

    account_id: str
    username: str
    display_name: str
    posts: List[Post] = field(default_factory=list)


@dataclass
class ImportResult:
    """Result of an import run."""

    username: str
    success_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    total_count: int = 0
    newest_tweet_date: Optional[datetime] = None
    points_in_collection: Optional[int] = None
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "username": self.username,
            "successCount": self.success_count,
            "skippedCount": self.skipped_count,
            "errorCount": self.error_count,
            "totalCount": self.total_count,
            "newestTweetDate": to_iso(self.newest_tweet_date),
            "pointsInCollection": self.points_in_collection,
            "durationSeconds": round(self.duration_seconds, 3),
        }

    def summary(self) -> str:
        """Generate summary string."""
        return (
            f"Import summary for {self.username}:\n"
            f"  Successfully processed: {self.success_count} threads\n"
            f"  Skipped (already exists): {self.skipped_count} tweets\n"
            f"  Errors encountered: {self.error_count}\n"
            f"  Total tweets after filtering: {self.total_count}\n"
            f"  Total items in collection: {self.points_in_collection}\n"
            f"  Duration: {self.duration_seconds:.2f}s"
        )


@dataclass(frozen=True)
class SearchHit:
    """One semantic search result."""

    id: str
    text: str
    username: str
    created_at: Optional[str]
    original_id: Optional[str]
    score: float
