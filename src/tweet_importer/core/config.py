"""Immutable configuration with validation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
import os


@dataclass(frozen=True)
class PreprocessingOptions:
    """
    Fully resolved tweet preprocessing options.

    Every field has an explicit default so callers never merge partial
    option sets; derive variants with ``dataclasses.replace``.
    """

    remove_urls: bool = True
    remove_leading_mentions: bool = True
    remove_all_mentions: bool = False
    remove_all_hashtags: bool = True
    keep_important_hashtags: Tuple[str, ...] = ()
    remove_retweet_prefix: bool = True
    min_length: int = 5
    convert_emojis: bool = False
    combine_threads: bool = True

    def __post_init__(self):
        if self.min_length < 0:
            raise ValueError(f"min_length cannot be negative, got {self.min_length}")
        # Accept lists from callers but keep the record hashable
        if not isinstance(self.keep_important_hashtags, tuple):
            object.__setattr__(
                self, "keep_important_hashtags", tuple(self.keep_important_hashtags)
            )


DEFAULT_PREPROCESSING = PreprocessingOptions()

# Used when turning archive tweets into embeddable threads
IMPORT_PREPROCESSING = PreprocessingOptions(
    keep_important_hashtags=("AI", "ML", "Crypto", "Tech"),
)

# Used for search queries: hashtags carry intent, short queries are fine
SEARCH_PREPROCESSING = PreprocessingOptions(
    remove_all_hashtags=False,
    min_length=2,
)

# Public archive bucket; {username} is filled in lowercased
DEFAULT_REMOTE_ARCHIVE_URL = (
    "https://fabxmporizzqflnftavs.supabase.co/storage/v1/object/public/archives/"
    "{username}/archive.json"
)


@dataclass(frozen=True)
class ImportConfig:
    """
    Immutable configuration for the tweet import system.

    All validation happens in __post_init__ to ensure configuration
    is always in a valid state.
    """

    # Qdrant settings
    qdrant_url: str = field(default="http://localhost:6333")
    qdrant_api_key: Optional[str] = field(default=None)
    collection_name: str = field(default="tweets")
    shard_number: int = field(default=2)
    indexing_threshold: int = field(default=20000)
    request_timeout: int = field(default=30)

    # Embedding settings
    embedding_model: str = field(default="sentence-transformers/all-MiniLM-L6-v2")
    embedding_dimension: int = field(default=384)
    embedding_batch_size: int = field(default=50)
    embedding_timeout: Optional[float] = field(default=60.0)

    # Processing settings
    chunk_size: int = field(default=500)
    sample_limit: int = field(default=100)

    # State management
    history_file: str = field(default="~/.tweet-importer/import-history.json")

    # Remote archives
    remote_archive_url: str = field(default=DEFAULT_REMOTE_ARCHIVE_URL)
    download_dir: str = field(default="~/.tweet-importer/downloads")
    archives_dir: str = field(default="~/.tweet-importer/archives")
    download_timeout: float = field(default=120.0)

    # Operational settings
    log_level: str = field(default="INFO")
    force_reimport: bool = field(default=False)

    def __post_init__(self):
        """Validate configuration on initialization."""
        if not self.collection_name:
            raise ValueError("collection_name cannot be empty")

        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

        if self.embedding_batch_size < 1:
            raise ValueError(
                f"embedding_batch_size must be at least 1, got {self.embedding_batch_size}"
            )

        if self.embedding_dimension <= 0:
            raise ValueError(f"embedding_dimension must be positive, got {self.embedding_dimension}")

        if self.shard_number < 1:
            raise ValueError(f"shard_number must be at least 1, got {self.shard_number}")

        if self.indexing_threshold < 0:
            raise ValueError(
                f"indexing_threshold cannot be negative, got {self.indexing_threshold}"
            )

        if self.sample_limit < 1:
            raise ValueError(f"sample_limit must be at least 1, got {self.sample_limit}")

        if self.download_timeout <= 0:
            raise ValueError(f"download_timeout must be positive, got {self.download_timeout}")

        if "{username}" not in self.remote_archive_url:
            raise ValueError("remote_archive_url must contain a {username} placeholder")

        if self.embedding_timeout is not None and self.embedding_timeout <= 0:
            raise ValueError(
                f"embedding_timeout must be positive, got {self.embedding_timeout}"
            )

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got {self.log_level}")

    @property
    def history_file_path(self) -> Path:
        """Get expanded history file path with fallback."""
        try:
            return Path(self.history_file).expanduser()
        except (RuntimeError, OSError):
            # Fallback to current directory if expansion fails
            return Path.cwd() / "import-history.json"

    @property
    def download_dir_path(self) -> Path:
        """Where remote archives are written while they are imported."""
        return Path(self.download_dir).expanduser()

    @property
    def archives_dir_path(self) -> Path:
        """Where imported remote archives are kept on request."""
        return Path(self.archives_dir).expanduser()

    @classmethod
    def from_env(cls) -> "ImportConfig":
        """Create configuration from environment variables."""
        timeout = os.getenv("EMBEDDING_TIMEOUT", "60")
        return cls(
            qdrant_url=os.getenv("QDRANT_URL", "http://localhost:6333"),
            qdrant_api_key=os.getenv("QDRANT_API_KEY"),
            collection_name=os.getenv("COLLECTION_NAME", "tweets"),
            embedding_model=os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-MiniLM-L6-v2"),
            chunk_size=int(os.getenv("CHUNK_SIZE", "500")),
            embedding_batch_size=int(os.getenv("EMBEDDING_BATCH_SIZE", "50")),
            embedding_timeout=float(timeout) if timeout else None,
            indexing_threshold=int(os.getenv("INDEXING_THRESHOLD", "20000")),
            request_timeout=int(os.getenv("REQUEST_TIMEOUT", "30")),
            history_file=os.getenv("IMPORT_HISTORY_FILE", "~/.tweet-importer/import-history.json"),
            remote_archive_url=os.getenv("REMOTE_ARCHIVE_URL", DEFAULT_REMOTE_ARCHIVE_URL),
            download_dir=os.getenv("DOWNLOAD_DIR", "~/.tweet-importer/downloads"),
            archives_dir=os.getenv("ARCHIVES_DIR", "~/.tweet-importer/archives"),
            download_timeout=float(os.getenv("DOWNLOAD_TIMEOUT", "120")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            force_reimport=os.getenv("FORCE_REIMPORT", "false").lower() == "true",
        )

    @classmethod
    def from_dict(cls, config_dict: dict) -> "ImportConfig":
        """Create configuration from dictionary."""
        # Filter out any unknown keys
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_dict = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered_dict)
