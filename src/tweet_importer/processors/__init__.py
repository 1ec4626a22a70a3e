"""Archive parsing, text preprocessing and thread reconstruction."""

from .preprocessor import (
    clean_tweet,
    process_thread,
    unfurl_urls,
    is_valid_tweet,
    extract_hashtags,
    extract_mentions,
    extract_domains
)
from .archive_parser import ArchiveParser, filter_own_posts, sort_chronologically
from .thread_builder import ThreadBuilder, ThreadLink

__all__ = [
    "clean_tweet",
    "process_thread",
    "unfurl_urls",
    "is_valid_tweet",
    "extract_hashtags",
    "extract_mentions",
    "extract_domains",
    "ArchiveParser",
    "filter_own_posts",
    "sort_chronologically",
    "ThreadBuilder",
    "ThreadLink"
]
