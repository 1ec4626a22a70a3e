"""
Tweet preprocessing.

Cleans raw tweet text before embedding by removing noise such as URLs,
mentions and hashtags that don't contribute to the semantic meaning of
a tweet. All functions are pure: the same text and options always
produce the same output.
"""

import re
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from ..core.config import PreprocessingOptions, DEFAULT_PREPROCESSING

logger = logging.getLogger(__name__)

RETWEET_PREFIX_RE = re.compile(r"^RT @\w+:\s+")
URL_RE = re.compile(r"https?://\S+")
LEADING_MENTIONS_RE = re.compile(r"^(@\w+\s+)+")
MENTION_RE = re.compile(r"@\w+")
HASHTAG_RE = re.compile(r"#\w+")
WHITESPACE_RE = re.compile(r"\s+")
WORD_RE = re.compile(r"\w+")

EMOJI_WORDS = {
    "🔥": "fire",
    "😂": "laughing",
    "👍": "thumbs up",
    "❤️": "love",
    "🙏": "thank you",
    "😊": "smile",
    "👏": "applause",
    "🤔": "thinking",
    "💯": "100",
    "🚀": "rocket",
}


def unfurl_urls(text: str, entities: Optional[Dict[str, Any]]) -> str:
    """
    Replace shortened URLs with their expanded form using entity offsets.

    Entities are applied from the end of the string backwards so earlier
    offsets stay valid. Entities with missing, non-numeric or out-of-range
    indices are ignored.
    """
    urls = (entities or {}).get("urls") or []
    if not text or not urls:
        return text

    spans = []
    for url in urls:
        indices = url.get("indices") if isinstance(url, dict) else None
        expanded = url.get("expanded_url") if isinstance(url, dict) else None
        if not isinstance(indices, (list, tuple)) or len(indices) != 2 or not expanded:
            continue
        try:
            start, end = int(indices[0]), int(indices[1])
        except (TypeError, ValueError):
            logger.debug(f"Skipping URL entity with bad indices: {indices}")
            continue
        spans.append((start, end, expanded))

    unfurled = text
    for start, end, expanded in sorted(spans, key=lambda span: span[0], reverse=True):
        if 0 <= start < end <= len(unfurled):
            unfurled = unfurled[:start] + expanded + unfurled[end:]

    return unfurled


def _hashtag_pattern(keep: Sequence[str]) -> re.Pattern:
    if not keep:
        return HASHTAG_RE
    allowed = "|".join(re.escape(tag) for tag in keep)
    return re.compile(rf"#(?!(?:{allowed})\b)\w+")


def clean_tweet(
    text: str,
    options: PreprocessingOptions = DEFAULT_PREPROCESSING,
    entities: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Clean a tweet for embedding.

    Steps run in a fixed order: retweet prefix, URLs, mentions, hashtags,
    emoji conversion, whitespace collapse and finally the minimum length
    check. An empty string means the tweet should be discarded.

    Args:
        text: Raw tweet text
        options: Preprocessing options
        entities: Optional tweet entities used to unfurl URLs

    Returns:
        The cleaned text, or "" when it falls below ``options.min_length``
    """
    if not text:
        return ""

    cleaned = text

    if options.remove_retweet_prefix:
        cleaned = RETWEET_PREFIX_RE.sub("", cleaned)

    # Unfurling only applies when URLs are kept
    if entities and entities.get("urls") and not options.remove_urls:
        cleaned = unfurl_urls(cleaned, entities)
    elif options.remove_urls:
        cleaned = URL_RE.sub("", cleaned)

    if options.remove_leading_mentions:
        cleaned = LEADING_MENTIONS_RE.sub("", cleaned)

    if options.remove_all_mentions:
        cleaned = MENTION_RE.sub("", cleaned)

    if options.remove_all_hashtags:
        cleaned = _hashtag_pattern(options.keep_important_hashtags).sub("", cleaned)

    if options.convert_emojis:
        for emoji, word in EMOJI_WORDS.items():
            cleaned = cleaned.replace(emoji, f" {word} ")

    cleaned = WHITESPACE_RE.sub(" ", cleaned).strip()

    if options.min_length and len(cleaned) < options.min_length:
        return ""

    return cleaned


def process_thread(
    posts: Sequence[Any],
    options: PreprocessingOptions = DEFAULT_PREPROCESSING,
) -> str:
    """
    Clean and combine the posts of a thread into one text.

    Each item needs ``text``/``full_text`` and ``entities`` attributes
    (``Post`` works). With ``combine_threads`` off only the first post is
    used.
    """
    if not posts:
        return ""

    if not options.combine_threads:
        first = posts[0]
        return clean_tweet(_text_of(first), options, getattr(first, "entities", None))

    cleaned = [
        clean_tweet(_text_of(post), options, getattr(post, "entities", None))
        for post in posts
    ]
    return " ".join(part for part in cleaned if part)


def _text_of(post: Any) -> str:
    return getattr(post, "full_text", None) or getattr(post, "text", None) or ""


def is_valid_tweet(text: str, options: PreprocessingOptions = DEFAULT_PREPROCESSING) -> bool:
    """Check that a tweet still has word content after cleaning."""
    cleaned = clean_tweet(text, options)
    if not cleaned:
        return False
    return any(WORD_RE.search(word) for word in cleaned.split())


def extract_hashtags(entities: Optional[Dict[str, Any]]) -> List[str]:
    """Lowercased hashtag texts without the # symbol."""
    hashtags = (entities or {}).get("hashtags") or []
    return [tag["text"].lower() for tag in hashtags if tag.get("text")]


def extract_mentions(entities: Optional[Dict[str, Any]]) -> List[str]:
    """Lowercased mentioned screen names without the @ symbol."""
    mentions = (entities or {}).get("user_mentions") or []
    return [m["screen_name"].lower() for m in mentions if m.get("screen_name")]


def extract_domains(entities: Optional[Dict[str, Any]]) -> List[str]:
    """Hostnames of expanded URLs, without a leading www."""
    domains = []
    for url in (entities or {}).get("urls") or []:
        if not isinstance(url, dict):
            continue
        try:
            hostname = urlparse(url.get("expanded_url") or "").hostname
        except ValueError:
            logger.debug(f"Skipping unparsable URL entity: {url}")
            continue
        if hostname:
            domains.append(re.sub(r"^www\.", "", hostname))
    return domains
