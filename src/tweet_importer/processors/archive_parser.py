"""Parser for Twitter archive exports converted to JSON."""

import json
import logging
from pathlib import Path
from typing import List, Dict, Any, Optional

from ..core import Post, TweetArchive
from ..core.exceptions import ParseError
from ..utils.dates import parse_datetime

logger = logging.getLogger(__name__)


class ArchiveParser:
    """
    Parse an archive export into account metadata and ``Post`` objects.

    The expected structure is::

        {"account": [{"account": {"accountId": ..., "username": ...}}],
         "tweets": [{"tweet": {...}}, ...]}
    """

    def parse_file(self, file_path: Path) -> TweetArchive:
        """
        Load an archive export.

        Raises:
            ParseError: If the file is missing, not JSON or lacks an account
        """
        file_path = Path(file_path)
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ParseError(str(file_path), reason="File not found")
        except json.JSONDecodeError as e:
            raise ParseError(str(file_path), reason=f"Invalid JSON: {e}")
        except OSError as e:
            raise ParseError(str(file_path), reason=str(e))

        return self.parse_data(data, source=str(file_path))

    def parse_data(self, data: Any, source: str = "<memory>") -> TweetArchive:
        """Build a ``TweetArchive`` from already decoded JSON."""
        if not isinstance(data, dict):
            raise ParseError(source, reason="Top-level JSON value must be an object")

        account = self._extract_account(data, source)
        account_id = str(account.get("accountId") or "")
        username = account.get("username")
        if not account_id or not username:
            raise ParseError(source, reason="Account block lacks accountId or username")
        display_name = account.get("accountDisplayName") or username

        raw_tweets = data.get("tweets") or []
        if not isinstance(raw_tweets, list):
            raise ParseError(source, reason="'tweets' must be a list")

        posts = []
        for index, item in enumerate(raw_tweets):
            raw = item.get("tweet", item) if isinstance(item, dict) else None
            post = self._parse_post(raw, account_id, index) if isinstance(raw, dict) else None
            if post:
                posts.append(post)

        logger.debug(f"Parsed {len(posts)} of {len(raw_tweets)} tweets from {source}")
        return TweetArchive(
            account_id=account_id,
            username=username,
            display_name=display_name,
            posts=posts,
        )

    def _extract_account(self, data: Dict[str, Any], source: str) -> Dict[str, Any]:
        accounts = data.get("account")
        if isinstance(accounts, dict):
            accounts = [accounts]
        if not accounts or not isinstance(accounts, list):
            raise ParseError(source, reason="Missing account information")
        first = accounts[0]
        if not isinstance(first, dict):
            raise ParseError(source, reason="Malformed account information")
        return first.get("account", first)

    def _parse_post(self, raw: Dict[str, Any], account_id: str, index: int) -> Optional[Post]:
        post_id = raw.get("id_str") or raw.get("id")
        created_at = parse_datetime(raw.get("created_at"))
        if not post_id or created_at is None:
            logger.warning(f"Skipping tweet {index}: missing id or unparsable created_at")
            return None

        reply_to = raw.get("in_reply_to_status_id_str") or raw.get("in_reply_to_status_id")
        reply_author = raw.get("in_reply_to_user_id_str") or raw.get("in_reply_to_user_id")

        return Post(
            id=str(post_id),
            text=raw.get("text") or raw.get("full_text") or "",
            full_text=raw.get("full_text"),
            created_at=created_at,
            author_id=account_id,
            in_reply_to_id=str(reply_to) if reply_to else None,
            in_reply_to_author_id=str(reply_author) if reply_author else None,
            entities=raw.get("entities") or {},
        )


def filter_own_posts(posts: List[Post], account_id: str) -> List[Post]:
    """Drop retweets and replies to other accounts."""
    kept = []
    for post in posts:
        if post.is_retweet:
            continue
        if post.in_reply_to_author_id is not None and post.in_reply_to_author_id != account_id:
            continue
        kept.append(post)
    return kept


def sort_chronologically(posts: List[Post]) -> List[Post]:
    """Oldest first; parents must precede their replies for threading."""
    return sorted(posts, key=lambda post: post.created_at)
