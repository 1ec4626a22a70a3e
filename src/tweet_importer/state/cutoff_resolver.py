"""Decide which tweets are new since the last import."""

import logging
from datetime import datetime
from typing import Optional

from .import_history import ImportHistory
from ..storage import QdrantStorage
from ..utils.dates import parse_datetime

logger = logging.getLogger(__name__)


def is_newer(created_at: datetime, cutoff: Optional[datetime]) -> bool:
    """Strictly after the cutoff; a post at exactly the cutoff was already seen."""
    return cutoff is None or created_at > cutoff


class CutoffResolver:
    """
    Resolve the incremental-import cutoff for a username.

    The ledger is the fast path. Without a ledger entry a bounded sample of
    the user's indexed points is scanned for the newest ``created_at``.
    """

    def __init__(
        self,
        history: ImportHistory,
        storage: QdrantStorage,
        collection_name: str = "tweets",
        sample_limit: int = 100,
    ):
        self.history = history
        self.storage = storage
        self.collection_name = collection_name
        self.sample_limit = sample_limit

    async def resolve(self, username: str, force: bool = False) -> Optional[datetime]:
        """
        Return the cutoff timestamp, or None to import everything.

        Sampling failures are logged and treated as "no cutoff".
        """
        if force:
            logger.info("Force import flag detected, skipping duplicate checking")
            return None

        entry = await self.history.get_entry(username)
        if entry is not None:
            logger.info(
                f"Found import history for {username} (last import "
                f"{entry.last_import_date.isoformat()}); will only import tweets newer "
                f"than {entry.last_tweet_date.isoformat()}"
            )
            return entry.last_tweet_date

        logger.info(f"No import history found for {username}, checking database...")
        try:
            points = await self.storage.sample_points(
                self.collection_name, username, limit=self.sample_limit
            )
        except Exception as e:
            logger.warning(f"Error checking for existing tweets: {e}")
            logger.warning("Continuing with import, but duplicates may be created.")
            return None

        latest = None
        for point in points:
            created_at = parse_datetime((point.payload or {}).get("created_at"))
            if created_at and (latest is None or created_at > latest):
                latest = created_at

        if latest is None:
            logger.info("No existing tweets found for this user, will import all tweets")
        else:
            logger.info(f"Latest tweet date from database: {latest.isoformat()}")
        return latest
