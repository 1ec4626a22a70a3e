"""Import history ledger with merge-on-save and atomic writes."""

import asyncio
import json
import logging
import os
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional

from ..core import ImportHistoryEntry
from ..utils.dates import utc_now

logger = logging.getLogger(__name__)


class ImportHistory:
    """
    Persisted ``username -> last import`` ledger.

    The file is a flat JSON object keyed by lowercased username. Saves
    re-read the file and merge into it, so importers for different users
    sharing one ledger don't drop each other's entries. A corrupted file
    is backed up and treated as empty; loading never raises.
    """

    def __init__(self, history_file: Path):
        self.history_file = Path(history_file)

    def _read(self) -> Dict[str, Any]:
        """Load the raw ledger mapping."""
        try:
            if not self.history_file.exists():
                return {}
            content = self.history_file.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Error loading import history: {e}")
            return {}

        if not content.strip():
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"JSON parse error in import history: {e}")
            self._backup_corrupted(content)
            return {}

        if not isinstance(data, dict):
            logger.error("Import history is not a JSON object")
            self._backup_corrupted(content)
            return {}
        return data

    def _backup_corrupted(self, content: str) -> None:
        backup = self.history_file.with_name(
            f"{self.history_file.name}.backup.{int(time.time() * 1000)}"
        )
        try:
            backup.write_text(content, encoding="utf-8")
            logger.warning(f"Backed up corrupted import history to {backup}")
        except OSError as e:
            logger.error(f"Failed to back up corrupted import history: {e}")

    def _write(self, data: Dict[str, Any]) -> None:
        """Write the ledger atomically via a temp file in the same directory."""
        history_dir = self.history_file.parent
        if history_dir and history_dir != Path('.'):
            history_dir.mkdir(parents=True, exist_ok=True)

        temp_fd, temp_path = tempfile.mkstemp(
            dir=str(history_dir) if history_dir else '.',
            prefix='.tmp_history_',
            suffix='.json'
        )
        try:
            with os.fdopen(temp_fd, 'w', encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            Path(temp_path).replace(self.history_file)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def _get_entry(self, username: str) -> Optional[ImportHistoryEntry]:
        key = username.lower()
        record = self._read().get(key)
        if not isinstance(record, dict):
            return None
        return ImportHistoryEntry.from_dict(key, record)

    def _record_import(
        self,
        username: str,
        newest_tweet_date: datetime,
        success_count: int,
        now: Optional[datetime] = None,
    ) -> ImportHistoryEntry:
        key = username.lower()
        ledger = self._read()

        previous = ledger.get(key)
        previous_entry = (
            ImportHistoryEntry.from_dict(key, previous) if isinstance(previous, dict) else None
        )

        last_tweet_date = newest_tweet_date
        tweet_count = success_count
        if previous_entry:
            last_tweet_date = max(previous_entry.last_tweet_date, newest_tweet_date)
            tweet_count += previous_entry.tweet_count

        entry = ImportHistoryEntry(
            username=key,
            last_import_date=now or utc_now(),
            last_tweet_date=last_tweet_date,
            tweet_count=tweet_count,
        )
        ledger[key] = entry.to_dict()
        self._write(ledger)
        logger.info(f"Updated import history for {username}")
        return entry

    async def load(self) -> Dict[str, Any]:
        """Return the whole ledger mapping."""
        return await asyncio.to_thread(self._read)

    async def get_entry(self, username: str) -> Optional[ImportHistoryEntry]:
        """Look up a username case-insensitively."""
        return await asyncio.to_thread(self._get_entry, username)

    async def record_import(
        self,
        username: str,
        newest_tweet_date: datetime,
        success_count: int,
        now: Optional[datetime] = None,
    ) -> ImportHistoryEntry:
        """
        Merge a successful import into the on-disk ledger.

        ``lastTweetDate`` never moves backwards and ``tweetCount``
        accumulates across imports.
        """
        return await asyncio.to_thread(
            self._record_import, username, newest_tweet_date, success_count, now
        )

    async def clear(self) -> None:
        """Reset the ledger to an empty mapping."""
        await asyncio.to_thread(self._write, {})
        logger.info("Cleared import history")
