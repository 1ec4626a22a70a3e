"""Remote archive downloads and kept copies of imported archives."""

import asyncio
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx

from ..core.exceptions import DownloadError
from ..utils.dates import to_iso, utc_now

logger = logging.getLogger(__name__)


class ArchiveStore:
    """
    Fetch archive exports over HTTP and manage them on disk.

    Downloads land in ``download_dir`` as ``<job id>.json`` and are removed
    after the import. ``save_archive`` keeps a copy in ``archives_dir`` as
    ``<username>_<timestamp>.json``.
    """

    def __init__(
        self,
        download_dir: Path,
        archives_dir: Path,
        url_template: str,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.download_dir = Path(download_dir)
        self.archives_dir = Path(archives_dir)
        self.url_template = url_template
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def archive_url(self, username: str) -> str:
        """Public archive URL for a username."""
        return self.url_template.format(username=username.lower())

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def download(self, url: str, name: str) -> Path:
        """
        Stream ``url`` into ``download_dir/<name>.json``.

        Raises:
            DownloadError: On network errors, timeouts or non-2xx responses
        """
        client = await self.get_client()
        target = self.download_dir / f"{name}.json"
        await asyncio.to_thread(self.download_dir.mkdir, parents=True, exist_ok=True)

        logger.info(f"Downloading archive from {url}")
        try:
            async with client.stream("GET", url) as response:
                if response.status_code >= 400:
                    raise DownloadError(
                        url,
                        f"{response.status_code} {response.reason_phrase}",
                        status_code=response.status_code,
                    )
                size = 0
                f = await asyncio.to_thread(open, target, "wb")
                try:
                    async for chunk in response.aiter_bytes():
                        await asyncio.to_thread(f.write, chunk)
                        size += len(chunk)
                finally:
                    await asyncio.to_thread(f.close)
        except httpx.TimeoutException as e:
            await self.discard(target)
            raise DownloadError(url, f"Request timed out: {e}")
        except httpx.HTTPError as e:
            await self.discard(target)
            raise DownloadError(url, f"Request failed: {e}")
        except DownloadError:
            await self.discard(target)
            raise

        logger.info(f"Downloaded {size} bytes to {target}")
        return target

    async def save_archive(
        self,
        source: Path,
        username: str,
        now: Optional[datetime] = None,
    ) -> Path:
        """Copy an imported archive to ``archives_dir`` under a timestamped name."""
        timestamp = to_iso(now or utc_now()).replace(":", "-").replace(".", "-")
        target = self.archives_dir / f"{username.lower()}_{timestamp}.json"

        await asyncio.to_thread(self.archives_dir.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, source, target)
        logger.info(f"Saved archive for {username} to {target}")
        return target

    async def discard(self, path: Path) -> None:
        """Remove a downloaded file; failures are only logged."""
        try:
            await asyncio.to_thread(Path(path).unlink, missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove temp file {path}: {e}")

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
