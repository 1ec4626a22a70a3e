"""Main orchestrator with dependency injection."""

import asyncio
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Set

from dependency_injector import containers, providers

from .core import (
    ImportConfig,
    IMPORT_PREPROCESSING,
    EmbeddableThread,
    ImportJob,
    ImportResult,
    IndexPoint,
    JobStatus,
    Post,
    TweetArchive
)
from .core.exceptions import DownloadError, ImporterError, StorageError, ValidationError
from .embeddings import EmbeddingBatcher, EmbeddingProvider, FastEmbedProvider
from .processors import ArchiveParser, ThreadBuilder, filter_own_posts, sort_chronologically
from .progress import (
    JobProgressListener,
    LoggingProgressListener,
    ProgressListener
)
from .state import CutoffResolver, ImportHistory, InMemoryJobStore, JobStore, is_newer
from .service import TweetSearchService
from .storage import ArchiveStore, QdrantStorage
from .utils import new_id, setup_logging, to_iso, utc_now
from .utils.logger import format_duration, format_progress

logger = logging.getLogger(__name__)


class TweetImportPipeline:
    """
    Sequences one archive import.

    parse -> filter -> sort -> resolve cutoff -> per chunk: thread, dedupe,
    embed, upsert -> update ledger -> re-enable indexing.

    Only failures before the chunk loop (unreadable archive, collection
    creation) propagate. Chunk failures are counted in ``error_count`` and
    the loop moves on.
    """

    def __init__(
        self,
        config: ImportConfig,
        storage: QdrantStorage,
        embedding_provider: EmbeddingProvider,
        batcher: EmbeddingBatcher,
        history: ImportHistory,
        resolver: CutoffResolver,
        thread_builder: ThreadBuilder,
        parser: ArchiveParser
    ):
        self.config = config
        self.storage = storage
        self.embedding_provider = embedding_provider
        self.batcher = batcher
        self.history = history
        self.resolver = resolver
        self.thread_builder = thread_builder
        self.parser = parser

    async def prepare(self) -> None:
        """Connect to Qdrant and load the embedding model."""
        await self.storage.initialize()
        if not self.embedding_provider.is_initialized():
            await asyncio.to_thread(self.embedding_provider.initialize)

    async def run(
        self,
        file_path: Path,
        force: bool = False,
        listener: Optional[ProgressListener] = None
    ) -> ImportResult:
        """
        Import one archive file.

        Raises:
            ImporterError: If the archive can't be read or the collection
                can't be created
        """
        start_time = time.time()
        collection = self.config.collection_name
        force = force or self.config.force_reimport

        logger.info(f"Loading tweets from {file_path}...")
        archive = await asyncio.to_thread(self.parser.parse_file, Path(file_path))
        username = archive.username
        logger.info(f"Processing tweets for {username}...")

        logger.info(f"Total tweets before filtering: {len(archive.posts)}")
        posts = await asyncio.to_thread(self._own_posts_in_order, archive)
        logger.info(f"Tweets after filtering: {len(posts)}")

        result = ImportResult(username=username, total_count=len(posts))
        self._publish(listener, 0, len(posts), "Filtering tweets")

        await self.prepare()
        await self.storage.ensure_collection(
            collection, self.config.embedding_dimension, self.config.shard_number
        )

        try:
            cutoff = await self.resolver.resolve(username, force=force)
            await self._process_chunks(posts, username, cutoff, result, listener)

            try:
                result.points_in_collection = await self.storage.count_points(collection)
            except Exception as e:
                logger.warning(f"Could not count points in {collection}: {e}")

            if result.success_count > 0 and result.newest_tweet_date:
                try:
                    await self.history.record_import(
                        username, result.newest_tweet_date, result.success_count
                    )
                except Exception as e:
                    logger.warning(f"Error saving import history: {e}")
        finally:
            await self._reenable_indexing(collection)

        result.duration_seconds = time.time() - start_time
        logger.info(result.summary())
        return result

    @staticmethod
    def _own_posts_in_order(archive: TweetArchive) -> List[Post]:
        return sort_chronologically(filter_own_posts(archive.posts, archive.account_id))

    async def _process_chunks(
        self,
        posts: List,
        username: str,
        cutoff: Optional[datetime],
        result: ImportResult,
        listener: Optional[ProgressListener]
    ) -> None:
        total = len(posts)
        chunk_size = self.config.chunk_size
        seen_ids: Set[str] = set()

        for start in range(0, total, chunk_size):
            chunk = posts[start:start + chunk_size]
            logger.info(f"Processing chunk {format_progress(start, total)}")

            try:
                new_posts = [post for post in chunk if is_newer(post.created_at, cutoff)]
                result.skipped_count += len(chunk) - len(new_posts)

                threads = self.thread_builder.build_threads(new_posts, username) if new_posts else []

                fresh: List[EmbeddableThread] = []
                for thread in threads:
                    if thread.id in seen_ids:
                        result.skipped_count += len(thread.post_ids)
                        continue
                    fresh.append(thread)

                if fresh:
                    await self._write_threads(fresh, result)
                    for thread in fresh:
                        seen_ids.update(thread.post_ids)
                else:
                    logger.info("No new tweets in this chunk, skipping...")

            except StorageError as e:
                result.error_count += 1
                logger.error(f"Error upserting to Qdrant: {e}")
                if e.details:
                    logger.error(f"Error details: {e.details}")
            except Exception as e:
                result.error_count += 1
                logger.error(f"Error processing chunk: {e}")

            self._publish(listener, start + len(chunk), total, "Processing tweets")

    async def _write_threads(self, threads: List[EmbeddableThread], result: ImportResult) -> None:
        """Embed and upsert one chunk's threads; raises on any failure."""
        embed_start = time.time()
        vectors = await self.batcher.embed_all([thread.text for thread in threads])
        logger.info(
            f"Generated embeddings for {len(threads)} threads "
            f"in {format_duration(time.time() - embed_start)}"
        )

        points = self._build_points(threads, vectors)

        upsert_start = time.time()
        await self.storage.upsert_points(self.config.collection_name, points)
        logger.info(
            f"Upserted {len(points)} points in {format_duration(time.time() - upsert_start)}"
        )

        result.success_count += len(threads)
        for thread in threads:
            if result.newest_tweet_date is None or thread.last_post_at > result.newest_tweet_date:
                result.newest_tweet_date = thread.last_post_at

    def _build_points(
        self,
        threads: List[EmbeddableThread],
        vectors: List[List[float]]
    ) -> List[IndexPoint]:
        """Build index points with fresh surrogate ids."""
        if len(vectors) != len(threads):
            raise ValidationError(
                "embeddings", len(vectors), f"Expected {len(threads)} vectors"
            )

        points = []
        for thread, vector in zip(threads, vectors):
            point = IndexPoint(
                id=new_id(),
                vector=vector,
                payload={
                    "text": thread.text,
                    "username": thread.username,
                    "created_at": to_iso(thread.created_at),
                    "original_id": thread.id
                }
            )
            if not point.validate_dimension(self.config.embedding_dimension):
                raise ValidationError(
                    "embedding",
                    point.dimension,
                    f"Expected dimension {self.config.embedding_dimension}"
                )
            points.append(point)

        return points

    async def _reenable_indexing(self, collection: str) -> None:
        logger.info("Re-enabling indexing...")
        try:
            await self.storage.reenable_indexing(collection, self.config.indexing_threshold)
        except Exception as e:
            logger.error(f"Failed to re-enable indexing on {collection}: {e}")

    def _publish(
        self,
        listener: Optional[ProgressListener],
        progress: int,
        total: int,
        stage: str
    ) -> None:
        if listener is None:
            return
        try:
            listener.on_progress(progress, total, stage)
        except Exception as e:
            logger.warning(f"Progress listener failed: {e}")

    async def close(self) -> None:
        await self.storage.close()


class ImportJobManager:
    """
    Runs imports as background tasks and tracks them in a ``JobStore``.

    Jobs can't be cancelled once started; ``forget`` only drops the status
    entry. A task is dropped from the manager as soon as it finishes.
    """

    def __init__(
        self,
        pipeline: TweetImportPipeline,
        job_store: JobStore,
        archive_store: Optional[ArchiveStore] = None
    ):
        self.pipeline = pipeline
        self.job_store = job_store
        self.archive_store = archive_store
        self._tasks: Dict[str, asyncio.Task] = {}

    async def start_import(self, file_path: Path, force: bool = False) -> str:
        """Create a job and start the import; returns the job id."""
        job_id = new_id()
        job = ImportJob(id=job_id, start_time=utc_now())

        if not Path(file_path).exists():
            job.status = JobStatus.FAILED
            job.error = "File not found"
            job.end_time = utc_now()
            self.job_store.set(job)
            return job_id

        self.job_store.set(job)
        job.status = JobStatus.PROCESSING
        self.job_store.set(job)

        self._spawn(job_id, self._run(job_id, Path(file_path), force))
        return job_id

    async def start_remote_import(
        self,
        url: Optional[str] = None,
        username: Optional[str] = None,
        force: bool = False,
        save_archive: bool = False
    ) -> str:
        """
        Download an archive and import it in the background.

        Without ``url`` the public archive of ``username`` is fetched. With
        ``save_archive`` a copy of the download is kept after the import.

        Raises:
            ValidationError: If neither url nor username is given
            ImporterError: If no archive store is configured
        """
        if not url and not username:
            raise ValidationError("url", url, "Either url or username is required")
        if self.archive_store is None:
            raise ImporterError("Remote imports need an archive store")

        url = url or self.archive_store.archive_url(username)
        job_id = new_id()
        job = ImportJob(id=job_id, start_time=utc_now(), username=username or "unknown")
        self.job_store.set(job)
        job.status = JobStatus.PROCESSING
        self.job_store.set(job)

        self._spawn(job_id, self._run_remote(job_id, url, username, force, save_archive))
        return job_id

    def _spawn(self, job_id: str, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks[job_id] = task
        task.add_done_callback(lambda _task: self._tasks.pop(job_id, None))

    async def _run(self, job_id: str, file_path: Path, force: bool) -> None:
        result = await self._import(job_id, file_path, force)
        if result is not None:
            self._complete(job_id, result)

    async def _run_remote(
        self,
        job_id: str,
        url: str,
        username: Optional[str],
        force: bool,
        save_archive: bool
    ) -> None:
        try:
            path = await self.archive_store.download(url, job_id)
        except DownloadError as e:
            logger.error(f"Import {job_id} failed: {e}")
            self._finish(job_id, JobStatus.FAILED, error=str(e))
            return

        # A requested copy that never got made keeps the download on disk
        keep_download = save_archive
        try:
            result = await self._import(job_id, path, force)
            if result is None:
                return

            if save_archive:
                try:
                    saved = await self.archive_store.save_archive(
                        path, username or result.username
                    )
                except OSError as e:
                    logger.error(f"Failed to save archive: {e}")
                else:
                    keep_download = False
                    job = self.job_store.get(job_id)
                    if job is not None:
                        job.archive_path = str(saved)
                        self.job_store.set(job)

            self._complete(job_id, result)
        finally:
            if not keep_download:
                await self.archive_store.discard(path)

    async def _import(self, job_id: str, file_path: Path, force: bool) -> Optional[ImportResult]:
        """Run the pipeline for a job; marks the job failed and returns None on error."""
        listener = JobProgressListener(self.job_store, job_id)
        try:
            return await self.pipeline.run(file_path, force=force, listener=listener)
        except Exception as e:
            logger.error(f"Import {job_id} failed: {e}")
            self._finish(job_id, JobStatus.FAILED, error=str(e))
            return None

    def _complete(self, job_id: str, result: ImportResult) -> None:
        job = self.job_store.get(job_id)
        if job is None:
            return
        job.username = result.username
        job.total = result.total_count
        job.progress = result.total_count
        job.result = result.to_dict()
        self._finish(job_id, JobStatus.COMPLETED)

    def _finish(self, job_id: str, status: JobStatus, error: Optional[str] = None) -> None:
        job = self.job_store.get(job_id)
        if job is None:
            return
        job.status = status
        job.error = error
        job.end_time = utc_now()
        self.job_store.set(job)

    def get_status(self, job_id: str) -> ImportJob:
        """Raises ``JobNotFoundError`` for unknown ids."""
        return self.job_store.require(job_id)

    async def wait(self, job_id: str) -> ImportJob:
        """Wait for a job's task to finish and return its record."""
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        return self.get_status(job_id)

    def forget(self, job_id: str) -> bool:
        self._tasks.pop(job_id, None)
        return self.job_store.delete(job_id)

    async def close(self) -> None:
        if self.archive_store is not None:
            await self.archive_store.close()


class ImporterContainer(containers.DeclarativeContainer):
    """Dependency injection container using dependency-injector library."""

    config = providers.Singleton(ImportConfig.from_env)

    storage = providers.Singleton(
        QdrantStorage,
        url=config.provided.qdrant_url,
        api_key=config.provided.qdrant_api_key,
        timeout=config.provided.request_timeout
    )

    embedding_provider = providers.Singleton(
        FastEmbedProvider,
        model_name=config.provided.embedding_model,
        dimension=config.provided.embedding_dimension
    )

    batcher = providers.Factory(
        EmbeddingBatcher,
        provider=embedding_provider,
        batch_size=config.provided.embedding_batch_size,
        timeout=config.provided.embedding_timeout
    )

    history = providers.Singleton(
        ImportHistory,
        history_file=config.provided.history_file_path
    )

    resolver = providers.Factory(
        CutoffResolver,
        history=history,
        storage=storage,
        collection_name=config.provided.collection_name,
        sample_limit=config.provided.sample_limit
    )

    thread_builder = providers.Singleton(ThreadBuilder, options=IMPORT_PREPROCESSING)

    parser = providers.Singleton(ArchiveParser)

    pipeline = providers.Singleton(
        TweetImportPipeline,
        config=config,
        storage=storage,
        embedding_provider=embedding_provider,
        batcher=batcher,
        history=history,
        resolver=resolver,
        thread_builder=thread_builder,
        parser=parser
    )

    job_store = providers.Singleton(InMemoryJobStore)

    archive_store = providers.Singleton(
        ArchiveStore,
        download_dir=config.provided.download_dir_path,
        archives_dir=config.provided.archives_dir_path,
        url_template=config.provided.remote_archive_url,
        timeout=config.provided.download_timeout
    )

    job_manager = providers.Singleton(
        ImportJobManager,
        pipeline=pipeline,
        job_store=job_store,
        archive_store=archive_store
    )

    search_service = providers.Singleton(
        TweetSearchService,
        config=config,
        storage=storage,
        embedding_provider=embedding_provider,
        history=history,
        job_store=job_store
    )


def create_container(config: Optional[ImportConfig] = None) -> ImporterContainer:
    """
    Build a container, optionally pinned to an explicit configuration.

    Args:
        config: Optional configuration, uses environment if not provided
    """
    container = ImporterContainer()
    if config:
        container.config.override(config)
    return container


async def import_file(
    file_path: Path,
    config: Optional[ImportConfig] = None,
    force: bool = False
) -> ImportResult:
    """Run a single import in the foreground with logged progress."""
    container = create_container(config)
    pipeline = container.pipeline()
    listener = LoggingProgressListener()
    try:
        result = await pipeline.run(file_path, force=force, listener=listener)
        listener.progress_logger.complete()
        return result
    finally:
        await pipeline.close()


async def import_remote(
    url: Optional[str] = None,
    username: Optional[str] = None,
    config: Optional[ImportConfig] = None,
    force: bool = False,
    save_archive: bool = False
) -> ImportJob:
    """Download and import an archive, waiting for the job to finish."""
    container = create_container(config)
    manager = container.job_manager()
    try:
        job_id = await manager.start_remote_import(
            url=url, username=username, force=force, save_archive=save_archive
        )
        return await manager.wait(job_id)
    finally:
        await manager.close()
        await manager.pipeline.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI execution."""
    import argparse
    from dotenv import load_dotenv

    parser = argparse.ArgumentParser(description="Import a Twitter archive into Qdrant")
    parser.add_argument("file", nargs="?", help="Path to the archive JSON export")
    parser.add_argument("--url", help="Download the archive from this URL instead")
    parser.add_argument("--username", help="Download the public archive of this user")
    parser.add_argument("--save-archive", action="store_true",
                        help="Keep a copy of a downloaded archive")
    parser.add_argument("--force", action="store_true", help="Import everything, ignoring history")
    parser.add_argument("--collection", help="Qdrant collection name")
    parser.add_argument("--log-level", default=None, help="Logging level")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")

    args = parser.parse_args(argv)
    remote = bool(args.url or args.username)
    if bool(args.file) == remote:
        parser.error("give either an archive file or --url/--username")

    load_dotenv()

    config = ImportConfig.from_env()
    overrides = {}
    if args.collection:
        overrides["collection_name"] = args.collection
    if args.log_level:
        overrides["log_level"] = args.log_level
    if overrides:
        config = ImportConfig.from_dict({**config.__dict__, **overrides})

    setup_logging(config.log_level, log_file=args.log_file)

    try:
        if remote:
            job = asyncio.run(import_remote(
                args.url, args.username, config,
                force=args.force, save_archive=args.save_archive
            ))
        else:
            result = asyncio.run(import_file(Path(args.file), config, force=args.force))
    except ImporterError as e:
        logger.error(f"Import failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Import failed: {e}")
        return 1

    if remote:
        if job.status == JobStatus.FAILED:
            logger.error(f"Import failed: {job.error}")
            return 1
        if job.archive_path:
            print(f"Archive saved to {job.archive_path}")
        print(f"Imported {job.total} tweets for {job.username}")
        return 0

    print(result.summary())
    return 0
