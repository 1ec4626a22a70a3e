"""Progress events published by the import pipeline."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .state.job_store import JobStore
from .utils.logger import ProgressLogger

logger = logging.getLogger(__name__)


class ProgressListener(ABC):
    """Observer for ``(progress, total, stage)`` updates."""

    @abstractmethod
    def on_progress(self, progress: int, total: int, stage: str) -> None:
        pass


class LoggingProgressListener(ProgressListener):
    """Writes progress to the log."""

    def __init__(self, progress_logger: Optional[ProgressLogger] = None):
        self.progress_logger = progress_logger or ProgressLogger(logger)

    def on_progress(self, progress: int, total: int, stage: str) -> None:
        self.progress_logger.update(progress, total, stage)


class JobProgressListener(ProgressListener):
    """Mirrors progress into the job record of a ``JobStore``."""

    def __init__(self, job_store: JobStore, job_id: str):
        self.job_store = job_store
        self.job_id = job_id

    def on_progress(self, progress: int, total: int, stage: str) -> None:
        job = self.job_store.get(self.job_id)
        if job is None or job.is_terminal:
            return
        # Progress only moves forward for pollers
        job.progress = max(job.progress, progress)
        job.total = total
        self.job_store.set(job)

