"""Storage for client-visible import job status."""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..core import ImportJob
from ..core.exceptions import JobNotFoundError


class JobStore(ABC):
    """Interface for keeping ``ImportJob`` records by id."""

    @abstractmethod
    def get(self, job_id: str) -> Optional[ImportJob]:
        pass

    @abstractmethod
    def set(self, job: ImportJob) -> None:
        pass

    @abstractmethod
    def list(self) -> List[ImportJob]:
        pass

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        pass

    def require(self, job_id: str) -> ImportJob:
        """Get a job or raise ``JobNotFoundError``."""
        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job


class InMemoryJobStore(JobStore):
    """Process-local job store; entries do not survive a restart."""

    def __init__(self):
        self._jobs: Dict[str, ImportJob] = {}

    def get(self, job_id: str) -> Optional[ImportJob]:
        return self._jobs.get(job_id)

    def set(self, job: ImportJob) -> None:
        self._jobs[job.id] = job

    def list(self) -> List[ImportJob]:
        return sorted(self._jobs.values(), key=lambda job: job.start_time)

    def delete(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None
