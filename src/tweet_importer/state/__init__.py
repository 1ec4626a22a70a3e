"""Import history, incremental cutoff and job state."""

from .import_history import ImportHistory
from .cutoff_resolver import CutoffResolver, is_newer
from .job_store import JobStore, InMemoryJobStore

__all__ = [
    "ImportHistory",
    "CutoffResolver",
    "is_newer",
    "JobStore",
    "InMemoryJobStore"
]
