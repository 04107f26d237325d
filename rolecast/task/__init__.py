"""Worker pool for concurrent provider calls."""

from rolecast.task.pool import Outcome, WorkerPool

__all__ = ["Outcome", "WorkerPool"]
