"""Background workers for async processing tasks."""

from artmorph.workers.job_worker import JobWorker

__all__ = ["JobWorker"]
