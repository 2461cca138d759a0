"""Lifecycle-bound groups of background tasks."""

import logging
import threading
import time
from typing import Any

from common.tasks.base_task import BaseTask
from common.tasks.service import Job, TaskService

logger = logging.getLogger(__name__)


class TaskScope:
    """A group of jobs owned by one component and cancelled together.

    The owner launches its background work through the scope and cancels the
    scope when it goes away. Cancelling stops every outstanding job; once
    cancelled, the scope hands out already-cancelled jobs instead of running
    anything new.
    """

    def __init__(self, task_service: TaskService, name: str = "scope") -> None:
        self.task_service = task_service
        self.name = name
        self._jobs: dict[str, Job] = {}
        self._cancelled = False
        self._lock = threading.RLock()

    @property
    def is_active(self) -> bool:
        with self._lock:
            return not self._cancelled

    @property
    def outstanding_jobs(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def launch(self, task: BaseTask, **kwargs: Any) -> Job:
        """Start task on the task service as a member of this scope."""
        with self._lock:
            if self._cancelled:
                logger.debug(
                    f"Scope {self.name} is cancelled, not starting {type(task).__name__}"
                )
                return Job.cancelled(task)

            job = self.task_service.start_task(task, **kwargs)
            self._jobs[job.task_id] = job

        job.add_done_callback(self._forget)
        return job

    def cancel(self) -> None:
        """Cancel every outstanding job and close the scope. Idempotent."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            jobs = list(self._jobs.values())

        for job in jobs:
            job.cancel()

        logger.info(f"Cancelled task scope {self.name} with {len(jobs)} outstanding job(s)")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for all outstanding jobs. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout

        for job in self.outstanding_jobs:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not job.join(remaining):
                return False

        return True

    def _forget(self, job: Job) -> None:
        with self._lock:
            self._jobs.pop(job.task_id, None)

    def __enter__(self) -> "TaskScope":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()
