"""Background task service.

Runs tasks on a thread pool so that blocking store I/O never happens on the
caller's thread. Each launched task is tracked through a Job handle until it
finishes; cancelling a job that has not started yet guarantees it never runs.
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from common.core.errors import InvalidOperationException
from common.core.shutdown import LifetimeEvent
from common.tasks.base_task import BaseTask
from common.tasks.schemas import TaskInfo, TaskStatus

if TYPE_CHECKING:
    from common.core.shutdown import ShutdownCoordinatorProtocol
    from common.metrics.service import MetricsService

logger = logging.getLogger(__name__)


class Job:
    """Handle for one launched task."""

    def __init__(
        self,
        task_id: str,
        task: BaseTask,
        canceller: Callable[[str], bool] | None = None,
    ) -> None:
        self.task_id = task_id
        self.task = task
        self.info = TaskInfo(
            task_id=task_id,
            task_type=type(task).__name__,
            status=TaskStatus.PENDING,
            start_time=datetime.now(UTC),
        )
        self.future: Future[None] | None = None
        self._canceller = canceller
        self._done = threading.Event()
        self._callbacks: list[Callable[["Job"], None]] = []
        self._lock = threading.Lock()

    @classmethod
    def cancelled(cls, task: BaseTask) -> "Job":
        """Create a job that is cancelled before it was ever started."""
        task.cancel()
        job = cls(str(uuid.uuid4()), task)
        job.info.status = TaskStatus.CANCELLED
        job.info.end_time = datetime.now(UTC)
        job._mark_done()
        return job

    @property
    def status(self) -> TaskStatus:
        return self.info.status

    @property
    def is_done(self) -> bool:
        """True once the task has stopped running or will never run."""
        return self._done.is_set()

    def cancel(self) -> bool:
        """Request cancellation; returns False if the job already finished."""
        if self._canceller is None:
            return False
        return self._canceller(self.task_id)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the job to stop running. Returns False on timeout."""
        return self._done.wait(timeout)

    def add_done_callback(self, callback: Callable[["Job"], None]) -> None:
        """Call callback once the job is done, immediately if it already is."""
        with self._lock:
            if not self._done.is_set():
                self._callbacks.append(callback)
                return
        callback(self)

    def _mark_done(self) -> None:
        with self._lock:
            if self._done.is_set():
                return
            self._done.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.error(f"Done callback for task {self.task_id} failed: {e}")

    def __repr__(self) -> str:
        return f"<Job {self.info.task_type} id={self.task_id} status={self.status.value}>"


class TaskService:
    """Runs background tasks on a bounded thread pool."""

    def __init__(
        self,
        shutdown_coordinator: "ShutdownCoordinatorProtocol",
        metrics_service: "MetricsService",
        max_workers: int = 4,
    ):
        """Initialize TaskService.

        Args:
            shutdown_coordinator: Coordinator for graceful shutdown
            metrics_service: Records task execution metrics
            max_workers: Maximum number of concurrently running tasks
        """
        self.max_workers = max_workers
        self.shutdown_coordinator = shutdown_coordinator
        self.metrics_service = metrics_service
        self._jobs: dict[str, Job] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="inventory-task"
        )
        self._lock = threading.RLock()
        self._shutting_down = False
        self._tasks_complete_event = threading.Event()

        self.shutdown_coordinator.register_lifetime_notification(
            self._on_lifetime_event
        )
        self.shutdown_coordinator.register_shutdown_waiter(
            "TaskService", self._wait_for_tasks_completion
        )

        logger.info(f"TaskService initialized: max_workers={max_workers}")

    def start_task(self, task: BaseTask, **kwargs: Any) -> Job:
        """Start a background task.

        Args:
            task: Instance of BaseTask to execute
            **kwargs: Task-specific parameters

        Returns:
            Job tracking the task

        Raises:
            InvalidOperationException: If the service is shutting down
        """
        job = Job(str(uuid.uuid4()), task, canceller=self.cancel_task)

        with self._lock:
            if self._shutting_down:
                raise InvalidOperationException(
                    "start task", "the task service is shutting down"
                )

            self._jobs[job.task_id] = job
            job.future = self._executor.submit(self._execute_task, job, kwargs)

        logger.debug(f"Started task {job.task_id} of type {job.info.task_type}")
        return job

    def get_task_status(self, task_id: str) -> TaskInfo | None:
        """Status of a task that has not finished yet, or None."""
        with self._lock:
            job = self._jobs.get(task_id)
            return job.info if job else None

    def active_task_count(self) -> int:
        with self._lock:
            return len(self._jobs)

    def cancel_task(self, task_id: str) -> bool:
        """Cancel a pending or running task.

        A pending task is removed from the pool queue and never runs. A
        running task is asked to stop and finishes at its next cancellation
        check; work it already committed stays committed.
        """
        with self._lock:
            job = self._jobs.get(task_id)
            if job is None or job.info.status.is_finished:
                return False

            job.task.cancel()
            job.info.status = TaskStatus.CANCELLED
            job.info.end_time = datetime.now(UTC)

            never_started = job.future is not None and job.future.cancel()
            if never_started:
                self._release(job)

        logger.info(f"Cancelled task {task_id}")

        if never_started:
            self.metrics_service.record_task_execution(
                job.info.task_type, 0.0, TaskStatus.CANCELLED.value
            )
            job._mark_done()

        return True

    def _execute_task(self, job: Job, kwargs: dict[str, Any]) -> None:
        """Execute a task in a pool thread."""
        with self._lock:
            if job.info.status == TaskStatus.CANCELLED:
                self._release(job)
                skipped = True
            else:
                job.info.status = TaskStatus.RUNNING
                skipped = False

        if skipped:
            job._mark_done()
            return

        start_time = time.perf_counter()

        try:
            job.task.execute(**kwargs)
        except Exception as e:
            logger.error(f"Task {job.task_id} failed: {e}", exc_info=True)
            with self._lock:
                if job.info.status != TaskStatus.CANCELLED:
                    job.info.status = TaskStatus.FAILED
                    job.info.error = str(e)
        else:
            with self._lock:
                if job.info.status != TaskStatus.CANCELLED:
                    job.info.status = TaskStatus.COMPLETED
            logger.debug(f"Task {job.task_id} finished with status {job.status.value}")
        finally:
            duration = time.perf_counter() - start_time
            with self._lock:
                if job.info.end_time is None:
                    job.info.end_time = datetime.now(UTC)
                self._release(job)

            self.metrics_service.record_task_execution(
                job.info.task_type, duration, job.status.value
            )
            job._mark_done()

    def _release(self, job: Job) -> None:
        """Forget a finished job. Must be called with the lock held."""
        self._jobs.pop(job.task_id, None)
        if self._shutting_down and not self._jobs:
            logger.info("All tasks completed during shutdown")
            self._tasks_complete_event.set()

    def _on_lifetime_event(self, event: LifetimeEvent) -> None:
        match event:
            case LifetimeEvent.PREPARE_SHUTDOWN:
                with self._lock:
                    self._shutting_down = True
                    if not self._jobs:
                        self._tasks_complete_event.set()
                    logger.info(
                        f"TaskService shutdown initiated with "
                        f"{len(self._jobs)} active tasks"
                    )
            case LifetimeEvent.SHUTDOWN:
                self.shutdown()

    def _wait_for_tasks_completion(self, timeout: float) -> bool:
        """Wait for all active tasks to complete within timeout."""
        with self._lock:
            active_count = len(self._jobs)
            if active_count == 0:
                logger.info("No active tasks to wait for")
                return True

            logger.info(
                f"Waiting for {active_count} active tasks (timeout: {timeout:.1f}s)"
            )

        completed = self._tasks_complete_event.wait(timeout=timeout)

        if completed:
            logger.info("All tasks completed gracefully")
        else:
            logger.warning(
                f"Timeout waiting for tasks, {self.active_task_count()} still active"
            )

        return completed

    def shutdown(self) -> None:
        """Stop accepting tasks, drop queued ones and wait for running ones."""
        logger.info("Shutting down TaskService...")

        with self._lock:
            self._shutting_down = True
            queued = list(self._jobs.values())

        for job in queued:
            self.cancel_task(job.task_id)

        self._executor.shutdown(wait=True, cancel_futures=True)

        with self._lock:
            leftover = list(self._jobs.values())
            self._jobs.clear()

        if leftover:
            logger.warning(f"Shutting down with {len(leftover)} unfinished tasks")
        for job in leftover:
            job._mark_done()

        logger.info("TaskService shutdown complete")
