import threading
from abc import ABC, abstractmethod
from typing import Any


class BaseTask(ABC):
    """Abstract base class for background tasks with cooperative cancellation."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    @abstractmethod
    def execute(self, **kwargs: Any) -> None:
        """
        Execute the task.

        Implementations check is_cancelled before doing work that must not
        happen once their owner has gone away.

        Args:
            **kwargs: Task-specific parameters

        Raises:
            Exception: Any task-specific exception; it is reported as a failure
        """
        pass

    def cancel(self) -> None:
        """Request cancellation of the task."""
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        """Check if the task has been cancelled."""
        return self._cancelled.is_set()
