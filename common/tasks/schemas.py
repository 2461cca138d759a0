"""Task status schemas."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_finished(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class TaskInfo(BaseModel):
    """Mutable status record of one launched task."""

    task_id: str = Field(description="Unique task identifier")
    task_type: str = Field(description="Class name of the task")
    status: TaskStatus = Field(description="Current task status")
    start_time: datetime = Field(description="When the task was launched")
    end_time: datetime | None = Field(default=None, description="When the task finished")
    error: str | None = Field(default=None, description="Failure message, if any")
