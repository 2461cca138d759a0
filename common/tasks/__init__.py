"""Background tasks, the task service and lifecycle-bound task scopes."""

from common.tasks.base_task import BaseTask
from common.tasks.schemas import TaskInfo, TaskStatus
from common.tasks.scope import TaskScope
from common.tasks.service import Job, TaskService

__all__ = [
    "BaseTask",
    "Job",
    "TaskInfo",
    "TaskScope",
    "TaskService",
    "TaskStatus",
]
