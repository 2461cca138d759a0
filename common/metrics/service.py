"""Prometheus metrics service.

Metrics live at module level so that every service instance in a process
shares one set of collectors in the global registry. get_metrics_text()
returns everything registered there, including metrics owned by other
modules such as the live query run counter.
"""

import logging
import time
from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge, Histogram, generate_latest

from common.core.shutdown import LifetimeEvent

if TYPE_CHECKING:
    from common.core.shutdown import ShutdownCoordinatorProtocol

logger = logging.getLogger(__name__)

APPLICATION_SHUTTING_DOWN = Gauge(
    "application_shutting_down",
    "Whether application is shutting down (1=yes, 0=no)",
)
GRACEFUL_SHUTDOWN_DURATION = Histogram(
    "graceful_shutdown_duration_seconds",
    "Duration of graceful shutdowns",
)
TASK_EXECUTIONS = Counter(
    "inventory_task_executions_total",
    "Background task executions by task type and final status",
    ["task_type", "status"],
)
TASK_DURATION = Histogram(
    "inventory_task_duration_seconds",
    "Background task execution duration",
    ["task_type"],
)


class MetricsService:
    """Records task and shutdown metrics and renders the registry."""

    def __init__(self, shutdown_coordinator: "ShutdownCoordinatorProtocol"):
        self.shutdown_coordinator = shutdown_coordinator
        self._shutdown_start_time: float | None = None

        self.shutdown_coordinator.register_lifetime_notification(
            self._on_lifetime_event
        )

    def get_metrics_text(self) -> str:
        """Generate metrics in Prometheus text format."""
        return generate_latest().decode("utf-8")

    def record_task_execution(
        self, task_type: str, duration: float, status: str
    ) -> None:
        """Record one finished background task.

        Args:
            task_type: Class name of the task
            duration: Seconds spent executing (0 for tasks that never started)
            status: Final task status value
        """
        try:
            TASK_EXECUTIONS.labels(task_type=task_type, status=status).inc()
            TASK_DURATION.labels(task_type=task_type).observe(duration)
        except Exception as e:
            logger.error(f"Error recording task metrics: {e}")

    def set_shutdown_state(self, is_shutting_down: bool) -> None:
        APPLICATION_SHUTTING_DOWN.set(1 if is_shutting_down else 0)
        if is_shutting_down:
            self._shutdown_start_time = time.perf_counter()

    def _on_lifetime_event(self, event: LifetimeEvent) -> None:
        match event:
            case LifetimeEvent.PREPARE_SHUTDOWN:
                self.set_shutdown_state(True)
            case LifetimeEvent.SHUTDOWN:
                if self._shutdown_start_time is not None:
                    GRACEFUL_SHUTDOWN_DURATION.observe(
                        time.perf_counter() - self._shutdown_start_time
                    )
