"""Queries that re-run whenever the tables they read change."""

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import Executor
from typing import TypeVar

from prometheus_client import Counter

from common.live.invalidation import InvalidationTracker
from common.live.live_data import LiveData, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")

LIVE_QUERY_RUNS = Counter(
    "inventory_live_query_runs_total",
    "Live query executions",
    ["query"],
)


class LiveQuery(LiveData[T]):
    """Observable result of a query over one or more tables.

    The query is not run until the first observer subscribes. From then on it
    runs on the executor once for the initial snapshot and again after every
    invalidation of an observed table. Runs are serialized and coalesced: at
    most one is in flight, and invalidations arriving during a run cause
    exactly one more run, so the last delivered snapshot always reflects the
    latest committed change. When the last observer leaves, the query
    detaches from the tracker and forgets its cached snapshot.
    """

    def __init__(
        self,
        name: str,
        tables: Iterable[str],
        query: Callable[[], T],
        tracker: InvalidationTracker,
        executor: Executor,
    ) -> None:
        super().__init__()
        self.name = name
        self.tables = tuple(tables)
        self._query = query
        self._tracker = tracker
        self._executor = executor
        self._tracker_subscription: Subscription | None = None
        self._run_lock = threading.Lock()
        self._running = False
        self._pending = False

    def _on_active(self) -> None:
        self._tracker_subscription = self._tracker.add_observer(
            self.tables, self._on_invalidated
        )
        self._schedule()

    def _on_inactive(self) -> None:
        if self._tracker_subscription is not None:
            self._tracker_subscription.cancel()
            self._tracker_subscription = None
        self._clear_value()

    def _on_invalidated(self, table: str) -> None:
        self._schedule()

    def _schedule(self) -> None:
        with self._run_lock:
            self._pending = True
            if self._running:
                return
            self._running = True

        try:
            self._executor.submit(self._run)
        except RuntimeError:
            with self._run_lock:
                self._running = False
                self._pending = False
            logger.debug(f"Live query {self.name} not scheduled: executor is shut down")

    def _run(self) -> None:
        while True:
            with self._run_lock:
                if not self._pending:
                    self._running = False
                    return
                self._pending = False

            if not self.has_observers:
                continue

            try:
                result = self._query()
            except Exception as e:
                logger.error(f"Live query {self.name} failed: {e}", exc_info=True)
                continue

            LIVE_QUERY_RUNS.labels(query=self.name).inc()

            with self._lock:
                if self._observers:
                    self._set_value(result)
