"""Table-level change notification."""

import itertools
import logging
import threading
from collections.abc import Callable, Iterable

from common.live.live_data import Subscription

logger = logging.getLogger(__name__)


class InvalidationTracker:
    """Maps table names to the observers that care about them.

    Writers call notify() after committing a change; every observer of the
    touched table is called on the writer's thread and is expected to hand
    the real work off elsewhere.
    """

    def __init__(self) -> None:
        self._observers: dict[str, dict[int, Callable[[str], None]]] = {}
        self._keys = itertools.count()
        self._lock = threading.Lock()

    def add_observer(
        self, tables: Iterable[str], callback: Callable[[str], None]
    ) -> Subscription:
        key = next(self._keys)
        table_names = list(tables)

        with self._lock:
            for table in table_names:
                self._observers.setdefault(table, {})[key] = callback

        return Subscription(lambda: self._remove_observer(key, table_names))

    def notify(self, *tables: str) -> None:
        for table in tables:
            with self._lock:
                callbacks = list(self._observers.get(table, {}).values())

            logger.debug(f"Table {table} invalidated, notifying {len(callbacks)} observer(s)")

            for callback in callbacks:
                try:
                    callback(table)
                except Exception as e:
                    logger.error(f"Invalidation observer for {table} failed: {e}")

    def observer_count(self, table: str) -> int:
        with self._lock:
            return len(self._observers.get(table, {}))

    def _remove_observer(self, key: int, tables: list[str]) -> None:
        with self._lock:
            for table in tables:
                observers = self._observers.get(table)
                if observers is None:
                    continue
                observers.pop(key, None)
                if not observers:
                    del self._observers[table]
