"""Process lifetime coordinator.

The task service drains its queue in a shutdown waiter and the store handle
closes on SHUTDOWN, so a single shutdown() call stops the process in order.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class LifetimeEvent(str, Enum):
    """Events raised, in this order, by a shutdown."""

    PREPARE_SHUTDOWN = "prepare-shutdown"
    SHUTDOWN = "shutdown"


LifetimeCallback = Callable[[LifetimeEvent], None]
ShutdownWaiter = Callable[[float], bool]


class ShutdownCoordinatorProtocol(ABC):
    """What long-lived services need from the lifetime coordinator."""

    @abstractmethod
    def register_lifetime_notification(self, callback: LifetimeCallback) -> None:
        """Call callback with every lifetime event."""

    @abstractmethod
    def register_shutdown_waiter(self, name: str, handler: ShutdownWaiter) -> None:
        """Let handler hold up shutdown until its owner has drained.

        The handler receives the seconds it may block and returns whether it
        finished in time.
        """

    @abstractmethod
    def is_shutting_down(self) -> bool:
        pass

    @abstractmethod
    def shutdown(self) -> None:
        pass


class ShutdownCoordinator(ShutdownCoordinatorProtocol):
    """Runs the shutdown sequence once.

    PREPARE_SHUTDOWN tells services to stop accepting work. Waiters then run
    in registration order against one shared deadline. SHUTDOWN follows
    whether or not every waiter drained in time.
    """

    def __init__(self, graceful_shutdown_timeout: float):
        self.graceful_shutdown_timeout = graceful_shutdown_timeout
        self._callbacks: list[LifetimeCallback] = []
        self._waiters: dict[str, ShutdownWaiter] = {}
        self._shutting_down = False
        self._lock = threading.Lock()

    def register_lifetime_notification(self, callback: LifetimeCallback) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def register_shutdown_waiter(self, name: str, handler: ShutdownWaiter) -> None:
        with self._lock:
            self._waiters[name] = handler
        logger.debug(f"Registered shutdown waiter {name}")

    def is_shutting_down(self) -> bool:
        with self._lock:
            return self._shutting_down

    def shutdown(self) -> None:
        with self._lock:
            if self._shutting_down:
                logger.debug("Shutdown already in progress")
                return
            self._shutting_down = True
            waiters = list(self._waiters.items())

        started = time.monotonic()
        deadline = started + self.graceful_shutdown_timeout

        self._notify(LifetimeEvent.PREPARE_SHUTDOWN)

        late = [name for name, waiter in waiters if not self._wait(name, waiter, deadline)]
        if late:
            logger.error(f"Forcing shutdown, still busy: {', '.join(late)}")

        self._notify(LifetimeEvent.SHUTDOWN)
        logger.info(f"Shutdown finished in {time.monotonic() - started:.1f}s")

    def _wait(self, name: str, waiter: ShutdownWaiter, deadline: float) -> bool:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False

        try:
            return waiter(remaining)
        except Exception as e:
            logger.error(f"Shutdown waiter {name} failed: {e}")
            return False

    def _notify(self, event: LifetimeEvent) -> None:
        logger.info(f"Raising lifetime event {event.value}")

        with self._lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(
                    f"Lifetime callback {getattr(callback, '__qualname__', repr(callback))} "
                    f"failed on {event.value}: {e}"
                )
