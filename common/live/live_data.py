"""Thread-safe observable values."""

import itertools
import logging
import threading
from collections.abc import Callable
from typing import Generic, TypeVar, cast

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSET = object()


class Subscription:
    """Cancellable registration of an observer."""

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel = on_cancel
        self._active = True
        self._lock = threading.Lock()

    @property
    def is_active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False

        self._on_cancel()


class LiveData(Generic[T]):
    """Holds the latest value of something and pushes changes to observers.

    A new observer immediately receives the current value when one has been
    set. Deliveries are serialized: observers see values in the order they
    were set and never receive anything after their subscription has been
    cancelled. Subclasses get on_active/on_inactive hooks when the first
    observer arrives and when the last one leaves.
    """

    def __init__(self) -> None:
        self._value: object = _UNSET
        self._observers: dict[int, Callable[[T], None]] = {}
        self._keys = itertools.count()
        self._lock = threading.RLock()

    @property
    def value(self) -> T | None:
        """The latest value, or None if nothing has been set yet."""
        with self._lock:
            return None if self._value is _UNSET else cast(T, self._value)

    @property
    def has_value(self) -> bool:
        with self._lock:
            return self._value is not _UNSET

    @property
    def has_observers(self) -> bool:
        with self._lock:
            return bool(self._observers)

    def observe(self, callback: Callable[[T], None]) -> Subscription:
        with self._lock:
            key = next(self._keys)
            became_active = not self._observers
            self._observers[key] = callback

            if self._value is not _UNSET:
                self._deliver(callback, cast(T, self._value))

            if became_active:
                self._on_active()

        return Subscription(lambda: self._remove_observer(key))

    def wait_for(
        self, predicate: Callable[[T], bool], timeout: float | None = None
    ) -> T:
        """Block until a value satisfying predicate is observed and return it.

        Raises:
            TimeoutError: If no matching value arrives within timeout
        """
        matched = threading.Event()
        found: list[T] = []

        def on_value(value: T) -> None:
            if not matched.is_set() and predicate(value):
                found.append(value)
                matched.set()

        subscription = self.observe(on_value)
        try:
            if not matched.wait(timeout):
                raise TimeoutError(f"No matching value observed within {timeout}s")
            return found[0]
        finally:
            subscription.cancel()

    def first(self, timeout: float | None = None) -> T:
        """Block until a value is available and return it."""
        return self.wait_for(lambda _: True, timeout)

    def _set_value(self, value: T) -> None:
        with self._lock:
            self._value = value
            for key, callback in list(self._observers.items()):
                if key in self._observers:
                    self._deliver(callback, value)

    def _clear_value(self) -> None:
        with self._lock:
            self._value = _UNSET

    def _remove_observer(self, key: int) -> None:
        with self._lock:
            if self._observers.pop(key, None) is None:
                return
            if not self._observers:
                self._on_inactive()

    def _deliver(self, callback: Callable[[T], None], value: T) -> None:
        try:
            callback(value)
        except Exception as e:
            logger.error(
                f"Observer {getattr(callback, '__qualname__', repr(callback))} failed: {e}",
                exc_info=True,
            )

    def _on_active(self) -> None:
        """Called when the first observer subscribes."""

    def _on_inactive(self) -> None:
        """Called when the last observer unsubscribes."""


class MutableLiveData(LiveData[T]):
    """LiveData whose owner publishes values directly."""

    def __init__(self, value: object = _UNSET) -> None:
        super().__init__()
        self._value = value

    def set_value(self, value: T) -> None:
        self._set_value(value)
