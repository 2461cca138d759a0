"""Tests for observable values, the invalidation tracker and live queries."""

import logging
import threading
from collections.abc import Generator
from concurrent.futures import ThreadPoolExecutor

import pytest

from common.live import InvalidationTracker, LiveQuery, MutableLiveData, Subscription
from tests.testing_utils import WAIT_TIMEOUT


@pytest.fixture
def executor() -> Generator[ThreadPoolExecutor, None, None]:
    pool = ThreadPoolExecutor(max_workers=2)
    try:
        yield pool
    finally:
        pool.shutdown(wait=True, cancel_futures=True)


@pytest.fixture
def tracker() -> InvalidationTracker:
    return InvalidationTracker()


class TestSubscription:
    def test_cancel_runs_callback_once(self) -> None:
        calls: list[str] = []
        subscription = Subscription(lambda: calls.append("cancelled"))

        subscription.cancel()
        subscription.cancel()

        assert calls == ["cancelled"]
        assert not subscription.is_active


class TestMutableLiveData:
    def test_new_observer_receives_current_value(self) -> None:
        live: MutableLiveData[int] = MutableLiveData(7)
        seen: list[int] = []

        live.observe(seen.append)

        assert seen == [7]

    def test_no_delivery_before_first_value(self) -> None:
        live: MutableLiveData[int] = MutableLiveData()
        seen: list[int] = []

        live.observe(seen.append)

        assert seen == []
        assert not live.has_value
        assert live.value is None

    def test_values_delivered_in_order(self) -> None:
        live: MutableLiveData[int] = MutableLiveData()
        seen: list[int] = []
        live.observe(seen.append)

        for value in (1, 2, 3):
            live.set_value(value)

        assert seen == [1, 2, 3]
        assert live.value == 3

    def test_cancelled_observer_gets_nothing_more(self) -> None:
        live: MutableLiveData[int] = MutableLiveData()
        seen: list[int] = []
        subscription = live.observe(seen.append)
        live.set_value(1)

        subscription.cancel()
        live.set_value(2)

        assert seen == [1]
        assert not live.has_observers

    def test_failing_observer_does_not_block_others(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        live: MutableLiveData[int] = MutableLiveData()
        seen: list[int] = []

        def broken(value: int) -> None:
            raise RuntimeError("observer broke")

        live.observe(broken)
        live.observe(seen.append)

        with caplog.at_level(logging.ERROR):
            live.set_value(5)

        assert seen == [5]
        assert "observer broke" in caplog.text

    def test_wait_for_returns_matching_value(self) -> None:
        live: MutableLiveData[int] = MutableLiveData(0)

        timer = threading.Timer(0.05, live.set_value, args=(42,))
        timer.start()
        try:
            assert live.wait_for(lambda v: v == 42, timeout=WAIT_TIMEOUT) == 42
        finally:
            timer.cancel()

        assert not live.has_observers

    def test_wait_for_times_out(self) -> None:
        live: MutableLiveData[int] = MutableLiveData(0)

        with pytest.raises(TimeoutError):
            live.wait_for(lambda v: v == 1, timeout=0.05)

        assert not live.has_observers


class TestInvalidationTracker:
    def test_notifies_only_matching_table(self, tracker: InvalidationTracker) -> None:
        seen: list[str] = []
        tracker.add_observer(["item"], seen.append)
        tracker.add_observer(["other"], lambda table: seen.append(f"wrong:{table}"))

        tracker.notify("item")

        assert seen == ["item"]

    def test_observer_of_several_tables(self, tracker: InvalidationTracker) -> None:
        seen: list[str] = []
        subscription = tracker.add_observer(["a", "b"], seen.append)

        tracker.notify("a", "b")

        assert seen == ["a", "b"]
        assert tracker.observer_count("a") == 1

        subscription.cancel()

        assert tracker.observer_count("a") == 0
        assert tracker.observer_count("b") == 0

    def test_failing_observer_is_logged(
        self, tracker: InvalidationTracker, caplog: pytest.LogCaptureFixture
    ) -> None:
        seen: list[str] = []

        def broken(table: str) -> None:
            raise RuntimeError("tracker observer broke")

        tracker.add_observer(["item"], broken)
        tracker.add_observer(["item"], seen.append)

        with caplog.at_level(logging.ERROR):
            tracker.notify("item")

        assert seen == ["item"]
        assert "tracker observer broke" in caplog.text

    def test_notify_without_observers(self, tracker: InvalidationTracker) -> None:
        tracker.notify("nobody-listens")

        assert tracker.observer_count("nobody-listens") == 0


class TestLiveQuery:
    def test_query_not_run_until_observed(
        self, tracker: InvalidationTracker, executor: ThreadPoolExecutor
    ) -> None:
        runs: list[int] = []
        LiveQuery("lazy", ["item"], lambda: runs.append(1), tracker, executor)

        tracker.notify("item")
        executor.shutdown(wait=True)

        assert runs == []

    def test_reruns_after_invalidation(
        self, tracker: InvalidationTracker, executor: ThreadPoolExecutor
    ) -> None:
        counter = {"runs": 0}

        def query() -> int:
            counter["runs"] += 1
            return counter["runs"]

        live = LiveQuery("counter", ["item"], query, tracker, executor)
        subscription = live.observe(lambda value: None)
        try:
            live.wait_for(lambda v: v == 1, timeout=WAIT_TIMEOUT)

            tracker.notify("item")

            assert live.wait_for(lambda v: v == 2, timeout=WAIT_TIMEOUT) == 2
        finally:
            subscription.cancel()

    def test_invalidations_during_run_are_coalesced(
        self, tracker: InvalidationTracker, executor: ThreadPoolExecutor
    ) -> None:
        gate = threading.Event()
        started = threading.Event()
        counter = {"runs": 0}

        def query() -> int:
            counter["runs"] += 1
            started.set()
            gate.wait(timeout=WAIT_TIMEOUT)
            return counter["runs"]

        live = LiveQuery("coalesced", ["item"], query, tracker, executor)
        subscription = live.observe(lambda value: None)
        try:
            assert started.wait(timeout=WAIT_TIMEOUT)

            for _ in range(3):
                tracker.notify("item")
            gate.set()

            assert live.wait_for(lambda v: v == 2, timeout=WAIT_TIMEOUT) == 2
            executor.shutdown(wait=True)
            assert counter["runs"] == 2
        finally:
            subscription.cancel()

    def test_last_unsubscribe_detaches_and_forgets(
        self, tracker: InvalidationTracker, executor: ThreadPoolExecutor
    ) -> None:
        live = LiveQuery("detach", ["item"], lambda: "snapshot", tracker, executor)
        first = live.observe(lambda value: None)
        second = live.observe(lambda value: None)
        live.wait_for(lambda v: v == "snapshot", timeout=WAIT_TIMEOUT)

        first.cancel()
        assert tracker.observer_count("item") == 1

        second.cancel()
        assert tracker.observer_count("item") == 0
        assert not live.has_value

    def test_reobserving_runs_query_again(
        self, tracker: InvalidationTracker, executor: ThreadPoolExecutor
    ) -> None:
        counter = {"runs": 0}

        def query() -> int:
            counter["runs"] += 1
            return counter["runs"]

        live = LiveQuery("again", ["item"], query, tracker, executor)

        assert live.first(timeout=WAIT_TIMEOUT) == 1
        assert live.first(timeout=WAIT_TIMEOUT) == 2

    def test_failing_query_is_logged(
        self,
        tracker: InvalidationTracker,
        executor: ThreadPoolExecutor,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        attempted = threading.Event()

        def query() -> int:
            attempted.set()
            raise RuntimeError("query broke")

        live = LiveQuery("broken", ["item"], query, tracker, executor)

        with caplog.at_level(logging.ERROR):
            subscription = live.observe(lambda value: None)
            assert attempted.wait(timeout=WAIT_TIMEOUT)
            executor.shutdown(wait=True)

        try:
            assert "Live query broken failed" in caplog.text
            assert not live.has_value
        finally:
            subscription.cancel()

    def test_observe_after_executor_shutdown(
        self, tracker: InvalidationTracker, executor: ThreadPoolExecutor
    ) -> None:
        executor.shutdown(wait=True)
        live = LiveQuery("late", ["item"], lambda: 1, tracker, executor)

        subscription = live.observe(lambda value: None)

        assert not live.has_value
        subscription.cancel()
