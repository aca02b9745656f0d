"""Tests for PhaseExecutor fan-out/join semantics."""

import threading
import time

import pytest

from shardmerge.core.exceptions.merge import (
    MergeCancelledError,
    MergeOperationalError,
    PhaseTimeoutError,
    ValidationMismatch,
)
from shardmerge.core.models.merge import MergePhase
from shardmerge.services.phase_executor import PhaseExecutor, node_label


class Named:
    def __init__(self, name):
        self.name = name


@pytest.fixture
def executor():
    return PhaseExecutor(poll_interval=0.01)


class TestFanOut:
    def test_results_in_item_order(self, executor):
        def slow_square(n):
            time.sleep(0.01 * (5 - n))
            return n * n

        assert executor.fan_out("square", range(5), slow_square) == [0, 1, 4, 9, 16]

    def test_empty_phase_returns_immediately(self, executor):
        assert executor.fan_out("empty", [], lambda item: item) == []

    def test_units_run_concurrently(self, executor):
        barrier = threading.Barrier(3, timeout=5)

        # Deadlocks (and times out) unless all three units run at once
        executor.fan_out("barrier", range(3), lambda _: barrier.wait())

    def test_max_workers_bounds_concurrency(self, executor):
        lock = threading.Lock()
        running = 0
        peak = 0

        def unit(_):
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            time.sleep(0.02)
            with lock:
                running -= 1

        executor.fan_out("bounded", range(8), unit, max_workers=2)

        assert peak <= 2

    def test_enum_phase_name_in_errors(self, executor):
        def fail(_):
            raise RuntimeError("boom")

        with pytest.raises(MergeOperationalError) as excinfo:
            executor.fan_out(MergePhase.EXPORT, [Named("db-1")], fail)

        assert excinfo.value.phase == "export"


class TestFailures:
    def test_failure_wrapped_with_phase_and_node(self, executor):
        def fail_on_b(item):
            if item.name == "b":
                raise RuntimeError("boom")

        with pytest.raises(MergeOperationalError) as excinfo:
            executor.fan_out("import", [Named("a"), Named("b")], fail_on_b)

        err = excinfo.value
        assert err.phase == "import"
        assert err.node == "b"
        assert isinstance(err.__cause__, RuntimeError)
        assert "RuntimeError: boom" in str(err)

    def test_operational_errors_pass_through(self, executor):
        original = ValidationMismatch("users: imported 3 rows, expected 4")

        def fail(_):
            raise original

        with pytest.raises(ValidationMismatch) as excinfo:
            executor.fan_out("import", [Named("db-1")], fail)

        assert excinfo.value is original
        assert excinfo.value.phase == "import"
        assert excinfo.value.node == "db-1"

    def test_failed_phase_does_not_block_later_phases(self, executor):
        with pytest.raises(MergeOperationalError):
            executor.fan_out("first", [Named("a")], lambda _: 1 / 0)

        assert not executor.cancelled
        assert executor.fan_out("second", [Named("a")], lambda item: item.name) == ["a"]

    def test_queued_units_do_not_start_after_failure(self, executor):
        started = []

        def unit(n):
            started.append(n)
            if n == 0:
                raise RuntimeError("first unit fails")
            time.sleep(0.01)

        with pytest.raises(MergeOperationalError):
            executor.fan_out("serial", range(5), unit, max_workers=1)

        # At most the unit already picked up by the worker starts
        assert started[0] == 0
        assert len(started) <= 2

    def test_running_siblings_finish_before_error_is_raised(self, executor):
        sibling_started = threading.Event()
        finished = threading.Event()

        def unit(n):
            if n == 0:
                sibling_started.wait(timeout=5)
                raise RuntimeError("fast failure")
            sibling_started.set()
            time.sleep(0.1)
            finished.set()

        with pytest.raises(MergeOperationalError):
            executor.fan_out("drain", range(2), unit)

        assert finished.is_set()


class TestTimeoutAndCancel:
    def test_stalled_unit_raises_timeout(self):
        executor = PhaseExecutor(unit_timeout=0.1, poll_interval=0.01)
        release = threading.Event()

        try:
            with pytest.raises(PhaseTimeoutError) as excinfo:
                executor.fan_out(
                    "transfer",
                    [Named("fast"), Named("stuck")],
                    lambda item: item.name == "stuck" and release.wait(timeout=5),
                )
        finally:
            release.set()

        assert excinfo.value.phase == "transfer"
        assert excinfo.value.node == "stuck"
        assert not executor.cancelled

    def test_no_timeout_by_default(self, executor):
        assert executor.unit_timeout is None
        assert executor.fan_out("slow", [1], lambda _: time.sleep(0.05) or "done") == ["done"]

    def test_cancel_before_phase(self):
        event = threading.Event()
        executor = PhaseExecutor(poll_interval=0.01, cancel_event=event)
        event.set()

        with pytest.raises(MergeCancelledError) as excinfo:
            executor.fan_out("export", [Named("a")], lambda _: None)

        assert excinfo.value.phase == "export"
        assert excinfo.value.node is None

    def test_shared_cancel_event(self):
        event = threading.Event()
        executor = PhaseExecutor(cancel_event=event)

        event.set()

        assert executor.cancelled

    def test_run_step_returns_single_result(self, executor):
        assert executor.run_step("single", Named("db-1"), lambda item: item.name) == "db-1"


def test_node_label_falls_back_to_repr():
    assert node_label(Named("db-1")) == "db-1"
    assert node_label(42) == "42"
