"""Phase executor - explicit fan-out/join barriers for merge phases.

# FILE_CONTEXT: Runs the units of one merge phase on a thread pool and joins them
# CRITICAL: A phase returns only after every unit finished (full barrier)
# CONSTRAINT: Results come back through futures; workers never share a dict
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from typing import Any, TypeVar

from loguru import logger

from shardmerge.core.exceptions.merge import (
    MergeCancelledError,
    MergeOperationalError,
    PhaseTimeoutError,
)

T = TypeVar("T")
R = TypeVar("R")


def node_label(item: Any) -> str:
    """Name used for a unit in logs and errors."""
    name = getattr(item, "name", None)
    return name if isinstance(name, str) else repr(item)


def _phase_name(phase: Any) -> str:
    # str-mixin enums format as "Class.MEMBER" on newer interpreters
    return str(getattr(phase, "value", phase))


class PhaseExecutor:
    """Fan-out/join executor shared by every phase of one merge run.

    Key invariants:
    - fan_out() blocks until all units are done
    - The first failure aborts only that phase: queued units are cancelled and
      running units are waited for; the executor stays usable afterwards
    - cancel_event belongs to the caller; the executor only reads it
    - A unit running longer than unit_timeout raises PhaseTimeoutError
    """

    def __init__(
        self,
        unit_timeout: float | None = None,
        poll_interval: float = 1.0,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize phase executor.

        Args:
            unit_timeout: Maximum seconds a single unit may run (None = no limit)
            poll_interval: Seconds between checks for stalled units
            cancel_event: Cancellation signal owned by the caller (created if omitted)
        """
        self.unit_timeout = unit_timeout
        self.poll_interval = poll_interval
        self._cancel_event = cancel_event or threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def check_cancelled(self, phase: Any, node: str | None = None) -> None:
        if self._cancel_event.is_set():
            raise MergeCancelledError(
                "Merge cancelled", phase=_phase_name(phase), node=node
            )

    def run_step(
        self, phase: Any, item: T, fn: Callable[[T], R], label: Callable[[T], str] = node_label
    ) -> R:
        """Run a single unit with the same timeout and error handling as fan_out."""
        return self.fan_out(phase, [item], fn, max_workers=1, label=label)[0]

    def fan_out(
        self,
        phase: Any,
        items: Iterable[T],
        fn: Callable[[T], R],
        *,
        max_workers: int | None = None,
        label: Callable[[T], str] = node_label,
    ) -> list[R]:
        """Run fn over items concurrently and join on all of them.

        Args:
            phase: Phase name, used in logs and error context
            items: Units of work
            fn: Blocking callable applied to each item
            max_workers: Concurrency bound (default: one worker per item)
            label: Maps an item to the node name reported on failure

        Returns:
            Results in item order

        Raises:
            MergeOperationalError: If any unit failed, with phase and node set
            PhaseTimeoutError: If a unit exceeded unit_timeout
            MergeCancelledError: If the run was cancelled
        """
        phase = _phase_name(phase)
        units = list(items)
        if not units:
            return []
        self.check_cancelled(phase)

        workers = max_workers or len(units)
        aborted = threading.Event()
        started: dict[int, float] = {}
        started_lock = threading.Lock()

        def run_unit(index: int, item: T) -> R:
            self.check_cancelled(phase, label(item))
            if aborted.is_set():
                raise MergeCancelledError("Phase aborted", phase=phase, node=label(item))
            with started_lock:
                started[index] = time.monotonic()
            try:
                return fn(item)
            finally:
                with started_lock:
                    started.pop(index, None)

        logger.debug(f"{phase}: {len(units)} unit(s) on {workers} worker(s)")
        executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix=f"merge-{phase}"
        )
        try:
            futures: list[Future[R]] = [
                executor.submit(run_unit, index, item)
                for index, item in enumerate(units)
            ]
            pending = set(futures)
            while pending:
                done, pending = wait(
                    pending, timeout=self.poll_interval, return_when=FIRST_EXCEPTION
                )
                failures = [
                    (future, future.exception())
                    for future in done
                    if future.exception() is not None
                ]
                if failures:
                    # Report the root cause, not units that saw the cancellation
                    failures.sort(key=lambda pair: isinstance(pair[1], MergeCancelledError))
                    future, exc = failures[0]
                    self._abort(aborted, pending)
                    self._drain(phase, pending, started, started_lock)
                    self._raise(exc, phase, label(units[futures.index(future)]))
                self._check_stalled(
                    phase, units, started, started_lock, aborted, pending, label
                )
            return [future.result() for future in futures]
        finally:
            # Stalled units keep their thread; do not block the caller on them
            executor.shutdown(wait=False, cancel_futures=True)

    def _check_stalled(
        self,
        phase: str,
        units: list[T],
        started: dict[int, float],
        started_lock: threading.Lock,
        aborted: threading.Event,
        pending: set[Future[R]],
        label: Callable[[T], str],
    ) -> None:
        stalled = self._stalled_units(started, started_lock)
        if not stalled:
            return
        self._abort(aborted, pending)
        node = label(units[stalled[0]])
        logger.error(
            f"{phase}: unit on {node} exceeded {self.unit_timeout:.1f}s, aborting phase"
        )
        raise PhaseTimeoutError(
            f"Unit exceeded {self.unit_timeout:.1f}s timeout", phase=phase, node=node
        )

    def _stalled_units(
        self, started: dict[int, float], started_lock: threading.Lock
    ) -> list[int]:
        if self.unit_timeout is None:
            return []
        now = time.monotonic()
        with started_lock:
            return sorted(
                index
                for index, start in started.items()
                if now - start > self.unit_timeout
            )

    def _drain(
        self,
        phase: str,
        pending: set[Future[R]],
        started: dict[int, float],
        started_lock: threading.Lock,
    ) -> None:
        """Wait for units already running when the phase failed.

        Units that exceed unit_timeout are left behind.
        """
        while pending:
            _, pending = wait(pending, timeout=self.poll_interval)
            if pending and self._stalled_units(started, started_lock):
                logger.warning(f"{phase}: leaving {len(pending)} stalled unit(s) behind")
                return

    def _abort(self, aborted: threading.Event, pending: set[Future[R]]) -> None:
        aborted.set()
        for future in pending:
            future.cancel()

    def _raise(self, exc: BaseException, phase: str, node: str) -> None:
        if isinstance(exc, MergeOperationalError):
            if exc.phase is None:
                exc.phase = phase
            if exc.node is None:
                exc.node = node
            raise exc
        raise MergeOperationalError(
            f"{type(exc).__name__}: {exc}", phase=phase, node=node
        ) from exc
