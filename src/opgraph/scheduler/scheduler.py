"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Operation scheduler — registry plus a single serialized dispatch loop.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import threading
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Literal, Protocol

from .operation import (
    CallbackOperation,
    FunctionOperation,
    Operation,
    OperationBody,
    OperationCallback,
    normalize_dependencies,
)
from .selection import Selection, select_next
from .snapshot import SchedulerSnapshot
from .types import (
    EXECUTING,
    NORMAL_PRIORITY,
    PENDING,
    Completed,
    Executing,
    OperationStatus,
)

logger = logging.getLogger("opgraph.scheduler")

WAIT_FOR_PREFIX = "wait_for:"

EventKind = Literal[
    "added", "removed", "completed", "retriggered", "next", "watchdog", "stop"
]


class SchedulerMetrics(Protocol):
    """Minimal metrics interface for scheduler instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpSchedulerMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


@dataclass
class SchedulerConfig:
    """
    Configuration for the operation scheduler.

    Attributes:
        next_tick_s: Delay before re-running selection after an operation starts.
        watchdog_s: Delay before a safety re-check while unexecuted work remains.
        autostart: Start the dispatch thread on the first registration.
        thread_name: Name of the dispatch thread.
        shutdown_timeout_s: How long ``shutdown()`` waits for the thread to exit.
    """

    next_tick_s: float = 0.1
    watchdog_s: float = 0.5
    autostart: bool = True
    thread_name: str = "opgraph-dispatch"
    shutdown_timeout_s: float = 5.0

    def validate(self) -> None:
        if self.next_tick_s <= 0:
            raise ValueError("next_tick_s must be > 0")
        if self.watchdog_s <= 0:
            raise ValueError("watchdog_s must be > 0")
        if self.shutdown_timeout_s < 0:
            raise ValueError("shutdown_timeout_s must be >= 0")


@dataclass(frozen=True, slots=True)
class _Event:
    kind: EventKind
    name: str | None = None


class OperationScheduler:
    """
    Runs named operations once their dependencies complete.

    Operations are processed by priority and then by the order in which they
    were registered. Consider, as ``Name[priority]: dependencies``::

        A[10]: C
        B[10]: A, C
        C[10]: none
        D[10]: none

    With equal priorities C runs first, then A, then B, then D. Raising D to
    20 makes D run first, followed by C, A and B.

    Every registry change is funnelled into one dispatch coroutine running on
    a private event loop thread, which starts at most one operation per pass.
    ``on_ready`` bodies run on that thread; they should hand blocking work off
    and call ``done`` later.
    """

    def __init__(
        self,
        *,
        config: SchedulerConfig | None = None,
        metrics: SchedulerMetrics | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._config = config or SchedulerConfig()
        self._config.validate()
        self._metrics: SchedulerMetrics = metrics or NoOpSchedulerMetrics()
        self._clock = clock or time.monotonic_ns

        self._lock = threading.RLock()
        self._operations: dict[str, Operation] = {}
        self._last_stamp = 0

        self._lifecycle_lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._events: asyncio.Queue[_Event] | None = None
        self._thread: threading.Thread | None = None
        self._closed = False

        # Touched only on the dispatch thread.
        self._has_unexecuted = False
        self._watchdog: asyncio.TimerHandle | None = None
        self._body_tasks: set[asyncio.Future[None]] = set()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(self, operation: Operation) -> None:
        """
        Add an operation, replacing any registered under the same name.

        The operation is reset to pending. A replaced record that is still
        executing is orphaned: its body keeps running and its completion is
        ignored.
        """
        if self._closed:
            raise RuntimeError("OperationScheduler has been shut down")
        operation._attach(self)  # noqa: SLF001
        with self._lock:
            operation._state = PENDING  # noqa: SLF001
            operation._last_executed_at = 0  # noqa: SLF001
            self._operations[operation.name] = operation
        self._metrics.incr("opgraph_operations_registered_total")
        logger.debug("Operation added: %s", operation.name)
        self._post(_Event("added", operation.name))

    def register(
        self,
        name: str,
        dependencies: Iterable[str] | str | None,
        body: OperationBody,
        *,
        priority: int = NORMAL_PRIORITY,
    ) -> Operation:
        """
        Add an operation implemented by ``body(statuses, done)``.

        ``body`` must call ``done(success)`` exactly once per activation.
        """
        operation = FunctionOperation(name, dependencies, body, priority)
        self.add(operation)
        return operation

    def register_callback(
        self,
        name: str,
        dependencies: Iterable[str] | str | None,
        callback: OperationCallback,
        *,
        priority: int = NORMAL_PRIORITY,
    ) -> Operation:
        """Add an operation implemented by a plain callback; success is automatic."""
        operation = CallbackOperation(name, dependencies, callback, priority)
        self.add(operation)
        return operation

    def remove(self, name: str) -> Operation | None:
        """
        Remove an operation from the graph.

        Returns:
            The removed operation, or ``None`` when the name was not found.
        """
        with self._lock:
            operation = self._operations.pop(name, None)
        if operation is not None:
            logger.debug("Operation removed: %s", name)
            self._post(_Event("removed", name))
        return operation

    def retrigger(self, name: str) -> bool:
        """
        Cause an operation to be executed again.

        Returns:
            ``True`` if the operation will run again, ``False`` if it was not
            found or is currently executing.
        """
        with self._lock:
            operation = self._operations.get(name)
            if operation is None or isinstance(operation.state, Executing):
                return False
            operation._state = PENDING  # noqa: SLF001
            operation._last_executed_at = 0  # noqa: SLF001
        self._metrics.incr("opgraph_operations_retriggered_total")
        logger.debug("Operation retriggered: %s", name)
        self._post(_Event("retriggered", name))
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_executed(self, name: str) -> bool:
        """Whether the named operation exists and has completed."""
        with self._lock:
            operation = self._operations.get(name)
            return operation is not None and isinstance(operation.state, Completed)

    def has_all_executed(self, names: Iterable[str] | str) -> bool:
        """Whether every named operation exists and has completed."""
        return all(self.has_executed(name) for name in normalize_dependencies(names))

    @property
    def has_pending_work(self) -> bool:
        """Whether any registered operation has not completed."""
        with self._lock:
            return any(
                not isinstance(op.state, Completed) for op in self._operations.values()
            )

    def get(self, name: str) -> Operation | None:
        with self._lock:
            return self._operations.get(name)

    def snapshot(self) -> SchedulerSnapshot:
        """Point-in-time view of every registered operation."""
        with self._lock:
            return SchedulerSnapshot.from_registry(self._operations)

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._operations

    @property
    def is_running(self) -> bool:
        """Whether the dispatch thread is active."""
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._closed

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def wait_for(self, names: Iterable[str] | str, callback: OperationCallback) -> None:
        """
        Invoke ``callback`` once every named operation has completed.

        When they already have, ``callback`` runs immediately on the calling
        thread. Otherwise a one-shot helper operation is registered; it runs
        ``callback`` on the dispatch thread and removes itself afterwards.
        """
        self._wait_for(names, callback)

    def wait(self, names: Iterable[str] | str, timeout: float | None = None) -> bool:
        """
        Block until every named operation has completed.

        Returns:
            ``True`` if the names were satisfied, ``False`` on timeout.
        """
        if self._thread is not None and threading.current_thread() is self._thread:
            raise RuntimeError(
                "wait() would block the dispatch thread; use wait_for() instead"
            )
        satisfied = threading.Event()
        helper = self._wait_for(names, satisfied.set)
        if satisfied.wait(timeout):
            return True
        if helper is not None:
            self.remove(helper)
        return satisfied.is_set()

    def _wait_for(
        self, names: Iterable[str] | str, callback: OperationCallback
    ) -> str | None:
        dependencies = normalize_dependencies(names)
        if self.has_all_executed(dependencies):
            callback()
            return None
        helper = f"{WAIT_FOR_PREFIX}{uuid.uuid4().hex}"
        self.add(CallbackOperation(helper, dependencies, callback, synthetic=True))
        return helper

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the dispatch thread; a no-op when it is already running."""
        with self._lifecycle_lock:
            if self._closed:
                raise RuntimeError("OperationScheduler has been shut down")
            self._start_locked()

    def shutdown(self, timeout: float | None = None) -> None:
        """
        Stop the dispatch loop.

        Pending ticks are dropped and awaitable bodies still running on the
        loop are cancelled. Later completion reports are ignored.
        """
        with self._lifecycle_lock:
            if self._closed:
                return
            self._closed = True
            loop, events, thread = self._loop, self._events, self._thread
            if loop is not None and events is not None and thread is not None:
                loop.call_soon_threadsafe(events.put_nowait, _Event("stop"))

        if thread is None:
            if loop is not None:
                loop.close()
        elif thread is not threading.current_thread():
            wait_s = self._config.shutdown_timeout_s if timeout is None else timeout
            thread.join(wait_s)
            if thread.is_alive():
                logger.warning(
                    "OperationScheduler dispatch thread did not stop within %.1fs",
                    wait_s,
                )
        logger.info("OperationScheduler shut down")

    def __enter__(self) -> OperationScheduler:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _ensure_loop_locked(
        self,
    ) -> tuple[asyncio.AbstractEventLoop, asyncio.Queue[_Event]]:
        if self._loop is None or self._events is None:
            self._loop = asyncio.new_event_loop()
            self._events = asyncio.Queue()
        return self._loop, self._events

    def _start_locked(self) -> None:
        if self._thread is not None:
            return
        self._ensure_loop_locked()
        self._thread = threading.Thread(
            target=self._run, name=self._config.thread_name, daemon=True
        )
        self._thread.start()
        logger.info(
            "OperationScheduler started (next_tick=%.2fs, watchdog=%.2fs)",
            self._config.next_tick_s,
            self._config.watchdog_s,
        )

    def _post(self, event: _Event) -> None:
        """Hand an event to the dispatch loop from any thread."""
        with self._lifecycle_lock:
            if self._closed:
                logger.debug("Dropping %s event after shutdown", event.kind)
                return
            loop, events = self._ensure_loop_locked()
            loop.call_soon_threadsafe(events.put_nowait, event)
            if self._config.autostart:
                self._start_locked()

    def _run(self) -> None:
        loop = self._loop
        assert loop is not None
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._dispatch())
            loop.run_until_complete(loop.shutdown_asyncgens())
        finally:
            loop.close()

    # ------------------------------------------------------------------
    # Dispatch loop
    # ------------------------------------------------------------------

    async def _dispatch(self) -> None:
        """Main consumer loop."""
        events = self._events
        assert events is not None
        while True:
            event = await events.get()
            # Events still queued behind a shutdown are dropped.
            if event.kind == "stop" or self._closed:
                break
            try:
                self._handle(event)
            except Exception:
                logger.exception("Dispatch loop error (event=%s)", event.kind)
        await self._teardown()

    async def _teardown(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        pending = [task for task in self._body_tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.info("Cancelling %d pending operation bodies", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    def _handle(self, event: _Event) -> None:
        if event.kind == "watchdog":
            self._watchdog = None
            if self._has_unexecuted:
                self._enqueue(_Event("next"))
            return
        if event.kind == "added":
            self._has_unexecuted = True

        selected = self._select()
        if selected is None:
            return
        operation, statuses = selected
        self._start_operation(operation, statuses)

        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        loop = asyncio.get_running_loop()
        if self._has_unexecuted:
            self._watchdog = loop.call_later(
                self._config.watchdog_s, self._enqueue, _Event("watchdog")
            )
        loop.call_later(self._config.next_tick_s, self._enqueue, _Event("next"))

    def _enqueue(self, event: _Event) -> None:
        events = self._events
        if events is not None and not self._closed:
            events.put_nowait(event)

    def _select(self) -> tuple[Operation, list[OperationStatus]] | None:
        with self._lock:
            selection = select_next(self._operations)
            operation = selection.operation
            statuses: list[OperationStatus] = []
            if operation is not None:
                operation._state = EXECUTING  # noqa: SLF001
                for dep in operation.dependencies:
                    statuses.append(
                        OperationStatus(dep, self._operations[dep].success is True)
                    )

        self._has_unexecuted = selection.has_unexecuted
        if operation is None:
            self._report_idle(selection)
            return None
        return operation, statuses

    def _report_idle(self, selection: Selection) -> None:
        if selection.cycle_suspected:
            self._metrics.incr("opgraph_dependency_cycle_suspected_total")
            logger.error(
                "Problem choosing next operation to execute. Is there a dependency cycle?"
            )
        if logger.isEnabledFor(logging.DEBUG):
            report = self.snapshot().pending_report()
            if report:
                logger.debug("No operation ready to run; pending operations:\n%s", report)

    def _start_operation(
        self, operation: Operation, statuses: list[OperationStatus]
    ) -> None:
        self._metrics.incr("opgraph_operations_started_total")
        logger.debug("Operation starting: %s", operation.name)
        try:
            result = operation.on_ready(statuses)
        except Exception:
            logger.exception("Operation '%s' failed in on_ready", operation.name)
            self._operation_complete(operation, False)
            return
        if inspect.isawaitable(result):
            self._track_body(operation, result)

    def _track_body(self, operation: Operation, awaitable: Awaitable[None]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._body_tasks.add(task)
        task.add_done_callback(functools.partial(self._body_finished, operation))

    def _body_finished(self, operation: Operation, task: asyncio.Future[None]) -> None:
        self._body_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Operation '%s' failed in its awaitable body",
                operation.name,
                exc_info=exc,
            )
            self._operation_complete(operation, False)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _operation_complete(self, operation: Operation, success: bool) -> bool:
        """
        Record completion reported by ``Operation.done``.

        Reports for a record that is no longer registered, or that is not
        executing, are ignored.
        """
        with self._lock:
            current = self._operations.get(operation.name)
            if current is not operation or not isinstance(operation.state, Executing):
                logger.debug(
                    "Ignoring completion of '%s' (state=%s, registered=%s)",
                    operation.name,
                    operation.state.name,
                    current is operation,
                )
                return False
            operation._state = Completed(success)  # noqa: SLF001
            operation._last_executed_at = self._next_stamp()  # noqa: SLF001
        self._metrics.incr(
            "opgraph_operations_completed_total",
            tags={"success": "true" if success else "false"},
        )
        logger.debug("Operation complete: %s (success=%s)", operation.name, success)
        self._post(_Event("completed", operation.name))
        return True

    def _next_stamp(self) -> int:
        stamp = max(int(self._clock()), self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp
