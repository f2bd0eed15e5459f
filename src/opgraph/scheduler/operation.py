"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Operation entity: a named unit of work with dependencies and a priority.
"""

from __future__ import annotations

import inspect
import logging
import weakref
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any

from .types import (
    NORMAL_PRIORITY,
    PENDING,
    Completed,
    Executing,
    OperationState,
    OperationStatus,
)

if TYPE_CHECKING:
    from .scheduler import OperationScheduler

logger = logging.getLogger("opgraph.scheduler.operation")

# Callback signature for status-aware bodies: ``body(statuses, done)``.
OperationBody = Callable[
    [list[OperationStatus], Callable[[bool], None]], Awaitable[None] | None
]
# Callback signature for plain bodies that report success when they return.
OperationCallback = Callable[[], Any]


def normalize_dependencies(dependencies: Iterable[str] | str | None) -> tuple[str, ...]:
    """
    Return dependency names as a tuple, preserving order and dropping repeats.

    A bare string is a single dependency name, not a sequence of characters.
    """
    if dependencies is None:
        return ()
    if isinstance(dependencies, str):
        dependencies = (dependencies,)
    seen: dict[str, None] = {}
    for dep in dependencies:
        seen.setdefault(dep, None)
    return tuple(seen)


class Operation:
    """
    A distinct task to execute once a set of named dependencies has completed.

    Subclasses override ``on_ready`` and must call ``done`` exactly once per
    activation. ``on_ready`` always runs on the scheduler's dispatch thread;
    ``done`` may be called from any thread, synchronously or later.

    The base implementation reports success immediately, which makes a bare
    ``Operation`` useful as a named barrier over its dependencies.
    """

    NORMAL_PRIORITY = NORMAL_PRIORITY

    def __init__(
        self,
        name: str,
        dependencies: Iterable[str] | str | None = None,
        priority: int = NORMAL_PRIORITY,
        *,
        synthetic: bool = False,
    ) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("Operation name must be a non-empty string")
        self.name = name
        self.dependencies = normalize_dependencies(dependencies)
        self.priority = int(priority)
        self.synthetic = synthetic

        # Mutated only by the owning scheduler while it holds its registry lock.
        self._state: OperationState = PENDING
        self._last_executed_at = 0
        self._scheduler_ref: weakref.ReferenceType[OperationScheduler] | None = None

    def on_ready(self, statuses: list[OperationStatus]) -> Awaitable[None] | None:
        """
        Invoked when every dependency has completed.

        Args:
            statuses: One status per direct dependency, in declaration order.

        Returns:
            ``None``, or an awaitable the scheduler runs on its event loop.
        """
        _ = statuses
        self.done(True)
        return None

    def done(self, success: bool) -> None:
        """
        Report completion of the current activation.

        Args:
            success: ``True`` when the work succeeded, ``False`` otherwise.
        """
        scheduler = self._owner()
        if scheduler is None:
            if self._scheduler_ref is None:
                raise RuntimeError(
                    f"Operation '{self.name}' is not registered with a scheduler"
                )
            logger.debug("Dropping completion of '%s': scheduler is gone", self.name)
            return
        scheduler._operation_complete(self, bool(success))  # noqa: SLF001

    @property
    def state(self) -> OperationState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_executing(self) -> bool:
        return isinstance(self._state, Executing)

    @property
    def has_executed(self) -> bool:
        return isinstance(self._state, Completed)

    @property
    def success(self) -> bool | None:
        """Success flag of the last completion, or ``None`` when not completed."""
        if isinstance(self._state, Completed):
            return self._state.success
        return None

    @property
    def last_executed_at(self) -> int:
        """Completion stamp (monotonic nanoseconds) or 0 when unset."""
        return self._last_executed_at

    def _attach(self, scheduler: OperationScheduler) -> None:
        self._scheduler_ref = weakref.ref(scheduler)

    def _owner(self) -> OperationScheduler | None:
        if self._scheduler_ref is None:
            return None
        return self._scheduler_ref()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"dependencies={list(self.dependencies)!r}, priority={self.priority}, "
            f"state={self._state.name})"
        )


class FunctionOperation(Operation):
    """Operation whose body is a ``body(statuses, done)`` callable."""

    def __init__(
        self,
        name: str,
        dependencies: Iterable[str] | str | None,
        body: OperationBody,
        priority: int = NORMAL_PRIORITY,
    ) -> None:
        super().__init__(name, dependencies, priority)
        self._body = body

    def on_ready(self, statuses: list[OperationStatus]) -> Awaitable[None] | None:
        return self._body(statuses, self.done)


class CallbackOperation(Operation):
    """
    Operation wrapping a plain callback that is unaware of dependency status.

    Success is reported once the callback returns, or once its awaitable
    finishes when it returns one. Synthetic instances remove themselves from
    the registry before reporting, which is how ``wait_for`` helpers vanish.
    """

    def __init__(
        self,
        name: str,
        dependencies: Iterable[str] | str | None,
        callback: OperationCallback,
        priority: int = NORMAL_PRIORITY,
        *,
        synthetic: bool = False,
    ) -> None:
        super().__init__(name, dependencies, priority, synthetic=synthetic)
        self._callback = callback

    def on_ready(self, statuses: list[OperationStatus]) -> Awaitable[None] | None:
        _ = statuses
        try:
            result = self._callback()
        except Exception:
            self._retire()
            raise
        if inspect.isawaitable(result):
            return self._finish_after(result)
        self._retire()
        self.done(True)
        return None

    async def _finish_after(self, awaitable: Awaitable[Any]) -> None:
        try:
            await awaitable
        finally:
            self._retire()
        self.done(True)

    def _retire(self) -> None:
        if not self.synthetic:
            return
        scheduler = self._owner()
        if scheduler is not None:
            scheduler.remove(self.name)
