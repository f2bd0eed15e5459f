"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Readiness, staleness, and priority selection over an operation registry.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from .operation import Operation
from .types import Completed, Executing


@dataclass(frozen=True, slots=True)
class Selection:
    """
    Outcome of one selection pass.

    Attributes:
        operation: Highest-priority candidate, or ``None``.
        has_unexecuted: Some non-executing operation is not completed.
        has_executing: Some operation is currently executing.
        incomplete_graph: Some dependency name is not registered.
    """

    operation: Operation | None
    has_unexecuted: bool
    has_executing: bool
    incomplete_graph: bool

    @property
    def cycle_suspected(self) -> bool:
        """Work remains but nothing can ever become ready."""
        return (
            self.operation is None
            and self.has_unexecuted
            and not self.has_executing
            and not self.incomplete_graph
        )


class StalenessCheck:
    """
    Decide whether completed operations should run again.

    An operation is stale when a direct dependency completed after it did, but
    only once its dependencies have settled: if any dependency is itself stale
    the operation waits, so a re-run travels down a chain one hop at a time.
    Operations that reach themselves through their dependencies are never
    stale.

    Operations with no newer dependency are answered directly. Otherwise the
    whole registry is evaluated once, with explicit stacks rather than
    recursion, and the result is kept for the lifetime of one selection pass.
    """

    def __init__(self, registry: Mapping[str, Operation]) -> None:
        self._registry = registry
        self._stale: dict[str, bool] | None = None

    def __call__(self, operation: Operation) -> bool:
        if not any(
            dep in self._registry
            and self._registry[dep].last_executed_at > operation.last_executed_at
            for dep in operation.dependencies
        ):
            return False
        if self._stale is None:
            self._stale = self._evaluate_all()
        return self._stale.get(operation.name, False)

    def _evaluate_all(self) -> dict[str, bool]:
        registry = self._registry
        cyclic = cycle_members(registry)
        stale: dict[str, bool] = {}
        for root in registry:
            if root in stale:
                continue
            # Post-order: a name is decided once all its acyclic dependencies are.
            work = [root]
            while work:
                name = work[-1]
                if name in stale:
                    work.pop()
                    continue
                operation = registry[name]
                if name not in cyclic:
                    undecided = [
                        dep
                        for dep in operation.dependencies
                        if dep in registry and dep not in stale and dep not in cyclic
                    ]
                    if undecided:
                        work.extend(undecided)
                        continue
                work.pop()
                stale[name] = name not in cyclic and self._decide(operation, stale)
        return stale

    def _decide(self, operation: Operation, stale: Mapping[str, bool]) -> bool:
        newer = False
        for dep in operation.dependencies:
            dep_op = self._registry.get(dep)
            if dep_op is None:
                return False
            if isinstance(dep_op.state, Completed) and stale.get(dep, False):
                return False
            if dep_op.last_executed_at > operation.last_executed_at:
                newer = True
        return newer


def cycle_members(registry: Mapping[str, Operation]) -> set[str]:
    """
    Names of operations that reach themselves through registered dependencies.

    Iterative Tarjan strongly-connected-components pass; linear in the number
    of operations plus dependency edges.
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    members: set[str] = set()

    def edges(name: str) -> Iterator[str]:
        return (dep for dep in registry[name].dependencies if dep in registry)

    def visit(name: str) -> None:
        index[name] = lowlink[name] = len(index)
        stack.append(name)
        on_stack.add(name)

    for root in registry:
        if root in index:
            continue
        visit(root)
        work = [(root, edges(root))]
        while work:
            name, deps = work[-1]
            descended = False
            for dep in deps:
                if dep not in index:
                    visit(dep)
                    work.append((dep, edges(dep)))
                    descended = True
                    break
                if dep in on_stack:
                    lowlink[name] = min(lowlink[name], index[dep])
            if descended:
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[name])
            if lowlink[name] != index[name]:
                continue
            component: list[str] = []
            while True:
                member = stack.pop()
                on_stack.discard(member)
                component.append(member)
                if member == name:
                    break
            if len(component) > 1 or name in registry[name].dependencies:
                members.update(component)
    return members


def is_stale(operation: Operation, registry: Mapping[str, Operation]) -> bool:
    """Whether a completed operation should run again; see ``StalenessCheck``."""
    return StalenessCheck(registry)(operation)


def dependencies_completed(
    operation: Operation, registry: Mapping[str, Operation]
) -> bool:
    """Whether every dependency is registered and completed."""
    return not unmet_dependencies(operation, registry)


def unmet_dependencies(
    operation: Operation, registry: Mapping[str, Operation]
) -> list[str]:
    """Dependency names that are missing or not completed."""
    unmet: list[str] = []
    for dep in operation.dependencies:
        dep_op = registry.get(dep)
        if dep_op is None or not isinstance(dep_op.state, Completed):
            unmet.append(dep)
    return unmet


def select_next(registry: Mapping[str, Operation]) -> Selection:
    """
    Pick the next operation to start.

    Candidates are non-executing operations whose dependencies are all
    completed and which are either not completed yet or stale. The highest
    priority wins; ties go to the earliest entry in registry order.
    """
    stale = StalenessCheck(registry)
    found: Operation | None = None
    has_unexecuted = False
    has_executing = False
    incomplete_graph = False

    for op in registry.values():
        if isinstance(op.state, Executing):
            has_executing = True
            continue
        completed = isinstance(op.state, Completed)
        if not completed:
            has_unexecuted = True
        if any(dep not in registry for dep in op.dependencies):
            incomplete_graph = True
            continue
        if not dependencies_completed(op, registry):
            continue
        if completed and not stale(op):
            continue
        if found is None or op.priority > found.priority:
            found = op

    return Selection(
        operation=found,
        has_unexecuted=has_unexecuted,
        has_executing=has_executing,
        incomplete_graph=incomplete_graph,
    )
