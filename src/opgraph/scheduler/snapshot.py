"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Point-in-time views of a scheduler registry for diagnostics.
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from .operation import Operation
from .selection import unmet_dependencies as _unmet_dependencies
from .types import StateName


class OperationSnapshot(BaseModel):
    """Frozen view of one registered operation."""

    model_config = ConfigDict(frozen=True)

    name: str
    dependencies: tuple[str, ...] = ()
    priority: int = 0
    state: StateName
    success: bool | None = None
    last_executed_at: int = 0
    synthetic: bool = False
    missing_dependencies: tuple[str, ...] = ()
    unmet_dependencies: tuple[str, ...] = ()

    @classmethod
    def from_operation(
        cls, operation: Operation, registry: Mapping[str, Operation]
    ) -> OperationSnapshot:
        return cls(
            name=operation.name,
            dependencies=operation.dependencies,
            priority=operation.priority,
            state=operation.state.name,
            success=operation.success,
            last_executed_at=operation.last_executed_at,
            synthetic=operation.synthetic,
            missing_dependencies=tuple(
                dep for dep in operation.dependencies if dep not in registry
            ),
            unmet_dependencies=tuple(_unmet_dependencies(operation, registry)),
        )


class SchedulerSnapshot(BaseModel):
    """Frozen view of a whole registry, in registration order."""

    model_config = ConfigDict(frozen=True)

    operations: list[OperationSnapshot] = Field(default_factory=list)

    @classmethod
    def from_registry(cls, registry: Mapping[str, Operation]) -> SchedulerSnapshot:
        return cls(
            operations=[
                OperationSnapshot.from_operation(op, registry)
                for op in registry.values()
            ]
        )

    @property
    def has_pending_work(self) -> bool:
        return any(op.state != "completed" for op in self.operations)

    @property
    def executing(self) -> list[str]:
        return [op.name for op in self.operations if op.state == "executing"]

    def get(self, name: str) -> OperationSnapshot | None:
        for op in self.operations:
            if op.name == name:
                return op
        return None

    def pending_report(self) -> str:
        """
        Describe operations waiting to run.

        One line per pending operation listing its dependencies; unmet ones are
        suffixed with ``*``. Returns an empty string when nothing is pending.
        """
        lines: list[str] = []
        for op in self.operations:
            if op.state != "pending":
                continue
            unmet = set(op.unmet_dependencies)
            deps = " ".join(
                f"{dep}*" if dep in unmet else dep for dep in op.dependencies
            )
            lines.append(f"{op.name}: {deps}".rstrip())
        return "\n".join(lines)
