"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Dependency-graph operation scheduler.

Register named operations with dependencies and priorities; each runs once its
dependencies have completed, highest priority first.

Quick start::

    from opgraph.scheduler import OperationScheduler

    with OperationScheduler() as scheduler:
        scheduler.register_callback("login", None, do_login)
        scheduler.register_callback("greet", ["login"], show_greeting, priority=10)
        scheduler.wait(["greet"], timeout=5)
"""

from .factory import create_scheduler_from_env, scheduler_config_from_env
from .operation import (
    CallbackOperation,
    FunctionOperation,
    Operation,
    OperationBody,
    OperationCallback,
)
from .scheduler import (
    NoOpSchedulerMetrics,
    OperationScheduler,
    SchedulerConfig,
    SchedulerMetrics,
)
from .selection import (
    Selection,
    StalenessCheck,
    cycle_members,
    is_stale,
    select_next,
)
from .snapshot import OperationSnapshot, SchedulerSnapshot
from .types import (
    NORMAL_PRIORITY,
    Completed,
    Executing,
    OperationState,
    OperationStatus,
    Pending,
)

__all__ = [
    "NORMAL_PRIORITY",
    "Operation",
    "FunctionOperation",
    "CallbackOperation",
    "OperationBody",
    "OperationCallback",
    "OperationState",
    "Pending",
    "Executing",
    "Completed",
    "OperationStatus",
    "OperationScheduler",
    "SchedulerConfig",
    "SchedulerMetrics",
    "NoOpSchedulerMetrics",
    "Selection",
    "StalenessCheck",
    "cycle_members",
    "is_stale",
    "select_next",
    "OperationSnapshot",
    "SchedulerSnapshot",
    "create_scheduler_from_env",
    "scheduler_config_from_env",
]


# Lazy import for the Prometheus adapter
def __getattr__(name: str):
    """Lazily expose metrics adapters that require extra dependencies."""
    if name == "PrometheusSchedulerMetrics":
        from .metrics import PrometheusSchedulerMetrics

        return PrometheusSchedulerMetrics
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
