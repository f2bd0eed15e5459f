"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers for building schedulers from environment variables.
"""

from __future__ import annotations

import os

from .scheduler import OperationScheduler, SchedulerConfig, SchedulerMetrics

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _env_first(*names: str, default: str | None = None) -> str | None:
    """
    Return the first non-empty environment variable in `names`.

    Args:
        *names: Environment variable names to check in order.
        default: Value returned if no non-empty variable is found.
    """
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


def _env_float(name: str, default: float) -> float:
    raw = _env_first(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_first(name)
    if raw is None:
        return default
    value = raw.lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def scheduler_config_from_env() -> SchedulerConfig:
    """
    Build a `SchedulerConfig` from `OPGRAPH_*` environment variables.

    Variables:
    - `OPGRAPH_NEXT_TICK_S` (default 0.1)
    - `OPGRAPH_WATCHDOG_S` (default 0.5)
    - `OPGRAPH_AUTOSTART` (default true)
    - `OPGRAPH_THREAD_NAME` (default `opgraph-dispatch`)
    - `OPGRAPH_SHUTDOWN_TIMEOUT_S` (default 5)
    """
    defaults = SchedulerConfig()
    config = SchedulerConfig(
        next_tick_s=_env_float("OPGRAPH_NEXT_TICK_S", defaults.next_tick_s),
        watchdog_s=_env_float("OPGRAPH_WATCHDOG_S", defaults.watchdog_s),
        autostart=_env_bool("OPGRAPH_AUTOSTART", defaults.autostart),
        thread_name=_env_first("OPGRAPH_THREAD_NAME", default=defaults.thread_name)
        or defaults.thread_name,
        shutdown_timeout_s=_env_float(
            "OPGRAPH_SHUTDOWN_TIMEOUT_S", defaults.shutdown_timeout_s
        ),
    )
    config.validate()
    return config


def create_scheduler_from_env(
    *, metrics: SchedulerMetrics | None = None
) -> OperationScheduler:
    """Create an `OperationScheduler` configured from `OPGRAPH_*` variables."""
    return OperationScheduler(config=scheduler_config_from_env(), metrics=metrics)
