"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for scheduler observability.
"""

from __future__ import annotations

from collections.abc import Mapping

from .scheduler import SchedulerMetrics

COUNTER_DOCUMENTATION: dict[str, str] = {
    "opgraph_operations_registered_total": "Operations added to the scheduler registry.",
    "opgraph_operations_started_total": "Operation activations started by the dispatch loop.",
    "opgraph_operations_completed_total": "Operation activations reported done, by success flag.",
    "opgraph_operations_retriggered_total": "Completed operations reset to pending by retrigger.",
    "opgraph_dependency_cycle_suspected_total": (
        "Idle passes where work remained but nothing could become ready."
    ),
}


class PrometheusSchedulerMetrics(SchedulerMetrics):
    """
    Prometheus-backed scheduler metrics adapter.

    Requires `prometheus_client` package.
    """

    def __init__(self, *, namespace: str = "", registry: object | None = None) -> None:
        try:
            from prometheus_client import REGISTRY, Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusSchedulerMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._Counter = Counter
        self._namespace = namespace
        self._registry = registry if registry is not None else REGISTRY
        self._counters: dict[str, object] = {}

    def incr(self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None) -> None:
        label_names = tuple(sorted((tags or {}).keys()))
        key = f"{name}|{','.join(label_names)}"
        counter = self._counters.get(key)
        if counter is None:
            counter = self._Counter(
                name=name,
                documentation=COUNTER_DOCUMENTATION.get(
                    name, f"opgraph scheduler metric {name}"
                ),
                namespace=self._namespace,
                labelnames=label_names,
                registry=self._registry,
            )
            self._counters[key] = counter

        if label_names:
            label_values = [str((tags or {})[label]) for label in label_names]
            counter.labels(*label_values).inc(value)
        else:
            counter.inc(value)
