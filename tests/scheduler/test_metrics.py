from __future__ import annotations

import pytest

from opgraph.scheduler import NoOpSchedulerMetrics


def test_noop_metrics_accepts_any_counter():
    NoOpSchedulerMetrics().incr("anything", 3, tags={"k": "v"})


def test_prometheus_metrics_counts_with_labels():
    prometheus_client = pytest.importorskip("prometheus_client")
    from opgraph.scheduler import PrometheusSchedulerMetrics

    registry = prometheus_client.CollectorRegistry()
    metrics = PrometheusSchedulerMetrics(registry=registry)

    metrics.incr("opgraph_operations_started_total")
    metrics.incr("opgraph_operations_started_total", 2)
    metrics.incr("opgraph_operations_completed_total", tags={"success": "false"})

    assert registry.get_sample_value("opgraph_operations_started_total") == 3
    assert (
        registry.get_sample_value(
            "opgraph_operations_completed_total", {"success": "false"}
        )
        == 1
    )


def test_prometheus_metrics_describe_each_scheduler_counter():
    prometheus_client = pytest.importorskip("prometheus_client")
    from opgraph.scheduler import PrometheusSchedulerMetrics
    from opgraph.scheduler.metrics import COUNTER_DOCUMENTATION

    registry = prometheus_client.CollectorRegistry()
    metrics = PrometheusSchedulerMetrics(registry=registry)
    for name in COUNTER_DOCUMENTATION:
        metrics.incr(name)
    metrics.incr("opgraph_custom_total")

    documentation = {family.name: family.documentation for family in registry.collect()}
    assert documentation["opgraph_operations_retriggered"] == (
        "Completed operations reset to pending by retrigger."
    )
    assert documentation["opgraph_dependency_cycle_suspected"] == (
        "Idle passes where work remained but nothing could become ready."
    )
    assert documentation["opgraph_custom"] == "opgraph scheduler metric opgraph_custom_total"
    assert len(set(COUNTER_DOCUMENTATION.values())) == len(COUNTER_DOCUMENTATION)
