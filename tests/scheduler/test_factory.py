from __future__ import annotations

import pytest

from opgraph.scheduler import (
    OperationScheduler,
    SchedulerConfig,
    create_scheduler_from_env,
    scheduler_config_from_env,
)

_VARS = (
    "OPGRAPH_NEXT_TICK_S",
    "OPGRAPH_WATCHDOG_S",
    "OPGRAPH_AUTOSTART",
    "OPGRAPH_THREAD_NAME",
    "OPGRAPH_SHUTDOWN_TIMEOUT_S",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_config_defaults_without_environment():
    assert scheduler_config_from_env() == SchedulerConfig()


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv("OPGRAPH_NEXT_TICK_S", "0.25")
    monkeypatch.setenv("OPGRAPH_WATCHDOG_S", " 2 ")
    monkeypatch.setenv("OPGRAPH_AUTOSTART", "off")
    monkeypatch.setenv("OPGRAPH_THREAD_NAME", "graph")
    monkeypatch.setenv("OPGRAPH_SHUTDOWN_TIMEOUT_S", "1.5")

    config = scheduler_config_from_env()

    assert config.next_tick_s == 0.25
    assert config.watchdog_s == 2.0
    assert config.autostart is False
    assert config.thread_name == "graph"
    assert config.shutdown_timeout_s == 1.5


def test_blank_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("OPGRAPH_WATCHDOG_S", "   ")
    monkeypatch.setenv("OPGRAPH_THREAD_NAME", "")
    config = scheduler_config_from_env()
    assert config.watchdog_s == SchedulerConfig().watchdog_s
    assert config.thread_name == "opgraph-dispatch"


def test_invalid_number_raises(monkeypatch):
    monkeypatch.setenv("OPGRAPH_NEXT_TICK_S", "soon")
    with pytest.raises(ValueError, match="OPGRAPH_NEXT_TICK_S"):
        scheduler_config_from_env()


def test_invalid_boolean_raises(monkeypatch):
    monkeypatch.setenv("OPGRAPH_AUTOSTART", "maybe")
    with pytest.raises(ValueError, match="OPGRAPH_AUTOSTART"):
        scheduler_config_from_env()


def test_non_positive_interval_rejected(monkeypatch):
    monkeypatch.setenv("OPGRAPH_WATCHDOG_S", "0")
    with pytest.raises(ValueError, match="watchdog_s"):
        scheduler_config_from_env()


def test_create_scheduler_from_env_uses_config(monkeypatch):
    monkeypatch.setenv("OPGRAPH_AUTOSTART", "false")
    scheduler = create_scheduler_from_env()
    try:
        assert isinstance(scheduler, OperationScheduler)
        scheduler.register_callback("a", None, lambda: None)
        assert scheduler.is_running is False
    finally:
        scheduler.shutdown()
