#!/usr/bin/env python3
"""
Scheduler benchmark utility for drain-time characterization.

Builds a layered dependency graph where every operation depends on all
operations of the previous layer, then measures how long the graph takes to
drain.

Usage examples:
  PYTHONPATH=src python scripts/scheduler_benchmark.py
  PYTHONPATH=src python scripts/scheduler_benchmark.py --layers 20 --width 8 --latency-ms 5
"""

from __future__ import annotations

import argparse
import asyncio
import time

from opgraph.scheduler import OperationScheduler, SchedulerConfig


def run_benchmark(
    *,
    layers: int,
    width: int,
    latency_ms: float,
    next_tick_ms: float,
) -> None:
    latency_s = latency_ms / 1000.0
    config = SchedulerConfig(next_tick_s=next_tick_ms / 1000.0, autostart=False)

    async def sleep_body(statuses, done) -> None:
        _ = statuses
        await asyncio.sleep(latency_s)
        done(True)

    names: list[str] = []
    with OperationScheduler(config=config) as scheduler:
        previous: list[str] = []
        for layer in range(layers):
            current = [f"op-{layer}-{i}" for i in range(width)]
            for name in current:
                scheduler.register(name, previous, sleep_body, priority=layers - layer)
            names.extend(current)
            previous = current

        started = time.perf_counter()
        scheduler.start()
        finished = scheduler.wait(names, timeout=600)
        elapsed = time.perf_counter() - started

    total = layers * width
    print(f"operations={total}")
    print(f"layers={layers}")
    print(f"width={width}")
    print(f"body_latency_ms={latency_ms:.2f}")
    print(f"next_tick_ms={next_tick_ms:.2f}")
    print(f"drained={finished}")
    print(f"elapsed_s={elapsed:.3f}")
    print(f"throughput_ops={total / elapsed if elapsed > 0 else 0.0:.2f}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scheduler benchmark utility")
    parser.add_argument("--layers", type=int, default=10)
    parser.add_argument("--width", type=int, default=4)
    parser.add_argument("--latency-ms", type=float, default=10.0)
    parser.add_argument("--next-tick-ms", type=float, default=100.0)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    run_benchmark(
        layers=args.layers,
        width=args.width,
        latency_ms=args.latency_ms,
        next_tick_ms=args.next_tick_ms,
    )


if __name__ == "__main__":
    main()
