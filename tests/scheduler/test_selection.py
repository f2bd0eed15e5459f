from __future__ import annotations

from opgraph.scheduler import (
    Completed,
    Executing,
    Operation,
    OperationState,
    cycle_members,
    is_stale,
    select_next,
)


def _op(
    name: str,
    deps: list[str] | None = None,
    priority: int = 0,
    *,
    state: OperationState | None = None,
    stamp: int = 0,
) -> Operation:
    op = Operation(name, deps, priority)
    if state is not None:
        op._state = state  # noqa: SLF001
    op._last_executed_at = stamp  # noqa: SLF001
    return op


def _registry(*ops: Operation) -> dict[str, Operation]:
    return {op.name: op for op in ops}


def test_operations_without_dependencies_are_candidates():
    selection = select_next(_registry(_op("a")))
    assert selection.operation is not None
    assert selection.operation.name == "a"
    assert selection.has_unexecuted is True


def test_highest_priority_wins_and_ties_go_to_registration_order():
    registry = _registry(
        _op("low"),
        _op("first_high", priority=10),
        _op("second_high", priority=10),
    )
    selection = select_next(registry)
    assert selection.operation is registry["first_high"]


def test_dependents_wait_for_dependencies():
    registry = _registry(_op("a"), _op("b", ["a"], priority=50))
    assert select_next(registry).operation is registry["a"]

    registry["a"]._state = Completed(True)  # noqa: SLF001
    registry["a"]._last_executed_at = 1  # noqa: SLF001
    assert select_next(registry).operation is registry["b"]


def test_failed_dependency_still_satisfies_dependents():
    registry = _registry(
        _op("a", state=Completed(False), stamp=1),
        _op("b", ["a"]),
    )
    assert select_next(registry).operation is registry["b"]


def test_executing_operations_are_skipped():
    registry = _registry(_op("a", state=Executing()), _op("b", ["a"]))
    selection = select_next(registry)
    assert selection.operation is None
    assert selection.has_executing is True
    assert selection.cycle_suspected is False


def test_missing_dependency_is_incomplete_graph_not_cycle():
    selection = select_next(_registry(_op("x", ["never"])))
    assert selection.operation is None
    assert selection.incomplete_graph is True
    assert selection.cycle_suspected is False


def test_mutual_dependencies_are_reported_as_cycle():
    selection = select_next(_registry(_op("a", ["b"]), _op("b", ["a"])))
    assert selection.operation is None
    assert selection.cycle_suspected is True


def test_all_completed_graph_is_idle_without_cycle():
    registry = _registry(
        _op("a", state=Completed(True), stamp=1),
        _op("b", ["a"], state=Completed(True), stamp=2),
    )
    selection = select_next(registry)
    assert selection.operation is None
    assert selection.has_unexecuted is False
    assert selection.cycle_suspected is False


def test_dependency_completed_later_makes_dependent_stale():
    registry = _registry(
        _op("a", state=Completed(True), stamp=5),
        _op("b", ["a"], state=Completed(True), stamp=3),
    )
    assert is_stale(registry["b"], registry) is True
    assert select_next(registry).operation is registry["b"]


def test_equal_stamps_are_not_stale():
    registry = _registry(
        _op("a", state=Completed(True), stamp=4),
        _op("b", ["a"], state=Completed(True), stamp=4),
    )
    assert is_stale(registry["b"], registry) is False


def test_staleness_moves_down_a_chain_one_hop_at_a_time():
    registry = _registry(
        _op("a", state=Completed(True), stamp=10),
        _op("b", ["a"], state=Completed(True), stamp=5),
        _op("c", ["b"], state=Completed(True), stamp=7),
    )
    assert is_stale(registry["b"], registry) is True
    assert is_stale(registry["c"], registry) is False
    assert select_next(registry).operation is registry["b"]

    registry["b"]._last_executed_at = 11  # noqa: SLF001
    assert is_stale(registry["c"], registry) is True
    assert select_next(registry).operation is registry["c"]


def test_diamond_waits_for_every_stale_branch():
    registry = _registry(
        _op("a", state=Completed(True), stamp=10),
        _op("b", ["a"], state=Completed(True), stamp=2),
        _op("c", ["a"], state=Completed(True), stamp=3),
        _op("d", ["b", "c"], state=Completed(True), stamp=4),
    )
    assert is_stale(registry["d"], registry) is False

    registry["b"]._last_executed_at = 11  # noqa: SLF001
    assert is_stale(registry["d"], registry) is False

    registry["c"]._last_executed_at = 12  # noqa: SLF001
    assert is_stale(registry["d"], registry) is True


def test_completed_cycle_is_never_stale():
    registry = _registry(
        _op("a", ["b"], state=Completed(True), stamp=2),
        _op("b", ["a"], state=Completed(True), stamp=1),
    )
    assert is_stale(registry["a"], registry) is False
    assert is_stale(registry["b"], registry) is False
    assert select_next(registry).operation is None


def test_pending_dependency_blocks_rerun():
    registry = _registry(
        _op("a"),
        _op("b", ["a"], state=Completed(True), stamp=3),
    )
    selection = select_next(registry)
    assert selection.operation is registry["a"]


def test_dependents_of_a_cycle_are_not_cycle_members():
    registry = _registry(
        _op("a", ["b"]),
        _op("b", ["a"]),
        _op("self", ["self"]),
        _op("tail", ["a"]),
        _op("free"),
    )
    assert cycle_members(registry) == {"a", "b", "self"}


def test_operation_fed_by_a_completed_cycle_can_still_be_stale():
    registry = _registry(
        _op("a", ["b"], state=Completed(True), stamp=5),
        _op("b", ["a"], state=Completed(True), stamp=4),
        _op("tail", ["a"], state=Completed(True), stamp=3),
    )
    assert is_stale(registry["tail"], registry) is True
    assert select_next(registry).operation is registry["tail"]


def test_staleness_of_a_deep_chain_does_not_recurse():
    size = 5000
    ops = [_op("op0", state=Completed(True), stamp=10)]
    for i in range(1, size):
        ops.append(_op(f"op{i}", [f"op{i - 1}"], state=Completed(True), stamp=i))
    # Registered in reverse so the first operation visited is the far end.
    registry = _registry(*reversed(ops))

    assert is_stale(registry["op1"], registry) is True
    assert is_stale(registry[f"op{size - 1}"], registry) is False
    assert select_next(registry).operation is registry["op1"]
    assert cycle_members(registry) == set()


def test_long_dependency_ring_is_a_single_cycle():
    size = 3000
    registry = _registry(
        *(_op(f"op{i}", [f"op{(i + 1) % size}"]) for i in range(size))
    )
    assert cycle_members(registry) == set(registry)
    assert select_next(registry).cycle_suspected is True
