import pytest

from scimbulk.bulk.graph import build_graph
from scimbulk.bulk.integrity import find_cycles, validate_integrity
from scimbulk.bulk.operation import OperationRecord, OperationState
from scimbulk.bulk.scanner import ReferenceScanner
from scimbulk.data.scim_data import ScimData
from scimbulk.error import CircularReferenceError, DanglingReferenceError
from tests.conftest import create_group, create_user


@pytest.fixture
def scanner(resource_schemas):
    return ReferenceScanner(resource_schemas)


def graph_of(scanner, *operations):
    return build_graph(
        [
            OperationRecord.from_data(i, ScimData(operation))
            for i, operation in enumerate(operations)
        ],
        scanner,
    )


def test_self_reference_is_cycle(scanner):
    graph = graph_of(scanner, create_group("grp1", "bulkId:grp1"), create_user("usr1"))

    cycles = validate_integrity(graph)

    assert cycles == [[0]]
    assert graph.node(0).outcome == CircularReferenceError(["grp1"])
    assert graph.node(1).state is OperationState.PENDING


def test_two_operations_referencing_each_other_form_cycle(scanner):
    graph = graph_of(
        scanner,
        create_group("a", "bulkId:b"),
        create_group("b", "bulkId:a"),
    )

    validate_integrity(graph)

    assert graph.node(0).outcome == CircularReferenceError(["a", "b"])
    assert graph.node(1).outcome == CircularReferenceError(["a", "b"])


@pytest.mark.parametrize("length", [3, 5, 50])
def test_every_participant_of_longer_cycle_is_failed(length, scanner):
    operations = [
        create_group(f"g{i}", f"bulkId:g{(i + 1) % length}") for i in range(length)
    ]
    operations.append(create_user("usr1"))
    operations.append(create_group("outer", "bulkId:g0", "bulkId:usr1"))
    graph = graph_of(scanner, *operations)

    cycles = validate_integrity(graph)

    assert cycles == [list(range(length))]
    for i in range(length):
        assert isinstance(graph.node(i).outcome, CircularReferenceError)
    assert graph.node(length).state is OperationState.PENDING
    assert graph.node(length + 1).state is OperationState.PENDING


def test_separate_cycles_are_reported_separately(scanner):
    graph = graph_of(
        scanner,
        create_group("a", "bulkId:b"),
        create_group("c", "bulkId:d"),
        create_group("b", "bulkId:a"),
        create_group("d", "bulkId:c"),
        create_group("e", "bulkId:a", "bulkId:c"),
    )

    assert find_cycles(graph) == [[0, 2], [1, 3]]
    assert graph.node(0).state is OperationState.PENDING


def test_chain_without_cycle_is_not_failed(scanner):
    graph = graph_of(
        scanner,
        create_group("a", "bulkId:b"),
        create_group("b", "bulkId:c"),
        create_group("c"),
    )

    assert validate_integrity(graph) == []
    assert all(node.state is OperationState.PENDING for node in graph)


def test_very_long_chain_does_not_exceed_recursion_limit(scanner):
    operations = [create_group(f"g{i}", f"bulkId:g{i + 1}") for i in range(2000)]
    operations.append(create_group("g2000"))
    graph = graph_of(scanner, *operations)

    assert validate_integrity(graph) == []


def test_operations_failed_earlier_are_not_part_of_cycles(scanner):
    graph = graph_of(
        scanner,
        create_group("a", "bulkId:b", "bulkId:ghost"),
        create_group("b", "bulkId:a"),
    )

    assert validate_integrity(graph) == []
    assert graph.node(0).outcome == DanglingReferenceError("ghost")
    assert graph.node(1).state is OperationState.PENDING
