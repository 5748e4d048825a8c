import logging
from collections import defaultdict
from typing import Iterator, Optional, Sequence

from scimbulk.bulk.operation import OperationRecord, OperationState
from scimbulk.bulk.scanner import ReferenceScanner
from scimbulk.error import DanglingReferenceError, DuplicateTemporaryId

log = logging.getLogger(__name__)


class DependencyGraph:
    """
    Directed graph over bulk operations. Nodes are kept in request order and identified
    by their position, and edge `a -> b` means that operation `b` references operation `a`,
    so `a` must be settled before `b` is executed.
    """

    def __init__(self, nodes: Sequence[OperationRecord]):
        self._nodes = list(nodes)
        self._index: dict[str, int] = {}
        self._dependents: dict[int, set[int]] = defaultdict(set)
        self._dependencies: dict[int, set[int]] = defaultdict(set)
        self._sealed = False

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[OperationRecord]:
        return iter(self._nodes)

    @property
    def nodes(self) -> list[OperationRecord]:
        return list(self._nodes)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def node(self, index: int) -> OperationRecord:
        return self._nodes[index]

    def lookup(self, temporary_id: str) -> Optional[int]:
        """
        Returns position of the `POST` operation with the given `temporary_id`, if any.
        """
        return self._index.get(temporary_id)

    def temporary_ids(self) -> list[str]:
        return list(self._index)

    def dependents(self, index: int) -> set[int]:
        return set(self._dependents.get(index, set()))

    def dependencies(self, index: int) -> set[int]:
        return set(self._dependencies.get(index, set()))

    def add_edge(self, dependency: int, dependent: int) -> None:
        self._check_not_sealed()
        self._dependents[dependency].add(dependent)
        self._dependencies[dependent].add(dependency)

    def index_node(self, temporary_id: str, index: int) -> None:
        self._check_not_sealed()
        self._index[temporary_id] = index

    def seal(self) -> None:
        """
        Makes nodes and edges of the graph read-only. Only states and outcomes of the operations
        can change afterwards.
        """
        self._sealed = True

    def _check_not_sealed(self) -> None:
        if self._sealed:
            raise RuntimeError("dependency graph is sealed")


def build_graph(
    operations: Sequence[OperationRecord], scanner: ReferenceScanner
) -> DependencyGraph:
    """
    Builds the dependency graph for the `operations`.

    Operations referencing bulkIds that are not defined by any `POST` operation in the batch
    are marked as failed with `DanglingReferenceError`, and their references do not become
    edges.

    Raises:
        DuplicateTemporaryId: If the same bulkId is used by more than one `POST` operation.
    """
    graph = DependencyGraph(operations)
    seen: dict[str, list[int]] = defaultdict(list)
    for operation in operations:
        temporary_id = operation.temporary_id
        if temporary_id is not None:
            seen[temporary_id].append(operation.index)
    for temporary_id, indexes in seen.items():
        if len(indexes) > 1:
            raise DuplicateTemporaryId(graph.node(indexes[0]).bulk_id or temporary_id, indexes)
        graph.index_node(temporary_id, indexes[0])

    for operation in operations:
        depends_on = scanner.scan(operation)
        missing = sorted(
            temporary_id for temporary_id in depends_on if graph.lookup(temporary_id) is None
        )
        if missing:
            log.warning(
                "Operation %s references unknown bulkId %r", operation.label, missing[0]
            )
            operation.fail(DanglingReferenceError(missing[0]))
            continue
        for temporary_id in depends_on:
            graph.add_edge(graph.lookup(temporary_id), operation.index)

    log.debug(
        "Built dependency graph with %d operations, %d of them failed with dangling references",
        len(graph),
        sum(1 for node in graph if node.state is OperationState.FAILED),
    )
    graph.seal()
    return graph
