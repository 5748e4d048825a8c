import logging

from scimbulk.bulk.graph import DependencyGraph
from scimbulk.bulk.operation import OperationState
from scimbulk.error import CircularReferenceError

log = logging.getLogger(__name__)


def _strongly_connected(graph: DependencyGraph, nodes: set[int]) -> list[list[int]]:
    # iterative Tarjan, so deep reference chains do not hit the recursion limit
    counter = 0
    index: dict[int, int] = {}
    low_link: dict[int, int] = {}
    stack: list[int] = []
    on_stack: set[int] = set()
    components: list[list[int]] = []

    for root in sorted(nodes):
        if root in index:
            continue
        work = [(root, iter(sorted(graph.dependents(root) & nodes)))]
        index[root] = low_link[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        while work:
            node, children = work[-1]
            for child in children:
                if child not in index:
                    index[child] = low_link[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, iter(sorted(graph.dependents(child) & nodes))))
                    break
                if child in on_stack:
                    low_link[node] = min(low_link[node], index[child])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    low_link[parent] = min(low_link[parent], low_link[node])
                if low_link[node] == index[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(sorted(component))
    return components


def find_cycles(graph: DependencyGraph) -> list[list[int]]:
    """
    Returns groups of operations (by their positions) that reference each other, directly or
    transitively. Operations that are already failed are not considered. Self-referencing
    operation forms one-element group.
    """
    nodes = {node.index for node in graph if node.state is not OperationState.FAILED}
    cycles = []
    for component in _strongly_connected(graph, nodes):
        if len(component) > 1 or component[0] in graph.dependents(component[0]):
            cycles.append(component)
    return sorted(cycles)


def validate_integrity(graph: DependencyGraph) -> list[list[int]]:
    """
    Marks every operation that takes part in a reference cycle as failed with
    `CircularReferenceError`. Operations outside cycles are left untouched, even if they
    depend on the failed ones. Returns the detected cycles.
    """
    cycles = find_cycles(graph)
    for cycle in cycles:
        bulk_ids = [graph.node(i).bulk_id or "" for i in cycle]
        log.warning("Circular reference between operations with bulkIds %s", bulk_ids)
        for i in cycle:
            graph.node(i).fail(CircularReferenceError(bulk_ids))
    return cycles
