"""
Execution of bulk operations in dependency order.

Operations are executed in topological order of the dependency graph. Operations that do not
depend on each other keep the order from the request. Every operation referencing other
operations by bulkId is executed only after all of them have been settled, and the references
are replaced with the identifiers or locations of the created resources first.
"""
import heapq
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Optional, Union

from scimbulk.bulk.aggregator import ResolverMap, Unresolved
from scimbulk.bulk.graph import DependencyGraph
from scimbulk.bulk.operation import OperationRecord, OperationState, Resolved
from scimbulk.bulk.store import ResourceStore, StoreResult
from scimbulk.data.scim_data import ScimData
from scimbulk.error import (
    AbortedError,
    DependencyFailedError,
    OperationError,
    ResourceStoreError,
)

log = logging.getLogger(__name__)

_Outcome = Union[Resolved, OperationError]


def execution_order(graph: DependencyGraph) -> list[int]:
    """
    Returns positions of operations in the order they are executed in. Operations that are
    already failed are placed as soon as possible, regardless of what they reference.

    Raises:
        ValueError: If the not failed operations reference each other in a cycle.
    """
    remaining = {
        node.index: len(graph.dependencies(node.index))
        for node in graph
        if node.state is not OperationState.FAILED
    }
    ready = [node.index for node in graph if node.index not in remaining]
    ready.extend(index for index, count in remaining.items() if count == 0)
    heapq.heapify(ready)
    order = []
    while ready:
        index = heapq.heappop(ready)
        order.append(index)
        for dependent in graph.dependents(index):
            if dependent not in remaining:
                continue
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                heapq.heappush(ready, dependent)
    if len(order) != len(graph):
        raise ValueError("operations reference each other in a cycle")
    return order


@dataclass
class ResolutionContext:
    """
    State of a single bulk request resolution. Created per request, never shared between
    requests.
    """

    graph: DependencyGraph
    resolver_map: ResolverMap
    fail_on_errors: int = 0
    errors: int = 0
    executed: list[int] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return 0 < self.fail_on_errors <= self.errors

    def add_error(self) -> None:
        self.errors += 1
        if self.errors == self.fail_on_errors:
            log.warning(
                "Number of errors reached 'failOnErrors' limit (%d), "
                "remaining operations are aborted",
                self.fail_on_errors,
            )


class Scheduler:
    """
    Executes operations from the dependency graph with the `store`.

    Args:
        store: The store that executes the operations.
        max_workers: Maximum number of operations executed concurrently. If `1`, operations
            are executed one by one, in the calling thread.
    """

    def __init__(self, store: ResourceStore, *, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("'max_workers' must be a positive integer")
        self._store = store
        self._max_workers = max_workers

    def run(self, context: ResolutionContext) -> None:
        """
        Executes all pending operations from the `context`'s graph, and records their outcomes
        in the operation records and in the resolver map.
        """
        if self._max_workers == 1:
            self._run_sequentially(context)
        else:
            self._run_concurrently(context)

    def _run_sequentially(self, context: ResolutionContext) -> None:
        for index in execution_order(context.graph):
            request = self._prepare(context, index)
            if request is not None:
                path, payload = request
                outcome = self._call(context.graph.node(index), path, payload)
                self._complete(context, index, outcome)

    def _run_concurrently(self, context: ResolutionContext) -> None:
        graph = context.graph
        remaining = {
            node.index: len(graph.dependencies(node.index))
            for node in graph
            if node.state is not OperationState.FAILED
        }
        ready = [node.index for node in graph if node.index not in remaining]
        ready.extend(index for index, count in remaining.items() if count == 0)
        heapq.heapify(ready)
        in_flight: dict[Future, int] = {}

        def settle(index: int) -> None:
            for dependent in graph.dependents(index):
                if dependent not in remaining:
                    continue
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(ready, dependent)

        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="scimbulk"
        ) as executor:
            while ready or in_flight:
                while ready and len(in_flight) < self._max_workers:
                    index = heapq.heappop(ready)
                    request = self._prepare(context, index)
                    if request is None:
                        settle(index)
                        continue
                    path, payload = request
                    future = executor.submit(self._call, graph.node(index), path, payload)
                    in_flight[future] = index
                if not in_flight:
                    break
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=in_flight.__getitem__):
                    index = in_flight.pop(future)
                    self._complete(context, index, future.result())
                    settle(index)

    def _prepare(
        self, context: ResolutionContext, index: int
    ) -> Optional[tuple[str, Optional[ScimData]]]:
        """
        Settles the operation at `index` if it can not be executed, and returns `None` then.
        Otherwise, returns path and payload, with all references replaced.
        """
        node = context.graph.node(index)
        if node.state is OperationState.FAILED:
            if not context.aborted:
                context.add_error()
            self._record(context, node)
            return None
        if context.aborted:
            log.debug("Operation %s aborted", node.label)
            node.fail(AbortedError(context.fail_on_errors))
            self._record(context, node)
            return None
        for temporary_id in sorted(node.depends_on):
            if context.resolver_map[temporary_id] is Unresolved:
                log.debug(
                    "Operation %s not executed, bulkId %r not resolved", node.label, temporary_id
                )
                node.fail(DependencyFailedError(temporary_id))
                context.add_error()
                self._record(context, node)
                return None
        return self._substitute(node, context.resolver_map)

    @staticmethod
    def _substitute(
        node: OperationRecord, resolver_map: ResolverMap
    ) -> tuple[str, Optional[ScimData]]:
        path = node.path
        if node.path_reference is not None:
            path = f"{node.endpoint}/{resolver_map.identifier(node.path_reference)}"
        if node.payload is None:
            return path, None
        payload = deepcopy(node.payload)
        for site in node.references:
            resolved = resolver_map[site.bulk_id]
            value = site.attr.resolved_value(resolved.identifier, resolved.location)
            container = payload
            for key in site.location[:-1]:
                container = container[key]
            container[site.location[-1]] = value
        return path, payload

    def _call(self, node: OperationRecord, path: str, payload: Optional[ScimData]) -> _Outcome:
        log.debug("Executing operation %s", node.label)
        try:
            result = self._store.execute(node.method, path, payload)
        except ResourceStoreError as error:
            return error
        except Exception:
            log.exception("Unexpected error when executing operation %s", node.label)
            return ResourceStoreError("Unexpected error when executing the operation", status=500)
        if not isinstance(result, StoreResult):
            log.error(
                "Store returned %r instead of StoreResult for operation %s", result, node.label
            )
            return ResourceStoreError("Unexpected error when executing the operation", status=500)
        return Resolved(
            identifier=result.identifier,
            location=result.location,
            version=result.version,
        )

    def _complete(self, context: ResolutionContext, index: int, outcome: _Outcome) -> None:
        node = context.graph.node(index)
        context.executed.append(index)
        if isinstance(outcome, Resolved):
            node.resolve(outcome)
        else:
            log.debug("Operation %s failed with status %s", node.label, outcome.status)
            node.fail(outcome)
            context.add_error()
        self._record(context, node)

    @staticmethod
    def _record(context: ResolutionContext, node: OperationRecord) -> None:
        temporary_id = node.temporary_id
        if temporary_id is None or context.graph.lookup(temporary_id) != node.index:
            return
        context.resolver_map.record(
            temporary_id, node.outcome if isinstance(node.outcome, Resolved) else Unresolved
        )
