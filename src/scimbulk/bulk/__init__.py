from scimbulk.bulk.aggregator import BulkResult, ResolverMap, Unresolved
from scimbulk.bulk.graph import DependencyGraph, build_graph
from scimbulk.bulk.integrity import find_cycles, validate_integrity
from scimbulk.bulk.operation import (
    OperationMethod,
    OperationRecord,
    OperationState,
    ReferenceSite,
    Resolved,
)
from scimbulk.bulk.resolver import BulkRequest, BulkResolver
from scimbulk.bulk.scanner import ReferenceScanner
from scimbulk.bulk.scheduler import ResolutionContext, Scheduler, execution_order
from scimbulk.bulk.store import ResourceStore, StoreResult

__all__ = [
    "BulkRequest",
    "BulkResolver",
    "BulkResult",
    "DependencyGraph",
    "OperationMethod",
    "OperationRecord",
    "OperationState",
    "ReferenceScanner",
    "ReferenceSite",
    "ResolutionContext",
    "Resolved",
    "ResolverMap",
    "ResourceStore",
    "Scheduler",
    "StoreResult",
    "Unresolved",
    "build_graph",
    "execution_order",
    "find_cycles",
    "validate_integrity",
]
