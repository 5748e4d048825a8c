import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import scimbulk.config
from scimbulk.bulk.aggregator import BulkResult, ResolverMap
from scimbulk.bulk.graph import build_graph
from scimbulk.bulk.integrity import validate_integrity
from scimbulk.bulk.operation import OperationRecord
from scimbulk.bulk.scanner import ReferenceScanner
from scimbulk.bulk.scheduler import ResolutionContext, Scheduler
from scimbulk.bulk.store import ResourceStore
from scimbulk.config import ServiceProviderConfig
from scimbulk.data.schemas import ResourceSchema
from scimbulk.error import BatchLimitExceeded, InvalidBatchShape
from scimbulk.schemas.bulk_ops import BulkRequestSchema

log = logging.getLogger(__name__)


@dataclass
class BulkRequest:
    """
    Validated bulk request, with operations in the original order.
    """

    operations: list[OperationRecord] = field(default_factory=list)
    fail_on_errors: int = 0


class BulkResolver:
    """
    Resolves bulk requests: validates them, executes operations in the order that satisfies
    bulkId references between them, and aggregates the outcomes.

    Args:
        config: Service provider configuration. If not provided, the global configuration is
            used (see `scimbulk.config.set_service_provider_config`).
        resource_schemas: Schemas of resources that bulk operations can target.
        store: The store that executes the operations.
        base_url: Base URL prepended to paths of failed operations, when reporting their
            locations.

    Raises:
        RuntimeError: If bulk operations are not supported by the configuration.

    Examples:
        >>> from scimbulk.config import ServiceProviderConfig
        >>> from scimbulk.schemas import GroupSchema, UserSchema
        >>>
        >>> resolver = BulkResolver(
        >>>     ServiceProviderConfig.create(
        >>>         bulk={"supported": True, "max_operations": 10, "max_payload_size": 4242}
        >>>     ),
        >>>     resource_schemas=[UserSchema(), GroupSchema()],
        >>>     store=store,
        >>> )
        >>> result = resolver.resolve(body)
        >>> result.resolver_map.identifier("usr1")
    """

    def __init__(
        self,
        config: Optional[ServiceProviderConfig] = None,
        *,
        resource_schemas: Iterable[ResourceSchema],
        store: ResourceStore,
        base_url: str = "",
    ):
        self.config = config or scimbulk.config.service_provider_config
        if not self.config.bulk.supported:
            raise RuntimeError("bulk operations are not supported")
        resource_schemas = list(resource_schemas)
        self._request_schema = BulkRequestSchema(
            resource_schemas, patch_supported=self.config.patch.supported
        )
        self._scanner = ReferenceScanner(resource_schemas)
        self._scheduler = Scheduler(store, max_workers=self.config.bulk.max_workers)
        self._base_url = base_url

    def parse(self, body: Mapping[str, Any]) -> BulkRequest:
        """
        Validates the BulkRequest message `body` and creates operation records from it.

        Raises:
            BatchLimitExceeded: If the payload is too large, or there are too many operations.
            InvalidBatchShape: If the request, or any of its operations is malformed.
        """
        max_payload_size = self.config.bulk.max_payload_size
        payload_size = len(json.dumps(body, default=str).encode("utf-8"))
        if max_payload_size and payload_size > max_payload_size:
            raise BatchLimitExceeded(
                f"The size of the bulk operation exceeds the maxPayloadSize ({max_payload_size}).",
                limit=max_payload_size,
            )

        max_operations = self.config.bulk.max_operations
        operations = body.get("Operations")
        if max_operations and isinstance(operations, list) and len(operations) > max_operations:
            raise BatchLimitExceeded(
                "The number of operations exceeds the maxOperations "
                f"({max_operations}).",
                limit=max_operations,
            )

        issues = self._request_schema.validate(body)
        if issues.has_errors():
            log.info("Bulk request rejected, validation errors: %s", issues.to_dict())
            raise InvalidBatchShape(issues)

        data = self._request_schema.deserialize(body)
        fail_on_errors = data.get("failOnErrors", None)
        return BulkRequest(
            operations=[
                OperationRecord.from_data(i, operation)
                for i, operation in enumerate(data["Operations"])
            ],
            fail_on_errors=fail_on_errors if isinstance(fail_on_errors, int) else 0,
        )

    def execute(self, request: BulkRequest) -> BulkResult:
        """
        Executes operations from the parsed `request`.

        Raises:
            DuplicateTemporaryId: If the same bulkId is used by more than one `POST` operation.
        """
        graph = build_graph(request.operations, self._scanner)
        validate_integrity(graph)
        context = ResolutionContext(
            graph=graph,
            resolver_map=ResolverMap(graph.temporary_ids()),
            fail_on_errors=request.fail_on_errors,
        )
        self._scheduler.run(context)
        context.resolver_map.freeze()
        result = BulkResult(graph.nodes, context.resolver_map, base_url=self._base_url)
        log.info(
            "Bulk request resolved, %d operations (%d executed, %d failed)",
            len(result),
            len(context.executed),
            result.errors,
        )
        return result

    def resolve(self, body: Mapping[str, Any]) -> BulkResult:
        """
        Validates the BulkRequest message `body` and executes its operations.

        Raises:
            BatchError: If the bulk request can not be processed at all. None of the operations
                is executed then.
        """
        return self.execute(self.parse(body))
