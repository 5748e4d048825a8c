import threading
from collections.abc import Mapping
from typing import Any, Iterator, Optional, Sequence, Union

from scimbulk.bulk.operation import OperationMethod, OperationRecord, Resolved
from scimbulk.data.scim_data import ScimData
from scimbulk.error import OperationError
from scimbulk.schemas.bulk_ops import BulkResponseSchema


class UnresolvedType:
    _instance = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls, *args, **kwargs)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Unresolved"


Unresolved = UnresolvedType()


class ResolverMap(Mapping):
    """
    Mapping from bulkId to the identifier and location of the resource created by
    the `POST` operation with that bulkId, or to `Unresolved`, if the resource has not been
    created. Every entry is written exactly once, and the map becomes read-only once frozen.

    Examples:
        >>> resolver_map = ResolverMap(["usr1"])
        >>> resolver_map["usr1"]
        Unresolved
        >>> resolver_map.record("usr1", Resolved("2819c223", "/Users/2819c223"))
        >>> resolver_map.identifier("usr1")
        '2819c223'
    """

    def __init__(self, temporary_ids: Sequence[str] = ()):
        self._entries: dict[str, Union[Resolved, UnresolvedType]] = {
            temporary_id: Unresolved for temporary_id in temporary_ids
        }
        self._written: set[str] = set()
        self._frozen = False
        self._lock = threading.Lock()

    def __getitem__(self, temporary_id: str) -> Union[Resolved, UnresolvedType]:
        return self._entries[temporary_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ResolverMap({self._entries!r})"

    @property
    def frozen(self) -> bool:
        return self._frozen

    def record(self, temporary_id: str, outcome: Union[Resolved, UnresolvedType]) -> None:
        """
        Records the `outcome` of the operation with `temporary_id`.

        Raises:
            RuntimeError: If the map is frozen, or the outcome has already been recorded.
        """
        with self._lock:
            if self._frozen:
                raise RuntimeError("resolver map is frozen")
            if temporary_id in self._written:
                raise RuntimeError(f"outcome for bulkId {temporary_id!r} already recorded")
            self._written.add(temporary_id)
            self._entries[temporary_id] = outcome

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    def is_resolved(self, temporary_id: str) -> bool:
        return isinstance(self._entries.get(temporary_id), Resolved)

    def identifier(self, temporary_id: str) -> Optional[str]:
        outcome = self._entries.get(temporary_id)
        if isinstance(outcome, Resolved):
            return outcome.identifier
        return None

    def location(self, temporary_id: str) -> Optional[str]:
        outcome = self._entries.get(temporary_id)
        if isinstance(outcome, Resolved):
            return outcome.location
        return None

    @classmethod
    def from_response(cls, body: Mapping[str, Any]) -> "ResolverMap":
        """
        Rebuilds the map from BulkResponse message `body`. The identifier of created resource
        is the last segment of its location. `POST` operations that were not successful map
        to `Unresolved`.
        """
        data = ScimData(body)
        resolver_map = cls()
        for operation in data.get("Operations", []):
            if not isinstance(operation, ScimData):
                continue
            method = operation.get("method")
            bulk_id = operation.get("bulkId")
            if not isinstance(method, str) or method.upper() != OperationMethod.CREATE.value:
                continue
            if not isinstance(bulk_id, str) or bulk_id in resolver_map:
                continue
            status = str(operation.get("status", ""))
            location = operation.get("location")
            if status.isdigit() and int(status) < 300 and isinstance(location, str):
                version = operation.get("version")
                resolver_map.record(
                    bulk_id,
                    Resolved(
                        identifier=location.rstrip("/").rsplit("/", 1)[-1],
                        location=location,
                        version=version if isinstance(version, str) else None,
                    ),
                )
            else:
                resolver_map.record(bulk_id, Unresolved)
        resolver_map.freeze()
        return resolver_map


class BulkResult:
    """
    Outcome of the whole bulk request: operation records in the original request order and
    the resolver map.
    """

    def __init__(
        self,
        records: Sequence[OperationRecord],
        resolver_map: ResolverMap,
        base_url: str = "",
    ):
        self.records = list(records)
        self.resolver_map = resolver_map
        self.base_url = base_url.rstrip("/")

    def __iter__(self) -> Iterator[OperationRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def errors(self) -> int:
        return sum(1 for record in self.records if isinstance(record.outcome, OperationError))

    def _operation_response(self, record: OperationRecord) -> dict[str, Any]:
        output: dict[str, Any] = {"method": record.method.value}
        if record.bulk_id is not None:
            output["bulkId"] = record.bulk_id
        outcome = record.outcome
        if isinstance(outcome, Resolved):
            if outcome.version is not None:
                output["version"] = outcome.version
            output["location"] = outcome.location
            output["status"] = str(record.method.success_status)
            return output
        if record.version is not None:
            output["version"] = record.version
        if record.method is not OperationMethod.CREATE:
            output["location"] = self.base_url + record.path
        if not isinstance(outcome, OperationError):
            raise RuntimeError(f"operation {record.label} has not been settled")
        output["status"] = str(outcome.status)
        output["response"] = outcome.to_dict()
        return output

    def to_response(self) -> dict[str, Any]:
        """
        Returns BulkResponse message, listing every operation exactly once, in the original
        request order.
        """
        return {
            "schemas": [BulkResponseSchema.schema],
            "Operations": [self._operation_response(record) for record in self.records],
        }
