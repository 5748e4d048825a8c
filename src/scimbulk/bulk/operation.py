from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from scimbulk.data.attrs import ResourceReference
from scimbulk.data.scim_data import ScimData
from scimbulk.error import OperationError
from scimbulk.schemas.bulk_ops import BulkRequestSchema


class OperationMethod(str, Enum):
    CREATE = "POST"
    UPDATE = "PUT"
    MODIFY = "PATCH"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: str) -> "OperationMethod":
        return cls(value.upper())

    @property
    def success_status(self) -> int:
        if self is OperationMethod.CREATE:
            return 201
        if self is OperationMethod.DELETE:
            return 204
        return 200


class OperationState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


def normalize_bulk_id(bulk_id: str) -> str:
    """
    Normalizes `bulk_id` with the PRECIS profile of `bulkId` attribute. Values that can not be
    normalized are returned as they are, so they never match any valid bulkId.
    """
    try:
        return BulkRequestSchema.bulk_id_attr.precis.enforce(bulk_id)
    except UnicodeEncodeError:
        return bulk_id


@dataclass(frozen=True)
class Resolved:
    """
    Outcome of successfully executed operation.
    """

    identifier: str
    location: str
    version: Optional[str] = None


@dataclass(frozen=True)
class ReferenceSite:
    """
    Place in operation's payload that references other operation by its bulkId.
    `location` is a sequence of keys and list indexes leading to the referencing value.
    """

    location: tuple[Union[str, int], ...]
    attr: ResourceReference
    bulk_id: str


@dataclass(eq=False)
class OperationRecord:
    """
    Normalized view of a single bulk operation. Only `state` and `outcome` change once
    the dependency graph is built, and only from `PENDING` to `RESOLVED` or `FAILED`.
    """

    index: int
    method: OperationMethod
    path: str
    bulk_id: Optional[str] = None
    version: Optional[str] = None
    payload: Optional[ScimData] = None
    depends_on: set[str] = field(default_factory=set)
    references: list[ReferenceSite] = field(default_factory=list)
    path_reference: Optional[str] = None
    state: OperationState = OperationState.PENDING
    outcome: Optional[Union[Resolved, OperationError]] = None

    @classmethod
    def from_data(cls, index: int, data: ScimData) -> "OperationRecord":
        """
        Creates the record from already validated operation `data`.
        """
        payload = data.get("data", None)
        bulk_id = data.get("bulkId", None)
        version = data.get("version", None)
        return cls(
            index=index,
            method=OperationMethod.parse(data["method"]),
            path=data["path"],
            bulk_id=bulk_id if isinstance(bulk_id, str) else None,
            version=version if isinstance(version, str) else None,
            payload=payload if isinstance(payload, ScimData) else None,
        )

    @property
    def temporary_id(self) -> Optional[str]:
        """
        Normalized bulkId, by which other operations can reference this one. Only `POST`
        operations have one.
        """
        if self.method is not OperationMethod.CREATE or self.bulk_id is None:
            return None
        return normalize_bulk_id(self.bulk_id)

    @property
    def endpoint(self) -> str:
        return "/" + self.path.split("/", 2)[1]

    @property
    def resource_id(self) -> Optional[str]:
        parts = self.path.split("/", 2)
        if len(parts) < 3 or not parts[2]:
            return None
        return parts[2]

    @property
    def label(self) -> str:
        """
        Human-readable identification of the operation, used in logs.
        """
        label = f"#{self.index + 1} {self.method.value} {self.path}"
        if self.bulk_id is not None:
            label += f" (bulkId={self.bulk_id!r})"
        return label

    def resolve(self, resolved: Resolved) -> None:
        self._transition(OperationState.RESOLVED, resolved)

    def fail(self, error: OperationError) -> None:
        self._transition(OperationState.FAILED, error)

    def _transition(
        self, state: OperationState, outcome: Union[Resolved, OperationError]
    ) -> None:
        if self.state is not OperationState.PENDING:
            raise RuntimeError(
                f"operation {self.label} is already {self.state.value}, "
                f"can not be marked {state.value}"
            )
        self.state = state
        self.outcome = outcome
