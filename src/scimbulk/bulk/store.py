import abc
from dataclasses import dataclass
from typing import Optional

from scimbulk.bulk.operation import OperationMethod
from scimbulk.data.scim_data import ScimData


@dataclass(frozen=True)
class StoreResult:
    identifier: str
    location: str
    version: Optional[str] = None


class ResourceStore(abc.ABC):
    """
    Executes bulk operations against actual resources. Implementations are called at most once
    per operation, and only after every bulkId reference in the `payload` has been replaced
    with the referenced resource's identifier or location.

    Failures should be reported by raising `scimbulk.error.ResourceStoreError`, which is
    passed to the bulk response as is. Any other exception, or a returned value that is not
    `StoreResult`, is reported as `500` error.
    """

    @abc.abstractmethod
    def execute(
        self, method: OperationMethod, path: str, payload: Optional[ScimData]
    ) -> StoreResult:
        """
        Args:
            method: Operation method.
            path: Operation path, with bulkId in resource identifier replaced, if any.
            payload: Operation data, `None` for `DELETE` operations.

        Returns:
            Identifier, location, and optionally version of the affected resource.
        """
