from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class _GenericOption:
    supported: bool = False


@dataclass
class _BulkOption(_GenericOption):
    max_operations: Optional[int] = None
    max_payload_size: Optional[int] = None
    max_workers: int = 1
    supported: bool = False

    def __post_init__(self):
        if self.supported and not all([self.max_payload_size, self.max_operations]):
            raise ValueError(
                "'max_payload_size' and 'max_operations' must be specified "
                "if bulk operations are supported"
            )
        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise ValueError("'max_workers' must be a positive integer")


@dataclass(frozen=True)
class ServiceProviderConfig:
    """
    Service provider configuration, limited to the options relevant for bulk operations.
    Available fields as defined in [RFC-7643](https://www.rfc-editor.org/rfc/rfc7643#section-5),
    with the addition of `bulk.max_workers`, which is the number of operations from
    a single bulk request that can be executed concurrently.
    """

    documentation_uri: str
    patch: _GenericOption
    bulk: _BulkOption

    @classmethod
    def create(
        cls,
        documentation_uri: str = "",
        patch: Optional[dict[str, Any]] = None,
        bulk: Optional[dict[str, Any]] = None,
    ):
        """
        Creates `ServiceProviderConfig` with all values defaulted, so operations are not supported
        by default.
        """
        return cls(
            documentation_uri=documentation_uri,
            patch=_GenericOption(**(patch or {})),
            bulk=_BulkOption(**(bulk or {})),
        )


service_provider_config: ServiceProviderConfig = ServiceProviderConfig.create()


def set_service_provider_config(config: ServiceProviderConfig) -> None:
    """
    Sets global service provider configuration.
    """
    global service_provider_config
    service_provider_config = config
