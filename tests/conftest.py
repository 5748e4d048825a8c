import threading
from collections.abc import Callable
from typing import Any, Optional

import pytest

from scimbulk.bulk import BulkResolver, OperationMethod, ResourceStore, StoreResult
from scimbulk.config import ServiceProviderConfig, set_service_provider_config
from scimbulk.data.scim_data import ScimData
from scimbulk.schemas import EnterpriseUserSchemaExtension, GroupSchema, UserSchema

BASE_URL = "https://example.com/v2"

_enterprise_extension = EnterpriseUserSchemaExtension()
_user_schema = UserSchema(extensions=[_enterprise_extension])
_group_schema = GroupSchema()

_Failure = Callable[[OperationMethod, str, Optional[ScimData]], Optional[Exception]]


class FakeStore(ResourceStore):
    """
    In-memory store that records every call. Created resources get identifiers derived from
    their `userName` or `displayName`, so they do not depend on the execution order.
    """

    def __init__(
        self,
        fail: Optional[_Failure] = None,
        hooks: Optional[dict[str, Callable[[], None]]] = None,
    ):
        self.calls: list[tuple[OperationMethod, str, Optional[ScimData]]] = []
        self._fail = fail
        self._hooks = hooks or {}
        self._lock = threading.Lock()

    @property
    def paths(self) -> list[str]:
        return [path for _, path, _ in self.calls]

    def execute(
        self, method: OperationMethod, path: str, payload: Optional[ScimData]
    ) -> StoreResult:
        with self._lock:
            self.calls.append((method, path, payload))
        name = _name(payload)
        if name in self._hooks:
            self._hooks[name]()
        if self._fail is not None:
            error = self._fail(method, path, payload)
            if error is not None:
                raise error
        if method is OperationMethod.CREATE:
            identifier = f"{name}-id"
            return StoreResult(identifier=identifier, location=f"{BASE_URL}{path}/{identifier}")
        return StoreResult(identifier=path.rsplit("/", 1)[-1], location=f"{BASE_URL}{path}")


def _name(payload: Optional[ScimData]) -> Optional[str]:
    if payload is None:
        return None
    name = payload.get("userName", None) or payload.get("displayName", None)
    return name if isinstance(name, str) else None


def fail_for(*names: str, status: int = 409) -> _Failure:
    from scimbulk.error import ResourceStoreError

    def fail(method, path, payload):
        if _name(payload) in names:
            return ResourceStoreError(f"{_name(payload)} already exists", status=status)
        return None

    return fail


@pytest.fixture(scope="session")
def user_schema() -> UserSchema:
    return _user_schema


@pytest.fixture(scope="session")
def group_schema() -> GroupSchema:
    return _group_schema


@pytest.fixture(scope="session")
def enterprise_extension() -> EnterpriseUserSchemaExtension:
    return _enterprise_extension


@pytest.fixture(scope="session")
def resource_schemas(user_schema, group_schema):
    return [user_schema, group_schema]


@pytest.fixture
def config() -> ServiceProviderConfig:
    return ServiceProviderConfig.create(
        patch={"supported": True},
        bulk={"max_operations": 10, "max_payload_size": 4242, "supported": True},
    )


@pytest.fixture(autouse=True)
def set_config(config):
    set_service_provider_config(config)
    yield
    set_service_provider_config(ServiceProviderConfig.create())


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def resolver(config, resource_schemas, store) -> BulkResolver:
    return BulkResolver(config, resource_schemas=resource_schemas, store=store, base_url=BASE_URL)


def bulk_request(*operations: dict[str, Any], fail_on_errors: Optional[int] = None) -> dict:
    body: dict[str, Any] = {
        "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkRequest"],
        "Operations": list(operations),
    }
    if fail_on_errors is not None:
        body["failOnErrors"] = fail_on_errors
    return body


def create_user(bulk_id: str, user_name: Optional[str] = None, **data: Any) -> dict[str, Any]:
    return {
        "method": "POST",
        "path": "/Users",
        "bulkId": bulk_id,
        "data": {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:User"],
            "userName": user_name or bulk_id,
            **data,
        },
    }


def create_group(bulk_id: str, *members: str, display_name: Optional[str] = None) -> dict[str, Any]:
    data: dict[str, Any] = {
        "schemas": ["urn:ietf:params:scim:schemas:core:2.0:Group"],
        "displayName": display_name or bulk_id,
    }
    if members:
        data["members"] = [{"value": member} for member in members]
    return {"method": "POST", "path": "/Groups", "bulkId": bulk_id, "data": data}
