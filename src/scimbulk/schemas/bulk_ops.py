import re
from collections.abc import Mapping
from copy import deepcopy
from typing import Any, Iterable, Optional

from scimbulk.data.attrs import Complex, Integer, String, Unknown, UriReference
from scimbulk.data.schemas import BaseSchema, ResourceSchema
from scimbulk.data.scim_data import Invalid, Missing, ScimData
from scimbulk.error import ValidationError, ValidationIssues
from scimbulk.schemas.error import ErrorSchema

_RESOURCE_TYPE_REGEX = re.compile(r"/\w+")
_RESOURCE_OBJECT_REGEX = re.compile(r"/\w+/[^/]+")

_METHODS_WITH_DATA = ["POST", "PUT", "PATCH"]


def _method(item: ScimData) -> Optional[str]:
    method = item.get("method")
    if not isinstance(method, str):
        return None
    return method.upper()


def validate_fail_on_errors(value: int) -> ValidationIssues:
    issues = ValidationIssues()
    if value < 0:
        issues.add_error(
            issue=ValidationError.bad_value_content(),
            proceed=False,
        )
    return issues


def validate_request_operations(value: list[ScimData]) -> ValidationIssues:
    issues = ValidationIssues()
    bulk_id_attr = BulkRequestSchema.bulk_id_attr
    for i, item in enumerate(value):
        if item is Invalid:
            continue
        method = _method(item)
        bulk_id = item.get("bulkId")
        if method == "POST":
            if bulk_id in [None, Missing, ""]:
                issues.add_error(
                    issue=ValidationError.missing(),
                    proceed=False,
                    location=(i, "bulkId"),
                )
            elif isinstance(bulk_id, str):
                try:
                    bulk_id_attr.precis.enforce(bulk_id)
                except UnicodeEncodeError:
                    issues.add_error(
                        issue=ValidationError.bad_value_syntax(),
                        proceed=False,
                        location=(i, "bulkId"),
                    )
        path = item.get("path")
        if isinstance(path, str):
            if method == "POST" and not _RESOURCE_TYPE_REGEX.fullmatch(path):
                issues.add_error(
                    issue=ValidationError.resource_type_endpoint_required(),
                    proceed=False,
                    location=(i, "path"),
                )
            elif method in ["PUT", "PATCH", "DELETE"] and not _RESOURCE_OBJECT_REGEX.fullmatch(
                path
            ):
                issues.add_error(
                    issue=ValidationError.resource_object_endpoint_required(),
                    proceed=False,
                    location=(i, "path"),
                )
        data = item.get("data")
        if method in _METHODS_WITH_DATA:
            if data in [None, Missing]:
                issues.add_error(
                    issue=ValidationError.missing(),
                    proceed=False,
                    location=(i, "data"),
                )
            elif not isinstance(data, Mapping):
                issues.add_error(
                    issue=ValidationError.bad_type("complex"),
                    proceed=False,
                    location=(i, "data"),
                )
    return issues


class BulkRequestSchema(BaseSchema):
    """
    BulkRequest schema, identified by `urn:ietf:params:scim:api:messages:2.0:BulkRequest` URI.

    Provides data validation and checks if:

    - at least one operation is provided,
    - `method` is provided and is one of `POST`, `PUT`, `PATCH`, `DELETE` (case-insensitive),
    - `PATCH` method is used only if it is supported,
    - `bulkId` is provided for `POST` method, and it is valid `OpaqueString`,
    - `path` is provided,
    - `path` is valid, depending on the method type,
    - `path` specifies one of supported resources,
    - `data` is provided for `POST`, `PUT`, and `PATCH` methods, and it is complex value,
    - `failOnErrors` is non-negative integer.

    During deserialization, if method type is `DELETE`, the `data` if provided, is dropped.
    """

    schema = "urn:ietf:params:scim:api:messages:2.0:BulkRequest"
    bulk_id_attr = String("bulkId", case_exact=True)
    base_attrs = [
        Integer("failOnErrors", validators=[validate_fail_on_errors]),
        Complex(
            name="Operations",
            required=True,
            multi_valued=True,
            validators=[validate_request_operations],
            sub_attributes=[
                String(
                    name="method",
                    required=True,
                    canonical_values=["POST", "PUT", "PATCH", "DELETE"],
                    restrict_canonical_values=True,
                ),
                bulk_id_attr,
                String("version"),
                String(
                    name="path",
                    required=True,
                ),
                Unknown("data"),
            ],
        ),
    ]

    def __init__(
        self,
        resource_schemas: Iterable[ResourceSchema],
        patch_supported: bool = True,
    ):
        """
        Args:
            resource_schemas: Schemas of resources that can be targeted by the bulk operations.
            patch_supported: Whether `PATCH` operations are supported.

        Examples:
            >>> from scimbulk.schemas import UserSchema, GroupSchema
            >>>
            >>> BulkRequestSchema([UserSchema(), GroupSchema()])
        """
        super().__init__()
        self._resource_schemas = {schema.endpoint.lower(): schema for schema in resource_schemas}
        self._patch_supported = patch_supported

    def _validate(self, data: ScimData, **kwargs) -> ValidationIssues:
        issues = ValidationIssues()
        operations = data.get("Operations")
        if not isinstance(operations, list):
            return issues

        if not operations:
            issues.add_error(
                issue=ValidationError.empty_bulk_request(),
                proceed=False,
                location=["Operations"],
            )
            return issues

        for i, operation in enumerate(operations):
            if operation is Invalid or not isinstance(operation, Mapping):
                continue
            operation = ScimData(operation)
            method = _method(operation)
            if method == "PATCH" and not self._patch_supported:
                issues.add_error(
                    issue=ValidationError.not_supported(),
                    proceed=False,
                    location=["Operations", i, "method"],
                )
            path = operation.get("path")
            if not isinstance(path, str) or not path.startswith("/"):
                continue
            if self.get_schema(operation) is None:
                issues.add_error(
                    issue=ValidationError.unknown_operation_resource(),
                    proceed=False,
                    location=["Operations", i, "path"],
                )
        return issues

    def deserialize(self, data: Mapping[str, Any]) -> ScimData:
        """
        Returns deep copy of the provided `data`, with `data` of `DELETE` operations dropped.
        """
        data = ScimData(deepcopy(ScimData(data).to_dict()))
        for operation in data.get("Operations", []):
            if isinstance(operation, ScimData) and _method(operation) == "DELETE":
                operation.pop("data")
        return data

    def get_schema(self, operation: Mapping) -> Optional[ResourceSchema]:
        """
        Returns one of the resource schemas, depending on the provided `operation` data. Returns
        `None` if path indicates unsupported resource type.
        """
        path = ScimData(operation).get("path")
        if not isinstance(path, str) or not path.startswith("/"):
            return None
        return self._resource_schemas.get(f"/{path.split('/', 2)[1]}".lower())


def validate_response_operations(value: list[ScimData]) -> ValidationIssues:
    issues = ValidationIssues()
    for i, item in enumerate(value):
        if item is Invalid:
            continue
        method = _method(item)
        bulk_id = item.get("bulkId")
        if method == "POST" and bulk_id in [None, Missing]:
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=(i, "bulkId"),
            )
        status = item.get("status")
        if not method or not isinstance(status, str) or not status.isdigit():
            continue
        location = item.get("location")
        if location in [None, Missing] and (method != "POST" or int(status) < 300):
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=(i, "location"),
            )
        response = item.get("response")
        if response in [None, Missing] and int(status) >= 300:
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=(i, "response"),
            )
    return issues


def validate_status(value: Any) -> ValidationIssues:
    issues = ValidationIssues()
    try:
        int(value)
    except ValueError:
        issues.add_error(
            issue=ValidationError.bad_value_syntax(),
            proceed=False,
        )
    return issues


class BulkResponseSchema(BaseSchema):
    """
    BulkResponse schema, identified by `urn:ietf:params:scim:api:messages:2.0:BulkResponse` URI.

    Provides data validation and checks if:

    - `method` is provided,
    - `bulkId` is provided for `POST` method,
    - `status` is provided,
    - `location` is provided for successful operations, and for unsuccessful ones other
        than `POST`,
    - `response` is provided for unsuccessful operations, and it is valid SCIM error.
    """

    schema = "urn:ietf:params:scim:api:messages:2.0:BulkResponse"
    base_attrs = [
        Complex(
            sub_attributes=[
                String(
                    name="method",
                    required=True,
                    canonical_values=["POST", "PUT", "PATCH", "DELETE"],
                    restrict_canonical_values=True,
                ),
                String("bulkId"),
                String("version"),
                UriReference("location"),
                String(
                    name="status",
                    required=True,
                    validators=[validate_status],
                ),
                Unknown("response"),
            ],
            name="Operations",
            required=True,
            multi_valued=True,
            validators=[validate_response_operations],
        )
    ]

    def __init__(self, error_schema: Optional[ErrorSchema] = None):
        super().__init__()
        self._error_schema = error_schema or ErrorSchema()

    def _validate(self, data: ScimData, **kwargs) -> ValidationIssues:
        issues = ValidationIssues()
        operations = data.get("Operations")
        if not isinstance(operations, list):
            return issues

        for i, operation in enumerate(operations):
            if operation is Invalid or not isinstance(operation, Mapping):
                continue
            operation = ScimData(operation)
            status = operation.get("status")
            response = operation.get("response")
            if not isinstance(status, str) or not status.isdigit() or int(status) < 300:
                continue
            if not isinstance(response, Mapping):
                continue
            issues.merge(
                self._error_schema.validate(response),
                location=["Operations", i, "response"],
            )
        return issues
