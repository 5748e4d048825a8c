"""
Discovery of bulkId references in bulk operations.

A value is considered a reference only if the resource schema declares the attribute that
keeps it as `ResourceReference` (e.g. `members.value` or `manager.$ref`). The same
`bulkId:<bulkId>` text kept in any other attribute is plain data.
"""
import re
from collections.abc import Mapping
from typing import Iterable, Iterator, Optional, Union

from scimbulk.bulk.operation import (
    OperationMethod,
    OperationRecord,
    ReferenceSite,
    normalize_bulk_id,
)
from scimbulk.data.attrs import Attribute, Attrs, Complex, ResourceReference
from scimbulk.data.schemas import ResourceSchema
from scimbulk.data.scim_data import ScimData

BULK_ID_PREFIX = ResourceReference.bulk_id_prefix

_PATCH_PATH_FILTER = re.compile(r'\[(?:"(?:[^"\\]|\\.)*"|[^\]"])*\]')

_Location = tuple[Union[str, int], ...]


class ReferenceScanner:
    """
    Finds bulkIds referenced by operations. Supports resource data (`POST`, `PUT`),
    `PatchOp` data (`PATCH`), and bulkIds used as resource identifiers in operation's `path`
    (e.g. `/Groups/bulkId:qwerty`).
    """

    def __init__(self, resource_schemas: Iterable[ResourceSchema]):
        self._schemas = {schema.endpoint.lower(): schema for schema in resource_schemas}
        self._with_references = {
            endpoint
            for endpoint, schema in self._schemas.items()
            if any(True for _ in schema.reference_attrs())
        }

    def scan(self, operation: OperationRecord) -> set[str]:
        """
        Finds references in the `operation`, stores them in the record (`references`,
        `path_reference`, and `depends_on`), and returns referenced bulkIds.
        """
        operation.path_reference = self._path_reference(operation)
        operation.references = list(self.iter_references(operation))
        operation.depends_on = {site.bulk_id for site in operation.references}
        if operation.path_reference is not None:
            operation.depends_on.add(operation.path_reference)
        return operation.depends_on

    def iter_references(self, operation: OperationRecord) -> Iterator[ReferenceSite]:
        endpoint = operation.endpoint.lower()
        if operation.payload is None or endpoint not in self._with_references:
            return
        schema = self._schemas[endpoint]
        if operation.method is OperationMethod.MODIFY:
            yield from self._scan_patch(operation.payload, schema)
        elif operation.method in (OperationMethod.CREATE, OperationMethod.UPDATE):
            yield from self._scan_resource(operation.payload, schema, ())

    @staticmethod
    def _path_reference(operation: OperationRecord) -> Optional[str]:
        resource_id = operation.resource_id
        if resource_id is None or not resource_id.startswith(BULK_ID_PREFIX):
            return None
        return normalize_bulk_id(resource_id[len(BULK_ID_PREFIX) :])

    def _scan_resource(
        self, data: ScimData, schema: ResourceSchema, location: _Location
    ) -> Iterator[ReferenceSite]:
        for key, value in data.items():
            extension = schema.get_extension(key)
            if extension is not None:
                if isinstance(value, ScimData):
                    yield from self._scan_attrs(value, extension.attrs, location + (key,))
                continue
            attr = schema.attrs.get(key)
            if attr is not None:
                yield from self._scan_value(value, attr, location + (key,))

    def _scan_attrs(
        self, data: ScimData, attrs: Attrs, location: _Location
    ) -> Iterator[ReferenceSite]:
        for key, value in data.items():
            attr = attrs.get(key)
            if attr is not None:
                yield from self._scan_value(value, attr, location + (key,))

    def _scan_value(
        self, value: object, attr: Attribute, location: _Location
    ) -> Iterator[ReferenceSite]:
        if attr.multi_valued and isinstance(value, list):
            for i, item in enumerate(value):
                yield from self._scan_single_value(item, attr, location + (i,))
            return
        yield from self._scan_single_value(value, attr, location)

    def _scan_single_value(
        self, value: object, attr: Attribute, location: _Location
    ) -> Iterator[ReferenceSite]:
        if isinstance(attr, Complex) and isinstance(value, Mapping):
            yield from self._scan_attrs(ScimData(value), attr.attrs, location)
        elif isinstance(attr, ResourceReference):
            bulk_id = attr.bulk_id(value)
            if bulk_id is not None:
                yield ReferenceSite(
                    location=location,
                    attr=attr,
                    bulk_id=normalize_bulk_id(bulk_id),
                )

    def _scan_patch(self, data: ScimData, schema: ResourceSchema) -> Iterator[ReferenceSite]:
        operations_key = data.original_key("Operations")
        if operations_key is None or not isinstance(data[operations_key], list):
            return
        for i, patch_operation in enumerate(data[operations_key]):
            if not isinstance(patch_operation, ScimData):
                continue
            value_key = patch_operation.original_key("value")
            if value_key is None:
                continue
            value = patch_operation[value_key]
            location = (operations_key, i, value_key)
            path = patch_operation.get("path", None)
            if not isinstance(path, str) or not path:
                if isinstance(value, ScimData):
                    yield from self._scan_resource(value, schema, location)
                continue
            attr = self._patch_target(path, schema)
            if attr is not None:
                yield from self._scan_value(value, attr, location)

    @staticmethod
    def _patch_target(path: str, schema: ResourceSchema) -> Optional[Attribute]:
        attrs = schema.attrs
        for uri, uri_attrs in [(schema.schema, schema.attrs)] + [
            (extension.schema, extension.attrs) for extension in schema.extensions
        ]:
            if path.lower().startswith(uri.lower() + ":"):
                attrs = uri_attrs
                path = path[len(uri) + 1 :]
                break
        path = _PATCH_PATH_FILTER.sub("", path)
        attr_name, _, sub_attr_name = path.partition(".")
        attr = attrs.get(attr_name)
        if attr is None or not sub_attr_name:
            return attr
        if not isinstance(attr, Complex):
            return None
        return attr.attrs.get(sub_attr_name)
