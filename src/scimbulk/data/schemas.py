from collections.abc import Mapping
from typing import Any, Iterable, Iterator, Optional

from scimbulk.data.attrs import (
    Attribute,
    AttributeMutability,
    AttributeReturn,
    Attrs,
    Complex,
    ResourceReference,
    String,
    UriReference,
)
from scimbulk.data.scim_data import Missing, ScimData
from scimbulk.error import ValidationError, ValidationIssues
from scimbulk.registry import register_resource_schema, register_schema


class SchemaMeta(type):
    def __init__(cls, name, bases, dct):
        super().__init__(name, bases, dct)
        if "schema" in dct:
            register_schema(cls.schema, extension=getattr(cls, "extension", False))


class BaseSchema(metaclass=SchemaMeta):
    """
    Base class for all schemas. Includes `schemas` attribute to attributes defined in subclasses.
    """

    schema: str
    base_attrs: list[Attribute] = [
        UriReference(
            name="schemas",
            required=True,
            multi_valued=True,
            mutability=AttributeMutability.READ_ONLY,
            returned=AttributeReturn.ALWAYS,
        )
    ]

    def __init__(self):
        self._attrs = Attrs(self._get_attrs())

    @property
    def attrs(self) -> Attrs:
        """
        Attributes that belong to the schema.
        """
        return self._attrs

    @property
    def schemas(self) -> list[str]:
        """
        All schema URIs by which the schema is identified.
        """
        return [self.schema]

    def _get_attrs(self) -> list[Attribute]:
        attrs = []
        for cls in reversed(self.__class__.mro()):
            if issubclass(cls, BaseSchema) and "base_attrs" in cls.__dict__:
                attrs.extend(getattr(cls, "base_attrs"))
        return attrs

    def validate(self, data: Mapping[str, Any], **kwargs: Any) -> ValidationIssues:
        """
        Validates the provided data according to the schema attributes configuration.

        In addition, it validates `schemas` attribute:

        - if there are no duplicates,
        - if base schema is included,
        - if all provided schemas are known.

        Extended built-in validation logic is supplied with `_validate` method, implemented
        in subclasses.

        Args:
            data: The data to be validated.
            **kwargs: Additional parameters passed to `_validate` method.

        Returns:
            Validation issues.
        """
        issues = ValidationIssues()
        data = ScimData(data)
        for attr in self.attrs:
            value = data.get(attr.name)
            if value in [None, Missing]:
                if attr.required:
                    issues.add_error(
                        issue=ValidationError.missing(),
                        proceed=False,
                        location=[attr.name],
                    )
                continue
            issues.merge(attr.validate(value), location=[attr.name])
        if issues.can_proceed(("schemas",)) and data.get("schemas") not in [None, Missing]:
            issues.merge(
                self._validate_schemas_field(data),
                location=("schemas",),
            )
        issues.merge(self._validate(data, **kwargs))
        return issues

    def _validate_schemas_field(self, data: ScimData) -> ValidationIssues:
        issues = ValidationIssues()
        provided = [item.lower() for item in data.get("schemas") if isinstance(item, str)]
        if len(provided) != len(set(provided)):
            issues.add_error(
                issue=ValidationError.duplicated_values(),
                proceed=True,
            )
        known = {schema.lower() for schema in self.schemas}
        if self.schema.lower() not in provided:
            issues.add_error(
                issue=ValidationError.missing_main_schema(),
                proceed=True,
            )
        if not set(provided).issubset(known):
            issues.add_error(
                issue=ValidationError.unknown_schema(),
                proceed=True,
            )
        return issues

    def _validate(self, data: ScimData, **kwargs: Any) -> ValidationIssues:
        return ValidationIssues()


class SchemaExtension(metaclass=SchemaMeta):
    """
    Schema extension, whose attributes are kept in resource data under the extension's
    schema URI.
    """

    schema: str
    name: str
    extension = True
    base_attrs: list[Attribute] = []

    def __init__(self):
        self._attrs = Attrs(self.base_attrs)

    @property
    def attrs(self) -> Attrs:
        return self._attrs


class ResourceSchema(BaseSchema):
    """
    Base class for resource schemas, like `User` or `Group`.
    """

    name: str
    plural_name: str
    endpoint: str
    description: str = ""
    base_attrs: list[Attribute] = [
        String(
            name="id",
            required=False,
            case_exact=True,
            mutability=AttributeMutability.READ_ONLY,
            returned=AttributeReturn.ALWAYS,
        ),
        String(
            name="externalId",
            case_exact=True,
        ),
    ]

    def __init__(self, extensions: Optional[Iterable[SchemaExtension]] = None):
        super().__init__()
        self._extensions = {extension.schema.lower(): extension for extension in extensions or []}
        register_resource_schema(self)

    @property
    def schemas(self) -> list[str]:
        return [self.schema] + [extension.schema for extension in self._extensions.values()]

    @property
    def extensions(self) -> list[SchemaExtension]:
        return list(self._extensions.values())

    def get_extension(self, schema: str) -> Optional[SchemaExtension]:
        return self._extensions.get(schema.lower())

    def reference_attrs(self) -> Iterator[tuple[tuple[str, ...], ResourceReference]]:
        """
        Yields attributes that point at other resources, together with their paths, starting
        with schema URI, e.g. `("urn:ietf:params:scim:schemas:core:2.0:Group", "members",
        "value")`.
        """
        for schema, attrs in [(self.schema, self.attrs)] + [
            (extension.schema, extension.attrs) for extension in self.extensions
        ]:
            for attr in attrs:
                if isinstance(attr, ResourceReference):
                    yield (schema, attr.name), attr
                elif isinstance(attr, Complex):
                    for sub_attr in attr.attrs:
                        if isinstance(sub_attr, ResourceReference):
                            yield (schema, attr.name, sub_attr.name), sub_attr
