import abc
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, Collection, Iterable, Iterator, Optional, final

import precis_i18n.profile
from precis_i18n import get_profile

from scimbulk.data.scim_data import Invalid, Missing, ScimData
from scimbulk.error import ValidationError, ValidationIssues, ValidationWarning
from scimbulk.registry import resources

_ATTR_NAME = re.compile(r"\$ref|[a-zA-Z][\w$-]*")


class AttributeMutability(str, Enum):
    READ_WRITE = "readWrite"
    READ_ONLY = "readOnly"
    WRITE_ONLY = "writeOnly"
    IMMUTABLE = "immutable"


class AttributeReturn(str, Enum):
    DEFAULT = "default"
    ALWAYS = "always"
    NEVER = "never"
    REQUEST = "request"


_AttributeValidator = Callable[[Any], ValidationIssues]


class Attribute(abc.ABC):
    """
    Base class for all attributes.

    Args:
        name: Name of the attribute. Must be valid attribute name, according to RFC-7643.
        description: Description of the attribute
        required: Specifies if attribute is required, as per RFC-7643
        multi_valued: Specifies if attribute is multivalued, as per RFC-7643
        canonical_values: Specifies canonical values for the attribute, as per RFC-7643
        restrict_canonical_values: flag that indicates whether validation error should be
            returned if provided value is not one of canonical values. If set to `False`,
            the validation warning is returned instead. Has no effect if there are no canonical
            values
        mutability: Specifies attribute's mutability, as per RFC-7643
        returned: Specifies attribute's `returned` characteristic, as per RFC-7643
        validators: Additional validators, which are run, if the initial, built-in validation
            succeeds
    """

    def __init__(
        self,
        name: str,
        *,
        description: str = "",
        required: bool = False,
        multi_valued: bool = False,
        canonical_values: Optional[Collection] = None,
        restrict_canonical_values: bool = False,
        mutability: AttributeMutability = AttributeMutability.READ_WRITE,
        returned: AttributeReturn = AttributeReturn.DEFAULT,
        validators: Optional[list[_AttributeValidator]] = None,
    ):
        if not _ATTR_NAME.fullmatch(name):
            raise ValueError(f"{name!r} is not valid attribute name")
        self._name = name
        self._description = description
        self._required = required
        self._canonical_values = list(canonical_values or [])
        self._validate_canonical_values = restrict_canonical_values
        self._multi_valued = multi_valued
        self._mutability = mutability
        self._returned = returned
        self._validators = validators or []

    @classmethod
    @abc.abstractmethod
    def scim_type(cls) -> str:
        """Returns type of the attribute, as defined in RFC-7643."""

    @classmethod
    @abc.abstractmethod
    def base_types(cls) -> tuple[type, ...]:
        """Returns Python types, supported by the specific `Attribute` subclass."""

    @property
    def name(self) -> str:
        """Name of the attribute."""
        return self._name

    @property
    def required(self) -> bool:
        return self._required

    @property
    def multi_valued(self) -> bool:
        return self._multi_valued

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._name})"

    def _is_canonical(self, value: Any) -> bool:
        if not self._canonical_values:
            return True
        return value in self._canonical_values

    def _validate_type(self, value: Any) -> ValidationIssues:
        issues = ValidationIssues()
        if self.multi_valued:
            if not isinstance(value, list):
                issues.add_error(
                    issue=ValidationError.bad_type("list"),
                    proceed=False,
                )
                return issues
            for i, item in enumerate(value):
                issues_ = self._validate_value_type(item)
                issues.merge(
                    issues=issues_,
                    location=[i],
                )
                if not issues_.can_proceed():
                    value[i] = Invalid
            return issues
        issues.merge(self._validate_value_type(value))
        return issues

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        issues = ValidationIssues()
        if not isinstance(value, self.base_types()):
            issues.add_error(
                issue=ValidationError.bad_type(self.scim_type()),
                proceed=False,
            )
        return issues

    def validate(self, value: Any) -> ValidationIssues:
        """
        Validates the provided value according to attribute's specification.
        It validates the type and canonicality (if specified). If no validation issues,
        custom validators (passed as `validators` constructor parameter) are run.

        Returns:
            Validation issues
        """
        issues = ValidationIssues()
        if value in [None, Missing]:
            return issues

        issues.merge(self._validate_type(value))
        if not issues.can_proceed():
            return issues

        if self._multi_valued:
            for i, item in enumerate(value):
                if item is Invalid:
                    continue
                issues_ = self._validate(item)
                issues.merge(issues=issues_, location=[i])
                if not issues_.can_proceed():
                    value[i] = Invalid
        else:
            issues.merge(self._validate(value))
        for validator in self._validators:
            if not issues.can_proceed():
                break
            issues.merge(validator(value))
        return issues

    def _validate(self, value: Any) -> ValidationIssues:
        issues = ValidationIssues()
        if not self._is_canonical(value):
            if self._validate_canonical_values:
                issues.add_error(
                    issue=ValidationError.must_be_one_of(self._canonical_values),
                    proceed=False,
                )
            else:
                issues.add_warning(
                    issue=ValidationWarning.should_be_one_of(self._canonical_values),
                )
        return issues


class AttributeWithCaseExact(Attribute, abc.ABC):
    """
    Includes case sensitivity specification to the attribute, as per RFC-7643.
    """

    def __init__(self, name: str, *, case_exact: bool = False, **kwargs: Any):
        super().__init__(name=name, **kwargs)
        self._case_exact = case_exact
        if not self._case_exact and self._canonical_values:
            self._canonical_values = [item.lower() for item in self._canonical_values]

    def _is_canonical(self, value: Any) -> bool:
        return super()._is_canonical(value) or (
            not self._case_exact and value.lower() in self._canonical_values
        )


@final
class Unknown(Attribute):
    """
    Attribute of unknown type that is used for attributes with varying content.
    For example, `urn:ietf:params:scim:api:messages:2.0:BulkRequest:Operations.data`
    is such attribute.
    """

    @classmethod
    def scim_type(cls) -> str:
        raise NotImplementedError("scim type for Unknown attribute is not determined")

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        raise NotImplementedError("base types for Unknown attribute are not determined")

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        return ValidationIssues()


@final
class Boolean(Attribute):
    @classmethod
    def scim_type(cls) -> str:
        return "boolean"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (bool,)


@final
class Integer(Attribute):
    @classmethod
    def scim_type(cls) -> str:
        return "integer"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (int,)

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        issues = ValidationIssues()
        if isinstance(value, bool) or not isinstance(value, int):
            issues.add_error(
                issue=ValidationError.bad_type(self.scim_type()),
                proceed=False,
            )
        return issues


class String(AttributeWithCaseExact):
    """
    Represents **string** attribute, as specified in RFC-7643.

    Args:
        name: The name of the attribute
        precis: PRECIS profile that should be applied for the string attribute, when
            comparing values. By default, **OpaqueString** profile is used
        kwargs: The same keyword arguments base classes receive
    """

    def __init__(
        self,
        name: str,
        *,
        precis: precis_i18n.profile.Profile = get_profile("OpaqueString"),
        **kwargs: Any,
    ):
        super().__init__(name=name, **kwargs)
        self._precis = precis

    @classmethod
    def scim_type(cls) -> str:
        return "string"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (str,)

    @property
    def precis(self) -> precis_i18n.profile.Profile:
        """
        Returns PRECIS profile of the attribute.
        """
        return self._precis


class Reference(AttributeWithCaseExact, abc.ABC):
    """
    Base class for all reference attributes.

    Args:
        name: The name of the attribute.
        reference_types: types of the references, supported by the attribute.
        kwargs: The same keyword arguments base classes receive.
    """

    def __init__(self, name: str, *, reference_types: Iterable[str], **kwargs: Any):
        kwargs["case_exact"] = True
        super().__init__(name=name, **kwargs)
        self._reference_types = list(reference_types)

    @classmethod
    def scim_type(cls) -> str:
        return "reference"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (str,)


@final
class UriReference(Reference):
    """
    Represents URI **reference**, as specified in RFC-7643.
    """

    def __init__(self, name: str, **kwargs):
        kwargs["reference_types"] = ["uri"]
        super().__init__(name=name, **kwargs)


class ResourceReference(Reference, abc.ABC):
    """
    Base class for attributes that point at other SCIM resources. Within a bulk request,
    their values can be `bulkId:<bulkId>` references to resources created by the same
    request, which are replaced with the actual values once the referenced resources exist.
    """

    bulk_id_prefix = "bulkId:"

    def bulk_id(self, value: Any) -> Optional[str]:
        """
        Returns the bulkId that `value` references, or `None` if it is not a bulkId reference.
        """
        if not isinstance(value, str) or not value.startswith(self.bulk_id_prefix):
            return None
        return value[len(self.bulk_id_prefix) :]

    @abc.abstractmethod
    def resolved_value(self, identifier: str, location: str) -> str:
        """
        Returns the value that replaces bulkId reference, given the `identifier` and
        `location` of the created resource.
        """


@final
class ScimReference(ResourceReference):
    """
    Represents SCIM **reference**, as specified in RFC-7643 (e.g. `members.$ref`).
    """

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        issues = super()._validate_value_type(value)
        if not issues.can_proceed() or self.bulk_id(value) is not None:
            return issues

        for resource_schema in resources.values():
            if resource_schema.name in self._reference_types and resource_schema.endpoint in value:
                return issues

        issues.add_error(
            issue=ValidationError.bad_value_content(),
            proceed=False,
        )
        return issues

    def resolved_value(self, identifier: str, location: str) -> str:
        return location


@final
class IdReference(ResourceReference):
    """
    Represents **string** attribute that keeps `id` of another SCIM resource
    (e.g. `members.value`).
    """

    @classmethod
    def scim_type(cls) -> str:
        return "string"

    def resolved_value(self, identifier: str, location: str) -> str:
        return identifier


@final
class Complex(Attribute):
    """
    Represents **complex** attribute, as specified in RFC-7643.

    Args:
        name: The name of the attribute.
        sub_attributes: Sub-attributes of the complex attribute.
        kwargs: The same keyword arguments base class receives.
    """

    def __init__(
        self,
        name: str,
        *,
        sub_attributes: Optional[Iterable[Attribute]] = None,
        **kwargs: Any,
    ):
        super().__init__(name=name, **kwargs)
        self._sub_attributes = Attrs(sub_attributes or [])

    @classmethod
    def scim_type(cls) -> str:
        return "complex"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (Mapping,)

    @property
    def attrs(self) -> "Attrs":
        return self._sub_attributes

    def _validate(self, value: Mapping[str, Any]) -> ValidationIssues:
        issues = ValidationIssues()
        value = ScimData(value)
        for sub_attr in self._sub_attributes:
            sub_attr_value = value.get(sub_attr.name)
            if sub_attr_value in [None, Missing]:
                if sub_attr.required:
                    issues.add_error(
                        issue=ValidationError.missing(),
                        proceed=False,
                        location=[sub_attr.name],
                    )
                continue
            issues.merge(
                issues=sub_attr.validate(sub_attr_value),
                location=[sub_attr.name],
            )
        return issues


class Attrs:
    """
    Collection of attributes. Attribute names are case-insensitive.
    """

    def __init__(self, attrs: Optional[Iterable[Attribute]] = None):
        self._attrs = {attr.name.lower(): attr for attr in attrs or []}

    def __iter__(self) -> Iterator[Attribute]:
        return iter(self._attrs.values())

    def __len__(self) -> int:
        return len(self._attrs)

    def get(self, attr_name: str) -> Optional[Attribute]:
        return self._attrs.get(attr_name.lower())
