from scimbulk.data.attrs import Attribute, AttributeReturn, String
from scimbulk.data.schemas import BaseSchema
from scimbulk.data.scim_data import ScimData
from scimbulk.error import ScimErrorType, ValidationError, ValidationIssues


def validate_error_status(value: str) -> ValidationIssues:
    issues = ValidationIssues()
    try:
        value_int = int(value)
    except ValueError:
        issues.add_error(
            issue=ValidationError.bad_value_syntax(),
            proceed=False,
        )
        return issues
    if not 300 <= value_int < 600:
        issues.add_error(
            issue=ValidationError.bad_error_status(),
            proceed=True,
        )
    return issues


class ErrorSchema(BaseSchema):
    """
    Error schema, identified by `urn:ietf:params:scim:api:messages:2.0:Error` URI.

    Provides data validation and checks:

    - if `status` represents numerical value in range 300-599,
    - if `scimType` is one of pre-defined scim error types,
    - if `scimType` is provided for status `400` only.
    """

    schema = "urn:ietf:params:scim:api:messages:2.0:Error"
    base_attrs: list[Attribute] = [
        String(
            name="status",
            required=True,
            returned=AttributeReturn.ALWAYS,
            validators=[validate_error_status],
        ),
        String(
            name="scimType",
            canonical_values=[item.value for item in ScimErrorType],
            restrict_canonical_values=True,
            case_exact=True,
            returned=AttributeReturn.ALWAYS,
        ),
        String(
            name="detail",
            returned=AttributeReturn.ALWAYS,
        ),
    ]

    def _validate(self, data: ScimData, **kwargs) -> ValidationIssues:
        issues = ValidationIssues()
        scim_type = data.get("scimType")
        status = data.get("status")
        if scim_type and isinstance(status, str) and status.isdigit() and int(status) != 400:
            issues.add_error(
                issue=ValidationError.not_supported(),
                proceed=True,
                location=["scimType"],
            )
        return issues
