import precis_i18n

from scimbulk.data.attrs import (
    Attribute,
    AttributeMutability,
    AttributeReturn,
    Boolean,
    Complex,
    IdReference,
    ScimReference,
    String,
    UriReference,
)
from scimbulk.data.schemas import ResourceSchema, SchemaExtension


class EnterpriseUserSchemaExtension(SchemaExtension):
    schema = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"
    name = "EnterpriseUser"
    base_attrs: list[Attribute] = [
        String(
            name="employeeNumber",
            description=(
                "Numeric or alphanumeric identifier assigned "
                "to a person, typically based on order of hire or association with an "
                "organization."
            ),
        ),
        String(
            name="costCenter",
            description="Identifies the name of a cost center.",
        ),
        String(
            name="department",
            description="Identifies the name of a department.",
        ),
        Complex(
            name="manager",
            description=(
                "The User's manager.  A complex type that "
                "optionally allows service providers to represent organizational "
                "hierarchy by referencing the 'id' attribute of another User."
            ),
            sub_attributes=[
                IdReference(
                    name="value",
                    description="The id of the SCIM resource representing the User's manager.",
                    reference_types=["User"],
                    required=True,
                ),
                ScimReference(
                    name="$ref",
                    description="The URI of the SCIM resource representing the User's manager",
                    reference_types=["User"],
                ),
                String(
                    name="displayName",
                    description="The displayName of the User's manager.",
                    mutability=AttributeMutability.READ_ONLY,
                ),
            ],
        ),
    ]


class UserSchema(ResourceSchema):
    schema = "urn:ietf:params:scim:schemas:core:2.0:User"
    name = "User"
    plural_name = "Users"
    endpoint = "/Users"
    description = "User Account"
    base_attrs: list[Attribute] = [
        String(
            name="userName",
            description=(
                "Unique identifier for the User, typically used by the user to directly "
                "authenticate to the service provider. Each User MUST include a non-empty "
                "userName value."
            ),
            precis=precis_i18n.get_profile("UsernameCaseMapped"),
            required=True,
        ),
        Complex(
            name="name",
            description="The components of the user's real name.",
            sub_attributes=[
                String(
                    name="formatted",
                    description="The full name, including all middle names, titles, and suffixes.",
                ),
                String(
                    name="familyName",
                    description="The family name of the User.",
                ),
                String(
                    name="givenName",
                    description="The given name of the User.",
                ),
            ],
        ),
        String(
            name="displayName",
            description="The name of the User, suitable for display to end-users.",
        ),
        Boolean(
            name="active",
            description="A Boolean value indicating the User's administrative status.",
        ),
        String(
            name="password",
            description="The User's cleartext password.",
            mutability=AttributeMutability.WRITE_ONLY,
            returned=AttributeReturn.NEVER,
        ),
        Complex(
            name="emails",
            description="Email addresses for the user.",
            multi_valued=True,
            sub_attributes=[
                String(
                    name="value",
                    description="Email addresses for the user.",
                ),
                String(
                    name="type",
                    description="A label indicating the attribute's function, e.g., 'work'.",
                    canonical_values=["work", "home", "other"],
                ),
                Boolean(
                    name="primary",
                    description="A Boolean value indicating the 'primary' address.",
                ),
            ],
        ),
        Complex(
            name="groups",
            description=(
                "A list of groups to which the user belongs, "
                "either through direct membership, through nested groups, or "
                "dynamically calculated."
            ),
            multi_valued=True,
            mutability=AttributeMutability.READ_ONLY,
            sub_attributes=[
                String(
                    name="value",
                    description="The identifier of the User's group.",
                    mutability=AttributeMutability.READ_ONLY,
                ),
                UriReference(
                    name="$ref",
                    description="The URI of the corresponding 'Group' resource.",
                    mutability=AttributeMutability.READ_ONLY,
                ),
                String(
                    name="display",
                    description="A human-readable name, primarily used for display purposes.",
                    mutability=AttributeMutability.READ_ONLY,
                ),
            ],
        ),
    ]
