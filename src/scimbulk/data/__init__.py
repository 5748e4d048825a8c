from scimbulk.data.attrs import (
    Attribute,
    Attrs,
    Boolean,
    Complex,
    IdReference,
    Integer,
    ResourceReference,
    ScimReference,
    String,
    Unknown,
    UriReference,
)
from scimbulk.data.schemas import BaseSchema, ResourceSchema, SchemaExtension
from scimbulk.data.scim_data import Invalid, Missing, ScimData

__all__ = [
    "Attribute",
    "Attrs",
    "Boolean",
    "Complex",
    "IdReference",
    "Integer",
    "ResourceReference",
    "ScimReference",
    "String",
    "Unknown",
    "UriReference",
    "BaseSchema",
    "ResourceSchema",
    "SchemaExtension",
    "ScimData",
    "Missing",
    "Invalid",
]
