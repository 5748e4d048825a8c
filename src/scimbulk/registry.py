from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scimbulk.data.schemas import ResourceSchema


resources: dict[str, "ResourceSchema"] = {}
schemas: dict[str, bool] = {}


def register_resource_schema(resource_schema: "ResourceSchema"):
    existing = resources.get(resource_schema.name)
    if existing is not None and existing.endpoint != resource_schema.endpoint:
        raise RuntimeError(
            f"resource {resource_schema.name!r} already defined for different endpoint "
            f"{existing.endpoint!r}"
        )
    resources[resource_schema.name] = resource_schema


def register_schema(schema: str, extension: bool = False):
    if schema.lower().startswith("urn:ietf:params:scim:api:messages:2.0:") and schema in schemas:
        raise RuntimeError("schemas for SCIM API messages can not be overridden")
    schemas[schema] = extension
