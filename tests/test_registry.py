import pytest

from scimbulk import registry
from scimbulk.data.schemas import BaseSchema, ResourceSchema


def test_runtime_error_is_raised_if_registering_same_resource_name_but_different_endpoint(
    user_schema,
):
    class FakeUserResource(ResourceSchema):
        name = "User"
        endpoint = "/FakeUsers"

    with pytest.raises(
        RuntimeError,
        match="resource 'User' already defined for different endpoint '/Users'",
    ):
        FakeUserResource()


def test_resource_schema_can_be_created_again_for_the_same_endpoint(group_schema):
    class SameGroupResource(ResourceSchema):
        schema = "urn:ietf:params:scim:schemas:core:2.0:Group"
        name = "Group"
        endpoint = "/Groups"

    SameGroupResource()

    assert registry.resources["Group"].endpoint == "/Groups"


def test_attempt_to_register_again_api_message_schema_fails():
    with pytest.raises(RuntimeError, match="schemas for SCIM API messages can not be overridden"):

        class FakeBulkRequestSchema(BaseSchema):
            schema = "urn:ietf:params:scim:api:messages:2.0:BulkRequest"


def test_schemas_of_defined_classes_are_registered(user_schema, enterprise_extension):
    assert registry.schemas["urn:ietf:params:scim:schemas:core:2.0:User"] is False
    assert (
        registry.schemas["urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"] is True
    )
