import pytest

from scimbulk.data.scim_data import ScimData
from scimbulk.schemas.bulk_ops import BulkRequestSchema, BulkResponseSchema


@pytest.fixture
def request_schema(resource_schemas):
    return BulkRequestSchema(resource_schemas)


def test_validation_bulk_request_operation_fails_if_no_method(request_schema):
    expected_issues = {"0": {"method": {"_errors": [{"code": 5}]}}}

    issues = request_schema.attrs.get("operations").validate([ScimData({"path": "/Users"})])

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_operation_fails_if_unknown_method(request_schema):
    expected_issues = {"0": {"method": {"_errors": [{"code": 9}]}}}

    issues = request_schema.attrs.get("operations").validate(
        [ScimData({"method": "TERMINATE", "path": "/Users"})]
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_operation_fails_if_no_bulk_id_for_post(request_schema):
    expected_issues = {"0": {"bulkId": {"_errors": [{"code": 5}]}}}

    issues = request_schema.attrs.get("operations").validate(
        [ScimData({"method": "POST", "data": {"a": 1, "b": 2}, "path": "/Users"})]
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_operation_fails_if_bulk_id_can_not_be_normalized(
    request_schema,
):
    expected_issues = {"0": {"bulkId": {"_errors": [{"code": 1}]}}}

    issues = request_schema.attrs.get("operations").validate(
        [ScimData({"method": "POST", "bulkId": "\u0007", "data": {"a": 1}, "path": "/Users"})]
    )

    assert issues.to_dict() == expected_issues


@pytest.mark.parametrize(
    ("method", "path"),
    (
        ("POST", "/Users"),
        ("PUT", "/Users/123"),
        ("PATCH", "/Users/123"),
    ),
)
def test_validation_bulk_request_operation_fails_if_no_data(method, path, request_schema):
    expected_issues = {"0": {"data": {"_errors": [{"code": 5}]}}}
    operation = {"method": method, "path": path}
    if method == "POST":
        operation["bulkId"] = "abc"

    issues = request_schema.attrs.get("operations").validate([ScimData(operation)])

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_operation_fails_if_data_is_not_complex(request_schema):
    expected_issues = {"0": {"data": {"_errors": [{"code": 2}]}}}

    issues = request_schema.attrs.get("operations").validate(
        [ScimData({"method": "PUT", "path": "/Users/123", "data": "abc"})]
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_operation_fails_if_path_missing(request_schema):
    expected_issues = {"0": {"path": {"_errors": [{"code": 5}]}}}

    issues = request_schema.attrs.get("operations").validate(
        [ScimData({"method": "PUT", "data": {"a": 1}})]
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_operation_fails_if_bad_path_for_post(request_schema):
    expected_issues = {"0": {"path": {"_errors": [{"code": 23}]}}}

    issues = request_schema.attrs.get("operations").validate(
        [
            ScimData(
                {
                    "method": "POST",
                    "bulkId": "abc",
                    "data": {"a": 1},
                    "path": "/Users/123",
                }
            )
        ]
    )

    assert issues.to_dict() == expected_issues


@pytest.mark.parametrize("method", ["PATCH", "PUT", "DELETE"])
def test_validation_bulk_request_operation_fails_if_bad_path(method, request_schema):
    expected_issues = {"0": {"path": {"_errors": [{"code": 24}]}}}

    issues = request_schema.attrs.get("operations").validate(
        [ScimData({"method": method, "data": {"a": 1}, "path": "/Users"})]
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_operation_passes_for_lower_case_method(request_schema):
    issues = request_schema.attrs.get("operations").validate(
        [ScimData({"method": "delete", "path": "/Users/123"})]
    )

    assert issues.to_dict() == {}


def test_validation_bulk_request_fails_if_unknown_resource(request_schema):
    expected_issues = {"Operations": {"0": {"path": {"_errors": [{"code": 25}]}}}}

    issues = request_schema.validate(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkRequest"],
            "Operations": [{"method": "DELETE", "path": "/Devices/123"}],
        }
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_fails_if_no_operations(request_schema):
    expected_issues = {"Operations": {"_errors": [{"code": 32}]}}

    issues = request_schema.validate(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkRequest"],
            "Operations": [],
        }
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_fails_if_patch_not_supported(resource_schemas):
    expected_issues = {"Operations": {"0": {"method": {"_errors": [{"code": 31}]}}}}
    schema = BulkRequestSchema(resource_schemas, patch_supported=False)

    issues = schema.validate(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkRequest"],
            "Operations": [{"method": "PATCH", "path": "/Users/123", "data": {"a": 1}}],
        }
    )

    assert issues.to_dict() == expected_issues


@pytest.mark.parametrize(
    ("fail_on_errors", "expected_issues"),
    (
        (-1, {"failOnErrors": {"_errors": [{"code": 4}]}}),
        ("1", {"failOnErrors": {"_errors": [{"code": 2}]}}),
        (0, {}),
        (3, {}),
    ),
)
def test_validation_bulk_request_fail_on_errors(fail_on_errors, expected_issues, request_schema):
    issues = request_schema.validate(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkRequest"],
            "failOnErrors": fail_on_errors,
            "Operations": [{"method": "DELETE", "path": "/Users/123"}],
        }
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_request_fails_if_schemas_are_missing_or_unknown(request_schema):
    issues = request_schema.validate(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkResponse"],
            "Operations": [{"method": "DELETE", "path": "/Users/123"}],
        }
    )

    assert issues.to_dict() == {"schemas": {"_errors": [{"code": 12}, {"code": 14}]}}


def test_bulk_request_deserialization_drops_data_of_delete_operations(request_schema):
    body = {
        "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkRequest"],
        "Operations": [
            {"method": "DELETE", "path": "/Users/123", "data": {"userName": "bjensen"}},
            {"method": "PUT", "path": "/Users/456", "data": {"userName": "jsmith"}},
        ],
    }

    data = request_schema.deserialize(body)

    assert "data" not in data["Operations"][0]
    assert data["Operations"][1]["data"] == {"userName": "jsmith"}
    assert body["Operations"][0]["data"] == {"userName": "bjensen"}


def test_resource_schema_is_selected_by_operation_path(request_schema, user_schema, group_schema):
    assert request_schema.get_schema({"path": "/users/123"}) is user_schema
    assert request_schema.get_schema({"path": "/Groups"}) is group_schema
    assert request_schema.get_schema({"path": "/Devices"}) is None
    assert request_schema.get_schema({"path": "Groups"}) is None


def test_validation_bulk_response_operation_fails_if_no_location_for_success():
    expected_issues = {"0": {"location": {"_errors": [{"code": 5}]}}}

    issues = (
        BulkResponseSchema()
        .attrs.get("operations")
        .validate([ScimData({"method": "POST", "bulkId": "abc", "status": "201"})])
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_response_operation_passes_for_failed_post_without_location():
    issues = (
        BulkResponseSchema()
        .attrs.get("operations")
        .validate(
            [
                ScimData(
                    {
                        "method": "POST",
                        "bulkId": "abc",
                        "status": "409",
                        "response": {"status": "409"},
                    }
                )
            ]
        )
    )

    assert issues.to_dict() == {}


def test_validation_bulk_response_operation_fails_if_no_response_for_failure():
    expected_issues = {"0": {"response": {"_errors": [{"code": 5}]}}}

    issues = (
        BulkResponseSchema()
        .attrs.get("operations")
        .validate(
            [
                ScimData(
                    {
                        "method": "PUT",
                        "status": "412",
                        "location": "https://example.com/v2/Users/123",
                    }
                )
            ]
        )
    )

    assert issues.to_dict() == expected_issues


def test_validation_bulk_response_fails_if_error_response_is_invalid():
    expected_issues = {
        "Operations": {"0": {"response": {"scimType": {"_errors": [{"code": 31}]}}}}
    }

    issues = BulkResponseSchema().validate(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkResponse"],
            "Operations": [
                {
                    "method": "PUT",
                    "status": "409",
                    "location": "https://example.com/v2/Users/123",
                    "response": {
                        "schemas": ["urn:ietf:params:scim:api:messages:2.0:Error"],
                        "status": "409",
                        "scimType": "uniqueness",
                    },
                }
            ],
        }
    )

    assert issues.to_dict() == expected_issues
