import pytest

from scimbulk.bulk.aggregator import BulkResult, ResolverMap, Unresolved
from scimbulk.bulk.operation import OperationMethod, OperationRecord, Resolved
from scimbulk.error import AbortedError, DanglingReferenceError, ResourceStoreError
from tests.conftest import BASE_URL


def test_resolver_map_entries_are_unresolved_until_recorded():
    resolver_map = ResolverMap(["usr1", "grp1"])

    resolver_map.record("usr1", Resolved("2819c223", f"{BASE_URL}/Users/2819c223"))

    assert resolver_map["usr1"] == Resolved("2819c223", f"{BASE_URL}/Users/2819c223")
    assert resolver_map["grp1"] is Unresolved
    assert not resolver_map["grp1"]
    assert resolver_map.identifier("grp1") is None
    assert resolver_map.location("usr1") == f"{BASE_URL}/Users/2819c223"
    assert list(resolver_map) == ["usr1", "grp1"]


def test_resolver_map_entry_can_be_written_once():
    resolver_map = ResolverMap(["usr1"])
    resolver_map.record("usr1", Unresolved)

    with pytest.raises(RuntimeError, match="already recorded"):
        resolver_map.record("usr1", Resolved("2819c223", "/Users/2819c223"))


def test_frozen_resolver_map_can_not_be_modified():
    resolver_map = ResolverMap(["usr1"])
    resolver_map.freeze()

    with pytest.raises(RuntimeError, match="frozen"):
        resolver_map.record("usr1", Unresolved)
    assert resolver_map.frozen


def test_resolver_map_lookup_is_idempotent():
    resolver_map = ResolverMap(["usr1"])
    resolver_map.record("usr1", Resolved("2819c223", "/Users/2819c223"))
    resolver_map.freeze()

    first = resolver_map.get("usr1")
    second = resolver_map.get("usr1")

    assert first == second
    assert resolver_map.get("unknown") is None
    assert resolver_map.identifier("usr1") == resolver_map.identifier("usr1") == "2819c223"


def test_resolver_map_can_be_rebuilt_from_bulk_response():
    resolver_map = ResolverMap.from_response(
        {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkResponse"],
            "Operations": [
                {
                    "method": "POST",
                    "bulkId": "usr1",
                    "version": 'W/"oY4m4wn58tkVjJxK"',
                    "location": f"{BASE_URL}/Users/92b725cd",
                    "status": "201",
                },
                {
                    "method": "POST",
                    "bulkId": "grp1",
                    "status": "409",
                    "response": {"status": "409"},
                },
                {
                    "method": "PUT",
                    "bulkId": "usr2",
                    "location": f"{BASE_URL}/Users/b7c14771",
                    "status": "200",
                },
            ],
        }
    )

    assert dict(resolver_map) == {
        "usr1": Resolved("92b725cd", f"{BASE_URL}/Users/92b725cd", 'W/"oY4m4wn58tkVjJxK"'),
        "grp1": Unresolved,
    }
    assert resolver_map.frozen


def test_bulk_response_lists_operations_in_request_order():
    created = OperationRecord(index=0, method=OperationMethod.CREATE, path="/Users", bulk_id="usr1")
    created.resolve(Resolved("92b725cd", f"{BASE_URL}/Users/92b725cd", 'W/"oY4m4wn58tkVjJxK"'))
    failed_post = OperationRecord(
        index=1, method=OperationMethod.CREATE, path="/Groups", bulk_id="grp1"
    )
    failed_post.fail(DanglingReferenceError("ghost"))
    deleted = OperationRecord(index=2, method=OperationMethod.DELETE, path="/Users/b7c14771")
    deleted.resolve(Resolved("b7c14771", f"{BASE_URL}/Users/b7c14771"))
    aborted = OperationRecord(
        index=3, method=OperationMethod.UPDATE, path="/Users/5d48a0a8", version='W/"3694e05e"'
    )
    aborted.fail(AbortedError(1))
    result = BulkResult(
        [created, failed_post, deleted, aborted], ResolverMap(["usr1", "grp1"]), BASE_URL + "/"
    )

    assert result.errors == 2
    assert result.to_response() == {
        "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkResponse"],
        "Operations": [
            {
                "method": "POST",
                "bulkId": "usr1",
                "version": 'W/"oY4m4wn58tkVjJxK"',
                "location": f"{BASE_URL}/Users/92b725cd",
                "status": "201",
            },
            {
                "method": "POST",
                "bulkId": "grp1",
                "status": "400",
                "response": {
                    "schemas": ["urn:ietf:params:scim:api:messages:2.0:Error"],
                    "status": "400",
                    "scimType": "invalidValue",
                    "detail": "No POST operation found matching bulkId 'ghost'",
                },
            },
            {
                "method": "DELETE",
                "location": f"{BASE_URL}/Users/b7c14771",
                "status": "204",
            },
            {
                "method": "PUT",
                "version": 'W/"3694e05e"',
                "location": f"{BASE_URL}/Users/5d48a0a8",
                "status": "412",
                "response": AbortedError(1).to_dict(),
            },
        ],
    }


def test_store_error_is_passed_to_bulk_response_as_is():
    record = OperationRecord(index=0, method=OperationMethod.MODIFY, path="/Groups/e9e30dba")
    record.fail(ResourceStoreError("Group not found", status=404))

    response = BulkResult([record], ResolverMap()).to_response()

    assert response["Operations"][0] == {
        "method": "PATCH",
        "location": "/Groups/e9e30dba",
        "status": "404",
        "response": {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:Error"],
            "status": "404",
            "detail": "Group not found",
        },
    }


def test_bulk_response_can_not_be_produced_for_pending_operations():
    record = OperationRecord(index=0, method=OperationMethod.DELETE, path="/Users/b7c14771")

    with pytest.raises(RuntimeError, match="has not been settled"):
        BulkResult([record], ResolverMap()).to_response()
