from postwhale.tree.models import Endpoint, Repository, SavedRequest, Service


def test_from_dict_reads_camel_case_and_tolerates_missing_fields():
    assert Repository.from_dict({"id": 3, "name": "mono"}) == Repository(3, "mono", "")
    assert Service.from_dict({"id": 1, "repoId": 3, "name": "Fusion"}).repo_id == 3
    assert Repository.from_dict(None) == Repository(0, "", "")


def test_endpoint_method_is_upper_cased_and_spec_ignored_in_equality():
    a = Endpoint.from_dict({"id": 1, "serviceId": 2, "method": "patch", "path": "/x", "spec": {"a": 1}})
    b = Endpoint(1, 2, "PATCH", "/x")
    assert a.method == "PATCH"
    assert a == b


def test_endpoint_parameters_by_location():
    endpoint = Endpoint.from_dict({
        "id": 1,
        "serviceId": 2,
        "method": "GET",
        "path": "/orders/{id}",
        "spec": {"parameters": [{"name": "id", "in": "path"}, {"name": "q", "in": "query"}, "junk"]},
    })
    assert [p["name"] for p in endpoint.parameters("query")] == ["q"]
    assert [p["name"] for p in endpoint.parameters("path")] == ["id"]
    assert Endpoint(1, 2, "GET", "/").parameters("query") == []


def test_saved_request_payload_uses_wire_names():
    saved = SavedRequest.from_dict({"id": 4, "endpointId": 1, "name": "n", "body": "b"})
    assert saved.to_payload() == {
        "id": 4,
        "endpointId": 1,
        "name": "n",
        "pathParamsJson": "{}",
        "queryParamsJson": "[]",
        "headersJson": "[]",
        "body": "b",
    }
