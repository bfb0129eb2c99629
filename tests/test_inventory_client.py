import json

import httpx
import pytest

from device_query.clients import InventoryClient
from device_query.models import (
    DEFAULT_DEVICE_FIELDS,
    DeviceQueryRequest,
    FilterGroup,
    InventoryServiceError,
    QueryTemplate,
)

BASE_URL = "http://inventory.test/fe-v1"


def make_client(handler, token=None):
    return InventoryClient(BASE_URL, token=token, transport=httpx.MockTransport(handler))


def envelope(data, code=200, msg="ok"):
    return httpx.Response(200, json={"code": code, "msg": msg, "data": data})


def test_filter_options_are_unwrapped():
    seen = []

    def handler(request):
        seen.append(request)
        return envelope({
            "deviceFields": [{"id": "ip", "label": "IP address", "value": "ip"}],
            "nodeLabels": ["zone"],
            "nodeTaintKeys": [{"value": "dedicated"}],
        })

    catalog = make_client(handler, token="secret").get_filter_options()

    assert seen[0].url.path == "/fe-v1/device-query/filter-options"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert [o.label for o in catalog.deviceFields] == ["IP address"]
    assert [o.value for o in catalog.nodeLabelKeys] == ["zone"]
    assert catalog.nodeTaintKeys[0].id == "dedicated"


def test_missing_device_fields_fall_back_to_defaults():
    catalog = make_client(lambda request: envelope({})).get_filter_options()
    assert [o.value for o in catalog.deviceFields] == [o.value for o in DEFAULT_DEVICE_FIELDS]


def test_value_lookups_send_field_parameters():
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path.endswith("/device-field-values"):
            return envelope(["10.0.0.1", None, 42])
        return envelope([{"id": "a", "label": "A", "value": "a"}])

    client = make_client(handler)
    labels = client.get_label_values("zone")
    taints = client.get_taint_values("gpu")
    values = client.get_device_field_values("ip", 50)

    assert seen[0].url.params["key"] == "zone"
    assert seen[1].url.path.endswith("/taint-values")
    assert seen[2].url.params["field"] == "ip"
    assert seen[2].url.params["size"] == "50"
    assert labels[0].label == "A"
    assert taints[0].value == "a"
    assert values == ["10.0.0.1", "42"]


def test_query_posts_transport_groups():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return envelope({"list": [{"ip": "10.0.0.1"}], "total": 1})

    request = DeviceQueryRequest(groups=[FilterGroup(id="g")], page=2, size=5)
    response = make_client(handler).query_devices(request)

    assert seen[0]["page"] == 2
    assert seen[0]["groups"][0]["id"] == "g"
    assert response.total == 1
    assert response.page == 2
    assert response.size == 5


def test_save_template_omits_missing_id():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return envelope({"id": 9})

    result = make_client(handler).save_template(QueryTemplate(name="web"))

    assert "id" not in seen[0]
    assert result == {"id": 9}


def test_list_templates_accepts_bare_lists():
    listing = make_client(lambda request: envelope([{"id": 1}, {"id": 2}])).list_templates(page=1, size=10)
    assert listing.total == 2


def test_delete_template_tolerates_empty_body():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    assert make_client(handler).delete_template(3) is None
    assert seen[0].method == "DELETE"
    assert seen[0].url.path.endswith("/templates/3")


def test_envelope_error_code_raises():
    client = make_client(lambda request: envelope(None, code=500, msg="boom"))
    with pytest.raises(InventoryServiceError) as excinfo:
        client.get_template(1)
    assert excinfo.value.message == "boom"
    assert excinfo.value.status_code == 500


def test_http_error_status_raises():
    client = make_client(lambda request: httpx.Response(503))
    with pytest.raises(InventoryServiceError) as excinfo:
        client.list_templates()
    assert excinfo.value.status_code == 503


def test_invalid_json_raises():
    client = make_client(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(InventoryServiceError):
        client.get_filter_options()


def test_transport_failure_raises():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(InventoryServiceError):
        make_client(handler).get_label_values("zone")
