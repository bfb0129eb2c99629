import threading
import time
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from device_query.api import create_app
from device_query.config import Settings
from device_query.models import FilterBlock, FilterGroup, FilterType, InventoryServiceError


@pytest.fixture
def api(fake_client):
    app = create_app(Settings(), client=fake_client)
    with TestClient(app) as client:
        client.post("/api/catalog/refresh")
        yield client


@pytest.fixture
def session_id(api):
    return api.post("/api/sessions").json()["id"]


def add_device_block(api, session_id):
    group_id = api.post(f"/api/sessions/{session_id}/groups").json()["groups"][-1]["id"]
    session = api.post(f"/api/sessions/{session_id}/groups/{group_id}/blocks", json={"type": "device"}).json()
    return group_id, session["groups"][-1]["blocks"][-1]["id"]


def block_url(session_id, group_id, block_id):
    return f"/api/sessions/{session_id}/groups/{group_id}/blocks/{block_id}"


def test_health(api):
    assert api.get("/health").json()["status"] == "healthy"


def test_catalog_and_values(api):
    catalog = api.get("/api/catalog").json()
    assert catalog["catalog"]["nodeLabelKeys"][0]["value"] == "zone"
    assert catalog["loading"] is False
    assert "exists" in catalog["conditions"]["taint"]
    assert "exists" not in catalog["conditions"]["device"]

    values = api.get("/api/catalog/values", params={"type": "nodeLabel", "field": "zone"}).json()
    assert [v["value"] for v in values["values"]] == ["zone-a", "zone-b"]


def test_new_session_is_empty(api, session_id):
    session = api.get(f"/api/sessions/{session_id}").json()
    assert session["groups"] == []
    assert session["summary"] == "No query conditions"
    assert session["querying"] is False


def test_unknown_session_is_404(api):
    assert api.get("/api/sessions/missing").status_code == 404
    assert api.post("/api/sessions/missing/groups").status_code == 404


def test_build_tree_and_summarize(api, session_id):
    group_id, block_id = add_device_block(api, session_id)

    session = api.patch(block_url(session_id, group_id, block_id), json={"value": ["10.0.0.1", "10.0.0.2"]}).json()
    block = session["groups"][0]["blocks"][0]

    assert block["field"] == block["key"] == "ip"
    assert block["conditionType"] == "in"
    assert block["value"] == ["10.0.0.1", "10.0.0.2"]
    assert session["summary"] == "(ip∈[10.0.0.1, 10.0.0.2])"

    summary = api.get(f"/api/sessions/{session_id}/summary", params={"maxLength": 8}).json()
    assert summary["summary"] == "(ip∈[..."


def test_group_operator_patch_reaches_blocks(api, session_id):
    group_id, _ = add_device_block(api, session_id)
    session = api.patch(f"/api/sessions/{session_id}/groups/{group_id}", json={"operator": "or"}).json()
    assert session["groups"][0]["operator"] == "or"
    assert session["groups"][0]["blocks"][0]["operator"] == "or"


def test_condition_not_offered_for_type_is_rejected(api, session_id):
    group_id, block_id = add_device_block(api, session_id)
    response = api.patch(block_url(session_id, group_id, block_id), json={"conditionType": "exists"})
    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"

    block = api.get(f"/api/sessions/{session_id}").json()["groups"][0]["blocks"][0]
    assert block["conditionType"] == "equal"


def test_removals_and_reset(api, session_id):
    group_id, block_id = add_device_block(api, session_id)
    session = api.delete(block_url(session_id, group_id, block_id)).json()
    assert session["groups"][0]["blocks"] == []

    add_device_block(api, session_id)
    session = api.delete(f"/api/sessions/{session_id}/groups/{group_id}").json()
    assert len(session["groups"]) == 1

    assert api.post(f"/api/sessions/{session_id}/reset").json()["groups"] == []


def test_query_runs_against_inventory(api, session_id, fake_client):
    group_id, block_id = add_device_block(api, session_id)
    api.patch(block_url(session_id, group_id, block_id), json={"value": "10.0.0.1"})

    response = api.post(f"/api/sessions/{session_id}/query", json={"page": 2, "size": 5})

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert fake_client.queries[0].page == 2
    assert fake_client.queries[0].size == 5


def test_query_on_empty_session_is_rejected(api, session_id, fake_client):
    response = api.post(f"/api/sessions/{session_id}/query")
    assert response.status_code == 400
    assert response.json()["message"] == "Add at least one filter condition."
    assert fake_client.queries == []


def test_inventory_failure_is_reported_generically(api, session_id, fake_client):
    add_device_block(api, session_id)
    fake_client.fail_with = InventoryServiceError("connection reset by peer")

    response = api.post(f"/api/sessions/{session_id}/query")

    assert response.status_code == 502
    assert response.json()["error_code"] == "INVENTORY_SERVICE_ERROR"
    assert "peer" not in response.json()["message"]
    assert api.get(f"/api/sessions/{session_id}").json()["querying"] is False


def test_save_load_and_overwrite_template(api, session_id, fake_client):
    group_id, block_id = add_device_block(api, session_id)
    api.patch(block_url(session_id, group_id, block_id), json={"value": "10.0.0.1"})

    saved = api.post(f"/api/sessions/{session_id}/templates", json={"name": "web"}).json()
    assert saved["id"] == 1

    session = api.get(f"/api/sessions/{session_id}").json()
    assert session["sourceTemplateId"] == 1
    assert session["isModified"] is False

    session = api.patch(block_url(session_id, group_id, block_id), json={"value": "10.0.0.2"}).json()
    assert session["isModified"] is True

    overwritten = api.post(f"/api/sessions/{session_id}/templates", json={"name": "web", "mode": "save"}).json()
    assert overwritten["id"] == 1
    assert fake_client.saved[-1].id == 1

    other = api.post("/api/sessions").json()["id"]
    loaded = api.post(f"/api/sessions/{other}/templates/1/load").json()
    assert loaded["sourceTemplateName"] == "web"
    assert loaded["summary"] == "(ip=10.0.0.2)"


def test_template_listing_execution_and_delete(api, session_id):
    group_id, block_id = add_device_block(api, session_id)
    api.patch(block_url(session_id, group_id, block_id), json={"value": "10.0.0.1"})
    api.post(f"/api/sessions/{session_id}/templates", json={"name": "web"})

    listing = api.get("/api/templates").json()
    assert listing["list"][0]["summary"] == "(ip=10.0.0.1)"

    assert api.post("/api/templates/1/execute").json()["total"] == 1

    api.delete("/api/templates/1")
    assert api.get("/api/templates").json()["list"] == []


def test_save_requires_a_name(api, session_id):
    add_device_block(api, session_id)
    response = api.post(f"/api/sessions/{session_id}/templates", json={"name": " "})
    assert response.status_code == 400


def test_session_stats_and_delete(api, session_id):
    add_device_block(api, session_id)
    assert api.get("/api/sessions/stats").json()["total_blocks"] == 1
    assert api.delete(f"/api/sessions/{session_id}").status_code == 200
    assert api.get(f"/api/sessions/{session_id}").status_code == 404


def test_zero_max_length_is_respected(api, session_id):
    add_device_block(api, session_id)
    summary = api.get(f"/api/sessions/{session_id}/summary", params={"maxLength": 0}).json()
    assert summary["summary"] == "..."


def test_concurrent_block_adds_are_both_kept(api, session_id, fake_client):
    group_id = api.post(f"/api/sessions/{session_id}/groups").json()["groups"][0]["id"]
    fetch_values = fake_client.get_device_field_values

    def slow_values(field, size_hint=None):
        time.sleep(0.3)
        return fetch_values(field, size_hint)

    fake_client.get_device_field_values = slow_values
    url = f"/api/sessions/{session_id}/groups/{group_id}/blocks"
    responses = []
    threads = [
        threading.Thread(target=lambda: responses.append(api.post(url, json={"type": "device"})))
        for _ in range(2)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert [response.status_code for response in responses] == [200, 200]
    blocks = api.get(f"/api/sessions/{session_id}").json()["groups"][0]["blocks"]
    assert len(blocks) == 2
    values = api.get("/api/catalog/values", params={"type": "device", "field": "ip"}).json()
    assert [v["value"] for v in values["values"]] == ["10.0.0.1", "10.0.0.2"]


def test_catalog_refresh_leaves_idle_template_sessions_alone(api, session_id):
    store = api.app.state.store
    blank = FilterGroup(blocks=[FilterBlock(type=FilterType.DEVICE)])
    session = store.load_template(session_id, [blank], 4, "web")
    idle_since = datetime.now() - timedelta(hours=48)
    session.last_activity = idle_since

    api.post("/api/catalog/refresh")

    assert session.groups[0].blocks[0].field == "ip"
    assert not session.is_modified
    assert session.last_activity == idle_since
    api.post("/api/sessions/cleanup")
    assert api.get(f"/api/sessions/{session_id}").status_code == 404


def test_template_executions_are_guarded_per_template(api, session_id):
    group_id, block_id = add_device_block(api, session_id)
    api.patch(block_url(session_id, group_id, block_id), json={"value": "10.0.0.1"})
    api.post(f"/api/sessions/{session_id}/templates", json={"name": "web"})
    api.post(f"/api/sessions/{session_id}/templates", json={"name": "web copy"})

    token = api.app.state.template_guard(1).acquire()
    try:
        assert api.post("/api/templates/2/execute").status_code == 200
        busy = api.post("/api/templates/1/execute")
        assert busy.status_code == 409
        assert busy.json()["error_code"] == "QUERY_IN_FLIGHT"
    finally:
        token.release()

    assert api.post("/api/templates/1/execute").status_code == 200
