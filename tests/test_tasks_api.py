"""Task endpoints over HTTP, including the realtime refresh they trigger."""

import uuid

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import sign_in


def _create(client, **fields):
    payload = {"title": "Task"}
    payload.update(fields)
    response = client.post("/api/v1/tasks", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_task_endpoints_require_authentication(client):
    response = client.get("/api/v1/tasks")
    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "http_error"
    assert body["message"] == "Authentication required"


def test_create_returns_success_message_and_task(signed_in):
    client, user = signed_in
    body = _create(client, title="  Ship it  ", priority="high", due_date="2030-03-01")

    assert body["success"] is True
    assert body["message"] == "Task created successfully!"
    task = body["data"]
    assert task["title"] == "Ship it"
    assert task["priority"] == "high"
    assert task["status"] == "todo"
    assert task["due_date"].startswith("2030-03-01T00:00:00")
    assert task["assignee"] is None


def test_create_with_assignee_includes_relation(signed_in):
    client, user = signed_in
    task = _create(client, title="Mine", assignee_id=user["id"])["data"]
    assert task["assignee"] == {"id": user["id"], "name": "Alice", "email": "alice@example.com"}


def test_validation_errors_use_envelope(signed_in):
    client, _ = signed_in
    response = client.post("/api/v1/tasks", json={"title": "", "project_id": "bogus"})
    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert "Title is required" in body["message"]
    assert "Invalid project ID" in body["message"]


def test_list_supports_query_parameters(signed_in):
    client, _ = signed_in
    for title, status in [("b", "todo"), ("a", "completed"), ("c", "todo")]:
        _create(client, title=title, status=status)

    response = client.get("/api/v1/tasks", params={"status": "todo", "sort": "title", "desc": "true"})
    assert response.status_code == 200
    page = response.json()
    assert [item["title"] for item in page["items"]] == ["c", "b"]
    assert page["total"] == 2
    assert page["page_size"] == 10

    bad = client.get("/api/v1/tasks", params={"page_size": 3})
    assert bad.status_code == 422
    assert bad.json()["code"] == "validation_error"


def test_get_update_delete_round(signed_in):
    client, _ = signed_in
    task_id = _create(client, title="Draft")["data"]["id"]

    assert client.get(f"/api/v1/tasks/{task_id}").json()["title"] == "Draft"

    patched = client.patch(f"/api/v1/tasks/{task_id}", json={"status": "completed"})
    assert patched.status_code == 200
    assert patched.json()["message"] == "Task updated successfully!"
    assert patched.json()["data"]["status"] == "completed"
    assert patched.json()["data"]["title"] == "Draft"

    deleted = client.delete(f"/api/v1/tasks/{task_id}")
    assert deleted.json() == {"success": True, "message": "Task deleted successfully", "data": None}

    missing = client.get(f"/api/v1/tasks/{task_id}")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Task not found"


def test_malformed_task_id_is_not_found(signed_in):
    client, _ = signed_in
    response = client.patch("/api/v1/tasks/not-a-uuid", json={"title": "x"})
    assert response.status_code == 404


def test_bulk_delete_reports_deleted_count(signed_in):
    client, _ = signed_in
    ids = [_create(client, title=f"t{i}")["data"]["id"] for i in range(3)]

    response = client.post("/api/v1/tasks/bulk-delete", json={"task_ids": ids[:2] + [str(uuid.uuid4())]})
    assert response.status_code == 200
    assert response.json()["message"] == "2 tasks deleted successfully"

    single = client.post("/api/v1/tasks/bulk-delete", json={"task_ids": [ids[2]]})
    assert single.json()["message"] == "1 task deleted successfully"

    empty = client.post("/api/v1/tasks/bulk-delete", json={"task_ids": []})
    assert empty.status_code == 422
    assert empty.json()["message"] == "At least one task ID is required"


def test_users_do_not_see_each_others_personal_tasks(make_client):
    alice = make_client()
    bob = make_client()
    sign_in(alice, "alice@example.com", name="Alice")
    sign_in(bob, "bob@example.com", name="Bob")

    task_id = _create(alice, title="secret")["data"]["id"]

    assert bob.get("/api/v1/tasks").json()["total"] == 0
    assert bob.get(f"/api/v1/tasks/{task_id}").status_code == 404
    assert bob.delete(f"/api/v1/tasks/{task_id}").status_code == 404


def test_projects_group_tasks(signed_in):
    client, _ = signed_in
    created = client.post("/api/v1/projects", json={"name": "Website", "color": "#112233"})
    assert created.status_code == 201
    project = created.json()["data"]

    task = _create(client, title="Landing page", project_id=project["id"])["data"]
    assert task["project"] == {"id": project["id"], "name": "Website", "color": "#112233"}
    assert [p["name"] for p in client.get("/api/v1/projects").json()] == ["Website"]

    bad = client.post("/api/v1/projects", json={"name": "x", "color": "red"})
    assert bad.status_code == 422


def test_bearer_tokens_authenticate_the_same_api(client):
    client.post("/api/v1/auth/email-otp/send", json={"email": "api@example.com"})
    tokens = client.post("/api/v1/auth/token", json={"email": "api@example.com", "otp": "123456"})
    assert tokens.status_code == 200
    access = tokens.json()["access_token"]

    client.cookies.clear()
    headers = {"Authorization": f"Bearer {access}"}
    created = client.post("/api/v1/tasks", json={"title": "via token"}, headers=headers)
    assert created.status_code == 201
    assert client.get("/api/v1/tasks", headers=headers).json()["total"] == 1


def test_mutations_push_refresh_to_subscribers(signed_in):
    client, _ = signed_in
    with client.websocket_connect("/__realtime?key=/tasks") as socket:
        assert socket.receive_json() == {"type": "subscribed", "key": "/tasks"}
        _create(client, title="live")
        assert socket.receive_json() == {"type": "refresh", "key": "/tasks"}


def test_realtime_rejects_unknown_keys(client):
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/__realtime?key=/secrets") as socket:
            socket.receive_json()
    assert excinfo.value.code == 1008
