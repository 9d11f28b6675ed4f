import uuid
from datetime import datetime, timedelta


def _create(client, headers, payload, **overrides):
    response = client.post("/api/operations", json={**payload, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def _status(client, headers, op_id, status, revision=None):
    body = {"status": status}
    if revision is not None:
        body["revision"] = revision
    return client.post(f"/api/operations/{op_id}/status", json=body, headers=headers)


def _instant(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_create_and_read_back(client, admin_headers, operation_payload):
    sent = {
        **operation_payload,
        "scheduledDate": "2025-01-02T10:00:00-03:00",
        "destination": "Porto de Santos",
        "origin": "Mina Norte",
        "notes": "Lona obrigatória",
    }
    op = _create(client, admin_headers, sent)
    assert op["status"] == "scheduled"
    assert op["progress"] == 0
    assert op["revision"] == 0
    assert op["vehicle"]["plate"] == "ABC1D23"
    assert op["material"]["name"] == "Minério de ferro"

    fetched = client.get(f"/api/operations/{op['id']}", headers=admin_headers)
    assert fetched.status_code == 200
    body = fetched.json()
    for key, value in sent.items():
        if key == "scheduledDate":
            assert _instant(body[key]) == datetime.fromisoformat(value)
        else:
            assert body[key] == value, key
    assert _instant(body["createdAt"]).utcoffset() == timedelta(0)


def test_create_validation(client, admin_headers, operation_payload):
    response = client.post(
        "/api/operations", json={**operation_payload, "type": "parking", "driver": None}, headers=admin_headers
    )
    assert response.status_code == 400
    assert {e["field"] for e in response.json()["errors"]} >= {"type", "driver"}


def test_create_with_unknown_vehicle(client, admin_headers, operation_payload):
    response = client.post(
        "/api/operations", json={**operation_payload, "vehicleId": str(uuid.uuid4())}, headers=admin_headers
    )
    assert response.status_code == 404


def test_unknown_operation(client, admin_headers):
    assert client.get(f"/api/operations/{uuid.uuid4()}", headers=admin_headers).status_code == 404


def test_status_pipeline(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    transitions = client.get(f"/api/operations/{op['id']}/transitions", headers=admin_headers).json()
    assert transitions == {"status": "scheduled", "allowed": ["at_gate"]}

    for status in ("at_gate", "loading"):
        response = _status(client, admin_headers, op["id"], status)
        assert response.status_code == 200, response.text

    started = client.post(f"/api/operations/{op['id']}/start", headers=admin_headers)
    assert started.status_code == 200
    assert started.json()["actualStartTime"] is not None

    progress = client.post(f"/api/operations/{op['id']}/progress", json={"progress": 60}, headers=admin_headers)
    assert progress.json()["progress"] == 60

    assert _status(client, admin_headers, op["id"], "completed").status_code == 200
    finished = client.post(f"/api/operations/{op['id']}/finish", json={}, headers=admin_headers)
    assert finished.status_code == 200
    body = finished.json()
    assert body["status"] == "completed"
    assert body["actualEndTime"] >= body["actualStartTime"]


def test_invalid_transition(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    response = _status(client, admin_headers, op["id"], "completed")
    assert response.status_code == 409
    body = response.json()
    assert body["current"] == "scheduled"
    assert body["requested"] == "completed"
    assert body["allowed"] == ["at_gate"]


def test_stale_revision(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    assert _status(client, admin_headers, op["id"], "at_gate", revision=0).status_code == 200
    stale = _status(client, admin_headers, op["id"], "loading", revision=0)
    assert stale.status_code == 409
    current = client.get(f"/api/operations/{op['id']}", headers=admin_headers).json()
    assert (current["status"], current["revision"]) == ("at_gate", 1)


def test_progress_rules(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    url = f"/api/operations/{op['id']}/progress"
    assert client.post(url, json={"progress": 10}, headers=admin_headers).status_code == 400

    _status(client, admin_headers, op["id"], "at_gate")
    _status(client, admin_headers, op["id"], "loading")
    assert client.post(url, json={"progress": 101}, headers=admin_headers).status_code == 400
    assert client.post(url, json={"progress": 100}, headers=admin_headers).json()["progress"] == 100


def test_finish_before_start(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    client.post(f"/api/operations/{op['id']}/start", json={"at": "2024-05-10T14:00:00Z"}, headers=admin_headers)
    response = client.post(
        f"/api/operations/{op['id']}/finish", json={"at": "2024-05-10T13:00:00Z"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "actual_end_time"


def test_update_from_management_table(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    response = client.put(
        f"/api/operations/{op['id']}",
        json={"status": "at_gate", "notes": "Chegou cedo", "revision": 0},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["notes"] == "Chegou cedo"
    assert response.json()["revision"] == 1

    locked = client.put(f"/api/operations/{op['id']}", json={"type": "unloading"}, headers=admin_headers)
    assert locked.status_code == 400


def test_list_and_filter(client, admin_headers, operation_payload):
    first = _create(client, admin_headers, operation_payload)
    _create(client, admin_headers, operation_payload, type="unloading")
    _status(client, admin_headers, first["id"], "at_gate")

    everything = client.get("/api/operations", headers=admin_headers).json()
    assert len(everything) == 2
    at_gate = client.get("/api/operations", params={"status": "at_gate"}, headers=admin_headers).json()
    assert [o["id"] for o in at_gate] == [first["id"]]
    assert client.get("/api/operations", params={"status": "parked"}, headers=admin_headers).status_code == 400


def test_stats(client, admin_headers, operation_payload):
    ops = [_create(client, admin_headers, operation_payload) for _ in range(4)]
    _status(client, admin_headers, ops[2]["id"], "at_gate")
    _status(client, admin_headers, ops[3]["id"], "at_gate")
    _status(client, admin_headers, ops[3]["id"], "loading")

    response = client.get("/api/stats", headers=admin_headers)
    assert response.json() == {"scheduled": 2, "atGate": 1, "loading": 1, "unloading": 0}


def test_delete(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    response = client.delete(f"/api/operations/{op['id']}", headers=admin_headers)
    assert response.json() == {"message": "Operation deleted successfully"}
    assert client.get(f"/api/operations/{op['id']}", headers=admin_headers).status_code == 404


def test_operation_permissions(client, make_user, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    _, viewer = make_user(permissions=["dashboard:view"])
    _, floor = make_user(permissions=["dashboard:view", "dashboard:edit"])

    assert client.get("/api/operations", headers=viewer).status_code == 200
    assert client.get("/api/stats", headers=viewer).status_code == 200
    assert _status(client, viewer, op["id"], "at_gate").status_code == 403
    assert client.post("/api/operations", json=operation_payload, headers=viewer).status_code == 403

    assert _status(client, floor, op["id"], "at_gate").status_code == 200
    assert client.delete(f"/api/operations/{op['id']}", headers=floor).status_code == 403


def test_operations_require_login(client):
    assert client.get("/api/operations").status_code == 401
    assert client.get("/api/stats").status_code == 401


def test_repeated_status_with_stale_revision(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    assert _status(client, admin_headers, op["id"], "at_gate", revision=0).status_code == 200
    assert _status(client, admin_headers, op["id"], "at_gate", revision=0).status_code == 409
    assert _status(client, admin_headers, op["id"], "at_gate", revision=1).status_code == 200


def test_repeated_progress_with_stale_revision(client, admin_headers, operation_payload):
    op = _create(client, admin_headers, operation_payload)
    _status(client, admin_headers, op["id"], "at_gate")
    _status(client, admin_headers, op["id"], "loading")
    url = f"/api/operations/{op['id']}/progress"
    current = client.post(url, json={"progress": 20, "revision": 2}, headers=admin_headers).json()
    assert current["revision"] == 3
    assert client.post(url, json={"progress": 20, "revision": 2}, headers=admin_headers).status_code == 409
    assert client.post(url, json={"progress": 20, "revision": 3}, headers=admin_headers).status_code == 200
