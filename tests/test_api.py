import pytest
from fastapi import WebSocketDisconnect

PASSWORD = "ab12!@"

def register_reporter(client, name="Rana", email="rana@example.com"):
    response = client.post("/auth/register", json={"name": name, "email": email, "password": PASSWORD})
    assert response.status_code == 201
    return response.json()

def login(client, email, entry="reporter"):
    response = client.post(f"/auth/login/{entry}", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()

def auth(token):
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def manager_token(client, accounts_in_app):
    accounts_in_app.provision("Maya", "maya@example.com", PASSWORD, "manager")
    return login(client, "maya@example.com", "staff")["token"]

@pytest.fixture
def accounts_in_app(client):
    from app.core.permissions import Role
    from app.services.account_service import AccountService

    service = AccountService(client.app.state.store, client.app.state.identity)

    class Provisioner:
        def provision(self, name, email, password, role):
            return service.provision(name, email, password, Role(role))

    return Provisioner()

def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["database"] == "ok"
    assert "X-Request-ID" in response.headers

def test_register_and_login(client):
    account = register_reporter(client)
    assert account["role"] == "reporter"

    session = login(client, "rana@example.com")
    assert session["route"] == "/dashboard"
    assert session["account"]["id"] == account["id"]

    me = client.get("/auth/me", headers=auth(session["token"]))
    assert me.status_code == 200
    assert me.json()["email"] == "rana@example.com"

def test_register_weak_password(client):
    response = client.post("/auth/register", json={"name": "Rana", "email": "rana@example.com", "password": "abc123"})
    assert response.status_code == 400
    assert "special character" in response.json()["detail"]

def test_register_duplicate_email(client):
    register_reporter(client)
    response = client.post("/auth/register", json={"name": "Other", "email": "rana@example.com", "password": PASSWORD})
    assert response.status_code == 401

def test_reporter_cannot_use_staff_entry(client):
    register_reporter(client)
    response = client.post("/auth/login/staff", json={"email": "rana@example.com", "password": PASSWORD})
    assert response.status_code == 403
    assert response.json()["detail"] == "Unauthorized role."

def test_requests_without_session(client):
    assert client.post("/breakdowns", json={"message": "pump leaking"}).status_code == 401
    assert client.get("/views").status_code == 401

def test_logout_ends_session(client):
    register_reporter(client)
    token = login(client, "rana@example.com")["token"]

    assert client.post("/auth/logout", headers=auth(token)).status_code == 204
    assert client.get("/auth/me", headers=auth(token)).status_code == 401

def test_breakdown_workflow(client, accounts_in_app, manager_token):
    register_reporter(client)
    reporter_token = login(client, "rana@example.com")["token"]
    technician = accounts_in_app.provision("Tariq", "tariq@example.com", PASSWORD, "technician")
    technician_session = login(client, "tariq@example.com", "staff")
    assert technician_session["route"] == "/tech-dashboard"
    technician_token = technician_session["token"]

    # Reporter files a report
    created = client.post("/breakdowns", json={"message": "pump leaking"}, headers=auth(reporter_token))
    assert created.status_code == 201
    report = created.json()
    assert report["status"] == "pending"
    assert report["reporterName"] == "Rana"

    reporter_view = client.get("/views", headers=auth(reporter_token)).json()
    assert len(reporter_view["items"]) == 1
    assert reporter_view["items"][0]["status"] == "pending"

    # Reporters may not assign
    forbidden = client.post(f"/breakdowns/{report['id']}/assign", json={"technician_id": technician["id"]}, headers=auth(reporter_token))
    assert forbidden.status_code == 403

    # Manager picks the technician
    technicians = client.get("/users/technicians", headers=auth(manager_token)).json()
    assert [t["name"] for t in technicians] == ["Tariq"]
    assigned = client.post(f"/breakdowns/{report['id']}/assign", json={"technician_id": technician["id"]}, headers=auth(manager_token))
    assert assigned.status_code == 200
    assert assigned.json()["status"] == "assigned"
    assert assigned.json()["assignedTechnician"] == {"name": "Tariq", "email": "tariq@example.com"}

    # Second assignment of the same report conflicts
    again = client.post(f"/breakdowns/{report['id']}/assign", json={"technician_id": technician["id"]}, headers=auth(manager_token))
    assert again.status_code == 409

    tech_view = client.get("/views", headers=auth(technician_token)).json()
    assert [t["id"] for t in tech_view["items"]] == [report["id"]]

    # Technician resolves
    empty = client.post(f"/breakdowns/{report['id']}/resolve", json={"fix_details": "  "}, headers=auth(technician_token))
    assert empty.status_code == 400
    resolved = client.post(f"/breakdowns/{report['id']}/resolve", json={"fix_details": "replaced seal"}, headers=auth(technician_token))
    assert resolved.status_code == 200
    assert resolved.json()["status"] == "resolved"
    assert resolved.json()["fixDetails"] == "replaced seal"
    assert resolved.json()["timestamps"]["created"] == report["timestamps"]["created"]

    tech_view = client.get("/views", headers=auth(technician_token)).json()
    assert tech_view["summary"]["assigned"] == 0
    assert tech_view["summary"]["resolved"] == 1

    manager_view = client.get("/views?status=resolved", headers=auth(manager_token)).json()
    assert [r["id"] for r in manager_view["items"]] == [report["id"]]
    assert manager_view["technicians"][0]["name"] == "Tariq"

def test_assign_without_technician(client, manager_token):
    register_reporter(client)
    reporter_token = login(client, "rana@example.com")["token"]
    report = client.post("/breakdowns", json={"message": "pump leaking"}, headers=auth(reporter_token)).json()

    response = client.post(f"/breakdowns/{report['id']}/assign", json={}, headers=auth(manager_token))
    assert response.status_code == 400
    assert response.json()["detail"] == "Please select a technician!"

def test_assign_unknown_technician(client, manager_token):
    register_reporter(client)
    reporter_token = login(client, "rana@example.com")["token"]
    report = client.post("/breakdowns", json={"message": "pump leaking"}, headers=auth(reporter_token)).json()

    response = client.post(f"/breakdowns/{report['id']}/assign", json={"technician_id": "no-such-user"}, headers=auth(manager_token))
    assert response.status_code == 404
    assert response.json()["detail"] == "User not found"

def test_only_assigned_technician_starts_work(client, accounts_in_app, manager_token):
    register_reporter(client)
    reporter_token = login(client, "rana@example.com")["token"]
    tariq = accounts_in_app.provision("Tariq", "tariq@example.com", PASSWORD, "technician")
    accounts_in_app.provision("Lina", "lina@example.com", PASSWORD, "technician")
    tariq_token = login(client, "tariq@example.com", "staff")["token"]
    lina_token = login(client, "lina@example.com", "staff")["token"]

    report = client.post("/breakdowns", json={"message": "pump leaking"}, headers=auth(reporter_token)).json()
    client.post(f"/breakdowns/{report['id']}/assign", json={"technician_id": tariq["id"]}, headers=auth(manager_token))

    denied = client.post(f"/breakdowns/{report['id']}/start", headers=auth(lina_token))
    assert denied.status_code == 403
    assert client.get(f"/breakdowns/{report['id']}", headers=auth(lina_token)).json()["status"] == "assigned"

    started = client.post(f"/breakdowns/{report['id']}/start", headers=auth(tariq_token))
    assert started.status_code == 200
    assert started.json()["status"] == "in-progress"

def test_edit_and_delete(client, manager_token):
    register_reporter(client)
    reporter_token = login(client, "rana@example.com")["token"]
    report = client.post("/breakdowns", json={"message": "pump leaking"}, headers=auth(reporter_token)).json()

    edited = client.patch(f"/breakdowns/{report['id']}", json={"message": "pump leaking badly"}, headers=auth(manager_token))
    assert edited.status_code == 200
    assert edited.json()["message"] == "pump leaking badly"
    assert edited.json()["timestamps"]["created"] == report["timestamps"]["created"]
    assert edited.json()["timestamps"]["updated"] > report["timestamps"]["updated"]

    missing = client.patch("/breakdowns/nope", json={"message": "x"}, headers=auth(reporter_token))
    assert missing.status_code == 404

    assert client.delete(f"/breakdowns/{report['id']}", headers=auth(reporter_token)).status_code == 204
    assert client.delete(f"/breakdowns/{report['id']}", headers=auth(reporter_token)).status_code == 204
    assert client.get(f"/breakdowns/{report['id']}", headers=auth(reporter_token)).status_code == 404

def test_user_management(client, manager_token):
    created = client.post(
        "/users",
        json={"name": "Tariq", "email": "tariq@example.com", "password": PASSWORD, "role": "technician"},
        headers=auth(manager_token),
    )
    assert created.status_code == 201
    technician = created.json()

    users = client.get("/users", headers=auth(manager_token)).json()
    assert {u["email"] for u in users} == {"maya@example.com", "tariq@example.com"}

    assert client.delete(f"/users/{technician['id']}", headers=auth(manager_token)).status_code == 204
    assert client.post("/auth/login/staff", json={"email": "tariq@example.com", "password": PASSWORD}).status_code == 401

def test_reporter_cannot_manage_users(client):
    register_reporter(client)
    token = login(client, "rana@example.com")["token"]
    response = client.post(
        "/users",
        json={"name": "Tariq", "email": "tariq@example.com", "password": PASSWORD, "role": "technician"},
        headers=auth(token),
    )
    assert response.status_code == 403

def test_view_stream_pushes_every_change(client):
    register_reporter(client)
    token = login(client, "rana@example.com")["token"]

    with client.websocket_connect(f"/views/ws?token={token}") as websocket:
        initial = websocket.receive_json()
        assert initial["type"] == "snapshot"
        assert initial["items"] == []

        client.post("/breakdowns", json={"message": "pump leaking"}, headers=auth(token))
        update = websocket.receive_json()
        assert [r["message"] for r in update["items"]] == ["pump leaking"]

        client.post("/auth/logout", headers=auth(token))
        with pytest.raises(WebSocketDisconnect) as exc:
            websocket.receive_json()
        assert exc.value.code == 4001

def test_view_stream_answers_binary_frames_with_error(client):
    register_reporter(client)
    token = login(client, "rana@example.com")["token"]

    with client.websocket_connect(f"/views/ws?token={token}") as websocket:
        assert websocket.receive_json()["type"] == "snapshot"

        websocket.send_bytes(b"\x00\x01")
        assert websocket.receive_json()["type"] == "error"

        # Stream keeps working afterwards
        client.post("/breakdowns", json={"message": "pump leaking"}, headers=auth(token))
        assert [r["message"] for r in websocket.receive_json()["items"]] == ["pump leaking"]

def test_view_stream_rejects_bad_token(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/views/ws?token=garbage") as websocket:
            websocket.receive_json()
