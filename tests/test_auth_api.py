import jwt
import pytest

from citywatch.utils.auth import JWT_ALGORITHM, has_permission
from conftest import SECRET


def register(client, email="ana@example.com", password="s3cret-pass", name="Ana", role="citizen", headers=None):
    return client.post("/api/auth/register", json={
        "email": email, "password": password, "name": name, "role": role,
    }, headers=headers)


def test_register_returns_token_and_user(client, db, auth_headers):
    resp = register(client, role="responder", headers=auth_headers("admin"))
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["role"] == "responder"
    assert "password" not in body["user"]

    claims = jwt.decode(body["token"], SECRET, algorithms=[JWT_ALGORITHM])
    assert claims["userId"] == body["user"]["id"]
    assert claims["role"] == "responder"
    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600

    stored = db.users.find_one({"email": "ana@example.com"})
    assert stored["password"] != "s3cret-pass"


def test_register_duplicate_email(client, db):
    register(client)
    resp = register(client, email="ANA@example.com")
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "User already exists"
    assert db.users.count_documents({}) == 1


@pytest.mark.parametrize("overrides", [
    {"email": ""},
    {"email": "not-an-email"},
    {"password": ""},
    {"role": "superuser"},
])
def test_register_validation(client, overrides):
    body = {"email": "ana@example.com", "password": "pw", "name": "Ana", "role": "citizen"}
    body.update(overrides)
    assert client.post("/api/auth/register", json=body).status_code == 400


def test_register_defaults_role_to_citizen(client):
    resp = client.post("/api/auth/register", json={"email": "bo@example.com", "password": "pw"})
    assert resp.get_json()["user"]["role"] == "citizen"


def test_self_registration_cannot_pick_a_privileged_role(client, db, auth_headers, incident_payload):
    assert register(client, role="admin").status_code == 401
    resp = register(client, role="admin", headers=auth_headers("responder"))
    assert resp.status_code == 403
    assert db.users.count_documents({}) == 0

    created = client.post("/api/incidents", json=incident_payload()).get_json()
    token = register(client).get_json()["token"]
    resp = client.delete(f"/api/incidents/{created['id']}", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403


def test_privileged_registration_open_when_enforcement_disabled(db):
    from citywatch.app import create_app
    app = create_app({"ENFORCE_ROLES": False, "API_PREFIX": "/api", "JWT_SECRET": SECRET}, db=db)
    resp = register(app.test_client(), role="admin")
    assert resp.status_code == 201
    assert resp.get_json()["user"]["role"] == "admin"


def test_login(client):
    register(client)
    resp = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "s3cret-pass"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert set(body) == {"token", "user"}
    assert body["user"]["name"] == "Ana"


def test_login_failures_are_indistinguishable(client):
    register(client)
    wrong_password = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "who@example.com", "password": "nope"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.get_json() == unknown_email.get_json()


def test_issued_token_unlocks_role_gated_routes(client, incident_payload, auth_headers):
    token = register(client, role="responder", headers=auth_headers("admin")).get_json()["token"]
    created = client.post("/api/incidents", json=incident_payload()).get_json()
    resp = client.patch(
        f"/api/incidents/{created['id']}",
        json={"status": "IN_PROGRESS"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 200


def test_expired_token_rejected(client, incident_payload):
    from bson import ObjectId
    from citywatch.utils.auth import create_token

    token = create_token({"_id": ObjectId(), "email": "x@example.com", "role": "admin"}, secret=SECRET, expires_days=-1)
    created = client.post("/api/incidents", json=incident_payload()).get_json()
    resp = client.delete(f"/api/incidents/{created['id']}", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Token expired"


def test_permission_table():
    assert has_permission("citizen", "report_incident")
    assert not has_permission("citizen", "change_status")
    assert has_permission("responder", "change_status")
    assert not has_permission("responder", "manage_users")
    assert has_permission("admin", "manage_users")
    assert not has_permission(None, "view_feed")
