from bson import ObjectId


def register(client, email, role="citizen", headers=None):
    resp = client.post("/api/auth/register", json={
        "email": email, "password": "pw", "name": email.split("@")[0], "role": role,
    }, headers=headers)
    return resp.get_json()["user"]


def test_list_users_hides_passwords(client, auth_headers):
    register(client, "a@example.com")
    register(client, "b@example.com", "responder", headers=auth_headers("admin"))
    resp = client.get("/api/admin/users", headers=auth_headers("admin"))
    assert resp.status_code == 200
    users = resp.get_json()
    assert {u["email"] for u in users} == {"a@example.com", "b@example.com"}
    assert all("password" not in u for u in users)


def test_admin_routes_need_admin(client, auth_headers):
    assert client.get("/api/admin/users").status_code == 401
    assert client.get("/api/admin/users", headers=auth_headers("responder")).status_code == 403
    assert client.get("/api/admin/analytics", headers=auth_headers("citizen")).status_code == 403


def test_change_role(client, db, auth_headers):
    user = register(client, "a@example.com")
    resp = client.patch(f"/api/admin/users/{user['id']}/role", json={"role": "responder"}, headers=auth_headers("admin"))
    assert resp.status_code == 200
    assert resp.get_json()["role"] == "responder"
    assert db.users.find_one({"_id": ObjectId(user["id"])})["role"] == "responder"


def test_change_role_validation(client, auth_headers):
    user = register(client, "a@example.com")
    headers = auth_headers("admin")
    assert client.patch(f"/api/admin/users/{user['id']}/role", json={"role": "king"}, headers=headers).status_code == 400
    assert client.patch(f"/api/admin/users/{ObjectId()}/role", json={"role": "admin"}, headers=headers).status_code == 404


def test_delete_user(client, db, auth_headers):
    user = register(client, "a@example.com")
    headers = auth_headers("admin")
    assert client.delete(f"/api/admin/users/{user['id']}", headers=headers).status_code == 200
    assert db.users.count_documents({}) == 0
    assert client.delete(f"/api/admin/users/{user['id']}", headers=headers).status_code == 404


def test_analytics(client, incident_payload, auth_headers):
    headers = auth_headers("admin")
    client.post("/api/incidents", json=incident_payload(type="fire"))
    client.post("/api/incidents", json=incident_payload(type="medical", severity="low", status="VERIFIED"))

    stats = client.get("/api/admin/analytics", headers=headers).get_json()
    assert stats["totalIncidents"] == 2
    assert stats["activeIncidents"] == 2
    assert stats["byType"] == {"fire": 1, "medical": 1}
    assert stats["verificationRate"] == 50
    assert stats["avgResolutionMinutes"] == 0
