from sqlalchemy import select

from access_core.db import get_session
from access_core.models import User
from conftest import auth_headers, login

NEW_USER = {
    "name": "Carl Created",
    "email": "carl@example.com",
    "password": "created-by-admin",
    "role": "Reception",
    "department": "Front Desk",
}


def test_employee_cannot_list_users_but_admin_can(client, admin, employee):
    forbidden = client.get("/api/users", headers=employee["headers"])
    allowed = client.get("/api/users", headers=admin["headers"])

    assert forbidden.status_code == 403
    assert forbidden.get_json()["error"] == "Permission denied"
    assert allowed.status_code == 200
    users = allowed.get_json()["data"]
    assert [user["name"] for user in users] == ["Alice Admin", "Eve Employee"]
    for user in users:
        assert "password" not in user
        assert "password_hash" not in user


def test_admin_creates_user(client, admin):
    response = client.post("/api/users", json=NEW_USER, headers=admin["headers"])

    assert response.status_code == 201
    created = response.get_json()["data"]
    assert created["role"] == "Reception"
    assert created["status"] == "active"
    assert created["notification_preferences"] == {
        "email": True,
        "sms": False,
        "slack": False,
        "teams": False,
    }
    login(client, "carl@example.com", "created-by-admin")


def test_admin_create_duplicate_email(client, admin):
    client.post("/api/users", json=NEW_USER, headers=admin["headers"])

    response = client.post("/api/users", json=NEW_USER, headers=admin["headers"])

    assert response.status_code == 400
    assert response.get_json()["error"] == "Email already in use"


def test_non_admin_cannot_create_user(client, employee):
    response = client.post("/api/users", json=NEW_USER, headers=employee["headers"])

    assert response.status_code == 403


def test_get_user_self_or_admin(client, admin, employee):
    own = client.get(f"/api/users/{employee['id']}", headers=employee["headers"])
    other = client.get(f"/api/users/{admin['id']}", headers=employee["headers"])
    by_admin = client.get(f"/api/users/{employee['id']}", headers=admin["headers"])
    missing = client.get("/api/users/9999", headers=admin["headers"])

    assert own.status_code == 200
    assert other.status_code == 403
    assert by_admin.status_code == 200
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "User not found"


def test_only_admin_changes_roles(client, admin, employee):
    denied = client.put(
        f"/api/users/{employee['id']}", json={"role": "Admin"}, headers=employee["headers"]
    )
    allowed = client.put(
        f"/api/users/{employee['id']}", json={"role": "Security"}, headers=admin["headers"]
    )

    assert denied.status_code == 403
    assert denied.get_json()["error"] == "Only admins can change roles"
    assert allowed.status_code == 200
    assert allowed.get_json()["data"]["role"] == "Security"


def test_update_rejects_unknown_fields(client, employee):
    response = client.put(
        f"/api/users/{employee['id']}",
        json={"password_hash": "x"},
        headers=employee["headers"],
    )

    assert response.status_code == 400


def test_self_update_changes_name(client, employee):
    response = client.put(
        f"/api/users/{employee['id']}", json={"name": "Eve Renamed"}, headers=employee["headers"]
    )

    assert response.status_code == 200
    assert response.get_json()["data"]["name"] == "Eve Renamed"


def test_list_by_role_and_department(client, admin, make_user):
    make_user("Security", name="Zed Guard", email="zed@example.com", department="Ops")
    make_user("Security", name="Amy Guard", email="amy@example.com", department="Ops")

    by_role = client.get("/api/users/role/Security", headers=admin["headers"])
    by_department = client.get("/api/users/department/Ops", headers=admin["headers"])
    bad_role = client.get("/api/users/role/Janitor", headers=admin["headers"])

    assert [u["name"] for u in by_role.get_json()["data"]] == ["Amy Guard", "Zed Guard"]
    assert len(by_department.get_json()["data"]) == 2
    assert bad_role.status_code == 400


def test_admin_deletes_user(client, admin, employee):
    response = client.delete(f"/api/users/{employee['id']}", headers=admin["headers"])

    assert response.status_code == 200
    assert client.get(f"/api/users/{employee['id']}", headers=admin["headers"]).status_code == 404


class TestDeleteGuards:
    def test_key_holder_cannot_be_deleted_until_return(self, client, admin, employee):
        key = client.post(
            "/api/keys",
            json={"key_name": "Lab", "key_number": "K1", "area": "Building B"},
            headers=admin["headers"],
        ).get_json()["data"]
        client.post(f"/api/keys/{key['id']}/checkout", headers=employee["headers"])

        blocked = client.delete(f"/api/users/{employee['id']}", headers=admin["headers"])

        assert blocked.status_code == 400
        assert blocked.get_json()["error"] == "Cannot delete a user who holds a checked-out key"
        stored = client.get(f"/api/keys/{key['id']}", headers=admin["headers"]).get_json()["data"]
        assert stored["status"] == "checked-out"
        assert stored["assigned_to"]["id"] == employee["id"]

        client.post(f"/api/keys/{key['id']}/return", headers=employee["headers"])
        allowed = client.delete(f"/api/users/{employee['id']}", headers=admin["headers"])

        assert allowed.status_code == 200

    def test_host_of_active_visitor_cannot_be_deleted(self, client, admin, reception, employee):
        visitor = client.post(
            "/api/visitors",
            json={
                "name": "Victor Visitor",
                "host_id": employee["id"],
                "purpose": "Interview",
                "visit_date": "2030-05-01T14:30:00Z",
            },
            headers=reception["headers"],
        ).get_json()["data"]

        blocked = client.delete(f"/api/users/{employee['id']}", headers=admin["headers"])

        assert blocked.status_code == 400
        assert "hosting active visitors" in blocked.get_json()["error"]

        client.post(f"/api/visitors/{visitor['id']}/check-out", headers=reception["headers"])
        allowed = client.delete(f"/api/users/{employee['id']}", headers=admin["headers"])

        assert allowed.status_code == 200

    def test_recipient_of_undelivered_shipment_cannot_be_deleted(
        self, client, admin, reception, employee
    ):
        shipment = client.post(
            "/api/shipments",
            json={
                "tracking_number": "TRK-DEL-1",
                "carrier": "DHL",
                "sender": "Acme Supplies",
                "recipient_id": employee["id"],
                "type": "Package",
            },
            headers=reception["headers"],
        ).get_json()["data"]

        blocked = client.delete(f"/api/users/{employee['id']}", headers=admin["headers"])

        assert blocked.status_code == 400
        assert blocked.get_json()["error"] == "Cannot delete a user with undelivered shipments"

        client.post(f"/api/shipments/{shipment['id']}/delivered", headers=reception["headers"])
        allowed = client.delete(f"/api/users/{employee['id']}", headers=admin["headers"])

        assert allowed.status_code == 200


class TestProfile:
    def test_get_and_update_profile(self, client, employee):
        response = client.put(
            "/api/users/me/profile",
            json={"phone": "+1 555 0100", "slack_user_id": "U123"},
            headers=employee["headers"],
        )

        assert response.status_code == 200
        profile = client.get("/api/users/me/profile", headers=employee["headers"]).get_json()["data"]
        assert profile["phone"] == "+1 555 0100"
        assert profile["slack_user_id"] == "U123"
        assert profile["email"] == "employee@example.com"

    def test_phone_is_encrypted_at_rest(self, client, employee):
        client.put("/api/users/me/profile", json={"phone": "+1 555 0100"}, headers=employee["headers"])

        with get_session() as session:
            user = session.get(User, employee["id"])
            assert user.phone_encrypted not in (None, "+1 555 0100")
            assert user.name_encrypted != "Eve Employee"
            assert user.phone == "+1 555 0100"

    def test_profile_cannot_change_role(self, client, employee):
        response = client.put(
            "/api/users/me/profile", json={"role": "Admin"}, headers=employee["headers"]
        )

        assert response.status_code == 400

    def test_change_password_wrong_current(self, client, employee):
        response = client.put(
            "/api/users/me/password",
            json={"current_password": "nope-nope-nope", "new_password": "fresh-secret-42"},
            headers=employee["headers"],
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "Current password is incorrect"

    def test_change_password_revokes_other_sessions(self, client, employee):
        other_token = login(client, employee["email"])["token"]

        response = client.put(
            "/api/users/me/password",
            json={"current_password": "Sup3r-Secret!", "new_password": "fresh-secret-42"},
            headers=employee["headers"],
        )

        assert response.status_code == 200
        assert client.get("/api/auth/me", headers=employee["headers"]).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(other_token)).status_code == 401
        login(client, employee["email"], "fresh-secret-42")

    def test_notification_preferences_merge(self, client, employee):
        response = client.put(
            "/api/users/me/notifications", json={"sms": True}, headers=employee["headers"]
        )

        assert response.status_code == 200
        assert response.get_json()["data"] == {
            "email": True,
            "sms": True,
            "slack": False,
            "teams": False,
        }
        with get_session() as session:
            stored = session.execute(
                select(User.notification_preferences).where(User.id == employee["id"])
            ).scalar_one()
        assert stored["sms"] is True
