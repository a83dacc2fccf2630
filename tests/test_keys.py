from datetime import timedelta

import pytest

from access_core.models import utcnow

KEY_PAYLOAD = {
    "key_name": "Server Room",
    "key_number": "K001",
    "area": "Building A",
    "access_level": "Medium",
    "location": "Key cabinet 1",
}


@pytest.fixture
def create_key(client, admin):
    def _create(**overrides):
        payload = dict(KEY_PAYLOAD, **overrides)
        response = client.post("/api/keys", json=payload, headers=admin["headers"])
        assert response.status_code == 201, response.get_json()
        return response.get_json()["data"]

    return _create


def test_checkout_and_return_scenario(client, create_key, employee):
    key = create_key()
    assert key["status"] == "available"
    assert key["assigned_to"] is None

    checkout = client.post(f"/api/keys/{key['id']}/checkout", headers=employee["headers"])
    assert checkout.status_code == 200
    checked_out = checkout.get_json()["data"]
    assert checked_out["status"] == "checked-out"
    assert checked_out["assigned_to"]["id"] == employee["id"]
    assert checked_out["checkout_time"] is not None
    assert checked_out["return_time"] is None

    again = client.post(f"/api/keys/{key['id']}/checkout", headers=employee["headers"])
    assert again.status_code == 400
    assert again.get_json()["error"] == "Key is not available for checkout"

    returned = client.post(f"/api/keys/{key['id']}/return", headers=employee["headers"])
    assert returned.status_code == 200
    data = returned.get_json()["data"]
    assert data["status"] == "available"
    assert data["assigned_to"] is None
    assert data["assigned_to_id"] is None
    assert data["return_time"] is not None

    twice = client.post(f"/api/keys/{key['id']}/return", headers=employee["headers"])
    assert twice.status_code == 400
    assert twice.get_json()["error"] == "Key is not checked out"


def test_delete_forbidden_while_checked_out(client, create_key, admin):
    key = create_key()
    client.post(f"/api/keys/{key['id']}/checkout", headers=admin["headers"])

    blocked = client.delete(f"/api/keys/{key['id']}", headers=admin["headers"])
    assert blocked.status_code == 400
    assert blocked.get_json()["error"] == "Cannot delete a checked-out key"

    client.post(f"/api/keys/{key['id']}/return", headers=admin["headers"])
    deleted = client.delete(f"/api/keys/{key['id']}", headers=admin["headers"])
    assert deleted.status_code == 200
    assert client.get(f"/api/keys/{key['id']}", headers=admin["headers"]).status_code == 404


def test_only_admin_or_security_manage_keys(client, employee, reception, security):
    assert client.post("/api/keys", json=KEY_PAYLOAD, headers=employee["headers"]).status_code == 403
    assert client.post("/api/keys", json=KEY_PAYLOAD, headers=reception["headers"]).status_code == 403

    created = client.post("/api/keys", json=KEY_PAYLOAD, headers=security["headers"])
    assert created.status_code == 201
    key_id = created.get_json()["data"]["id"]

    update = client.put(f"/api/keys/{key_id}", json={"area": "B"}, headers=employee["headers"])
    delete = client.delete(f"/api/keys/{key_id}", headers=employee["headers"])
    assert update.status_code == 403
    assert delete.status_code == 403


def test_duplicate_key_number(client, create_key, admin):
    create_key()

    response = client.post("/api/keys", json=KEY_PAYLOAD, headers=admin["headers"])

    assert response.status_code == 400
    assert response.get_json()["error"] == "key_number already exists"


def test_update_cannot_touch_custody_fields(client, create_key, admin, employee):
    key = create_key()

    status_change = client.put(
        f"/api/keys/{key['id']}", json={"status": "checked-out"}, headers=admin["headers"]
    )
    assignee_change = client.put(
        f"/api/keys/{key['id']}", json={"assigned_to_id": employee["id"]}, headers=admin["headers"]
    )
    rename = client.put(
        f"/api/keys/{key['id']}", json={"key_name": "Main Server Room"}, headers=admin["headers"]
    )

    assert status_change.status_code == 400
    assert assignee_change.status_code == 400
    assert rename.status_code == 200
    assert rename.get_json()["data"]["key_name"] == "Main Server Room"
    assert rename.get_json()["data"]["status"] == "available"


def test_authorized_roles_gate_checkout(client, create_key, employee, security):
    key = create_key(authorized_roles=["Security"])

    denied = client.post(f"/api/keys/{key['id']}/checkout", headers=employee["headers"])
    allowed = client.post(f"/api/keys/{key['id']}/checkout", headers=security["headers"])

    assert denied.status_code == 403
    assert denied.get_json()["error"] == "You are not authorized to checkout this key"
    assert allowed.status_code == 200


def test_assigning_to_another_user(client, create_key, admin, employee, reception):
    key = create_key()
    other_key = create_key(key_number="K002")

    by_admin = client.post(
        f"/api/keys/{key['id']}/checkout",
        json={"assigned_to": employee["id"]},
        headers=admin["headers"],
    )
    by_reception = client.post(
        f"/api/keys/{other_key['id']}/checkout",
        json={"assigned_to": employee["id"]},
        headers=reception["headers"],
    )
    to_nobody = client.post(
        f"/api/keys/{other_key['id']}/checkout",
        json={"assigned_to": 9999},
        headers=admin["headers"],
    )

    assert by_admin.status_code == 200
    assert by_admin.get_json()["data"]["assigned_to"]["id"] == employee["id"]
    assert by_reception.status_code == 403
    assert to_nobody.status_code == 400
    assert to_nobody.get_json()["error"] == "Assigned user not found"


def test_high_access_checkout_alerts_security(client, create_key, employee, security, sent_emails):
    key = create_key(access_level="High")

    client.post(f"/api/keys/{key['id']}/checkout", headers=employee["headers"])

    alerts = [email for email in sent_emails if email["subject"] == "Key Checkout Alert"]
    assert [email["to"] for email in alerts] == [security["email"]]
    assert "Eve Employee has checked out the Server Room (K001) key" in alerts[0]["body"]


def test_low_access_checkout_sends_no_alert(client, create_key, employee, security, sent_emails):
    key = create_key(access_level="Low")

    client.post(f"/api/keys/{key['id']}/checkout", headers=employee["headers"])

    assert not [email for email in sent_emails if email["subject"] == "Key Checkout Alert"]


def test_return_notifies_previous_holder(client, create_key, admin, employee, sent_emails):
    key = create_key()
    client.post(
        f"/api/keys/{key['id']}/checkout",
        json={"assigned_to": employee["id"]},
        headers=admin["headers"],
    )

    client.post(f"/api/keys/{key['id']}/return", headers=admin["headers"])

    returns = [email for email in sent_emails if email["subject"] == "Key Return Notification"]
    assert [email["to"] for email in returns] == [employee["email"]]


def test_filtered_listings(client, create_key, employee, admin):
    first = create_key(key_name="Archive", key_number="K010", access_level="Critical")
    create_key(key_name="Lobby", key_number="K011", access_level="Low")
    client.post(f"/api/keys/{first['id']}/checkout", headers=employee["headers"])

    everything = client.get("/api/keys", headers=employee["headers"]).get_json()["data"]
    checked_out = client.get("/api/keys/status/checked-out", headers=employee["headers"])
    assigned = client.get(f"/api/keys/assigned/{employee['id']}", headers=employee["headers"])
    critical = client.get("/api/keys/access-level/Critical", headers=employee["headers"])

    assert [key["key_name"] for key in everything] == ["Archive", "Lobby"]
    assert [key["key_number"] for key in checked_out.get_json()["data"]] == ["K010"]
    assert [key["key_number"] for key in assigned.get_json()["data"]] == ["K010"]
    assert [key["key_number"] for key in critical.get_json()["data"]] == ["K010"]
    assert client.get("/api/keys/status/lost", headers=admin["headers"]).status_code == 400
    assert client.get("/api/keys/access-level/Top", headers=admin["headers"]).status_code == 400


class TestOverdueKeys:
    def test_overdue_listing(self, client, create_key, admin, employee):
        late = create_key(key_number="K020")
        on_time = create_key(key_number="K021")
        past = (utcnow() - timedelta(hours=2)).isoformat()
        future = (utcnow() + timedelta(days=1)).isoformat()
        client.post(
            f"/api/keys/{late['id']}/checkout",
            json={"expected_return_time": past},
            headers=employee["headers"],
        )
        client.post(
            f"/api/keys/{on_time['id']}/checkout",
            json={"expected_return_time": future},
            headers=employee["headers"],
        )

        response = client.get("/api/keys/overdue", headers=admin["headers"])

        assert response.status_code == 200
        assert [key["key_number"] for key in response.get_json()["data"]] == ["K020"]
        assert client.get("/api/keys/overdue", headers=employee["headers"]).status_code == 403

    def test_overdue_notifications(self, client, create_key, security, employee, sent_emails):
        late = create_key(key_number="K020")
        past = (utcnow() - timedelta(hours=2)).isoformat()
        client.post(
            f"/api/keys/{late['id']}/checkout",
            json={"expected_return_time": past},
            headers=employee["headers"],
        )

        response = client.post("/api/keys/overdue/notify", headers=security["headers"])

        assert response.status_code == 200
        assert response.get_json()["data"] == {"notifications_sent": 2}
        overdue = [email for email in sent_emails if email["subject"] == "Key Overdue Alert"]
        assert sorted(email["to"] for email in overdue) == sorted(
            [employee["email"], security["email"]]
        )
