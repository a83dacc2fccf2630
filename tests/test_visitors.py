import io

import pytest
from botocore.exceptions import ClientError

from access_core.constants import MAX_PHOTO_BYTES, NEGATIVE_SENTIMENT_CONCERN
from access_core.db import get_session
from access_core.models import Visitor


@pytest.fixture
def visitor_payload(employee):
    return {
        "name": "Victor Visitor",
        "company": "Globex",
        "email": "Victor@Globex.com",
        "phone": "+44 20 7946 0000",
        "host_id": employee["id"],
        "purpose": "Quarterly review",
        "visit_date": "2030-05-01T14:30:00Z",
    }


@pytest.fixture
def visitor(client, reception, visitor_payload):
    response = client.post("/api/visitors", json=visitor_payload, headers=reception["headers"])
    assert response.status_code == 201, response.get_json()
    return response.get_json()["data"]


def test_visitors_require_auth(client):
    assert client.get("/api/visitors").status_code == 401


def test_create_visitor_notifies_host(visitor, employee, sent_emails):
    assert visitor["status"] == "pre-registered"
    assert visitor["email"] == "victor@globex.com"
    assert visitor["visit_date"] == "2030-05-01T14:30:00"
    assert visitor["host"] == {
        "id": employee["id"],
        "name": "Eve Employee",
        "email": employee["email"],
        "department": None,
    }
    assert visitor["ai_analysis"] == {
        "sentiment": None,
        "security_concerns": [],
        "watchlist_match": False,
    }

    requests = [e for e in sent_emails if e["subject"] == "Visitor Approval Request"]
    assert [e["to"] for e in requests] == [employee["email"]]
    assert "Victor Visitor from Globex has requested a visit on 2030-05-01 at 14:30:00" in (
        requests[0]["body"]
    )


def test_visitor_pii_is_encrypted_at_rest(visitor):
    with get_session() as session:
        stored = session.get(Visitor, visitor["id"])
        assert stored.name_encrypted != "Victor Visitor"
        assert stored.email_encrypted != "victor@globex.com"
        assert stored.name == "Victor Visitor"


def test_unknown_host(client, reception, visitor_payload):
    visitor_payload["host_id"] = 9999

    response = client.post("/api/visitors", json=visitor_payload, headers=reception["headers"])

    assert response.status_code == 400
    assert response.get_json()["error"] == "Host user not found"


def test_negative_notes_are_flagged(client, reception, visitor_payload, comprehend):
    comprehend.response = {
        "Sentiment": "NEGATIVE",
        "SentimentScore": {"Positive": 0.01, "Negative": 0.92, "Neutral": 0.05, "Mixed": 0.02},
    }
    visitor_payload["notes"] = "Was aggressive with staff during the last visit"

    response = client.post("/api/visitors", json=visitor_payload, headers=reception["headers"])

    assert response.status_code == 201
    analysis = response.get_json()["data"]["ai_analysis"]
    assert analysis["sentiment"]["Sentiment"] == "NEGATIVE"
    assert analysis["security_concerns"] == [NEGATIVE_SENTIMENT_CONCERN]
    assert comprehend.calls[0]["LanguageCode"] == "en"


def test_mildly_negative_notes_are_not_flagged(client, reception, visitor_payload, comprehend):
    comprehend.response = {
        "Sentiment": "NEGATIVE",
        "SentimentScore": {"Positive": 0.2, "Negative": 0.6, "Neutral": 0.2, "Mixed": 0.0},
    }
    visitor_payload["notes"] = "Arrived late last time"

    response = client.post("/api/visitors", json=visitor_payload, headers=reception["headers"])

    assert response.get_json()["data"]["ai_analysis"]["security_concerns"] == []


def test_sentiment_failure_does_not_block_creation(client, reception, visitor_payload, comprehend):
    comprehend.error = RuntimeError("comprehend unavailable")
    visitor_payload["notes"] = "Bringing demo hardware"

    response = client.post("/api/visitors", json=visitor_payload, headers=reception["headers"])

    assert response.status_code == 201
    assert response.get_json()["data"]["ai_analysis"]["sentiment"] is None


def test_check_in_and_out(client, visitor, reception, employee, sent_emails):
    checked_in = client.post(f"/api/visitors/{visitor['id']}/check-in", headers=reception["headers"])
    assert checked_in.status_code == 200
    assert checked_in.get_json()["data"]["status"] == "checked-in"
    assert checked_in.get_json()["data"]["check_in_time"] is not None

    checked_out = client.post(
        f"/api/visitors/{visitor['id']}/check-out", headers=reception["headers"]
    )
    assert checked_out.status_code == 200
    data = checked_out.get_json()["data"]
    assert data["status"] == "checked-out"
    assert data["check_out_time"] is not None

    subjects = [e["subject"] for e in sent_emails if e["to"] == employee["email"]]
    assert "Visitor Arrival Notification" in subjects
    assert "Visitor Checkout Notification" in subjects


def test_check_in_is_permissive(client, visitor, reception):
    client.post(f"/api/visitors/{visitor['id']}/check-out", headers=reception["headers"])

    response = client.post(f"/api/visitors/{visitor['id']}/check-in", headers=reception["headers"])

    assert response.status_code == 200
    assert response.get_json()["data"]["status"] == "checked-in"


def test_update_status_limited_to_approval_states(client, visitor, reception):
    approved = client.put(
        f"/api/visitors/{visitor['id']}", json={"status": "approved"}, headers=reception["headers"]
    )
    checked_in = client.put(
        f"/api/visitors/{visitor['id']}", json={"status": "checked-in"}, headers=reception["headers"]
    )

    assert approved.status_code == 200
    assert approved.get_json()["data"]["status"] == "approved"
    assert checked_in.status_code == 400


def test_update_rejects_check_in_time(client, visitor, reception):
    response = client.put(
        f"/api/visitors/{visitor['id']}",
        json={"check_in_time": "2030-05-01T15:00:00"},
        headers=reception["headers"],
    )

    assert response.status_code == 400


def test_list_sorted_by_visit_date_desc(client, visitor, reception, visitor_payload):
    later = dict(visitor_payload, name="Later Visitor", visit_date="2031-01-01T09:00:00")
    client.post("/api/visitors", json=later, headers=reception["headers"])

    names = [v["name"] for v in client.get("/api/visitors", headers=reception["headers"]).get_json()["data"]]

    assert names == ["Later Visitor", "Victor Visitor"]


def test_delete_visitor(client, visitor, reception):
    assert client.delete(f"/api/visitors/{visitor['id']}", headers=reception["headers"]).status_code == 200
    assert client.get(f"/api/visitors/{visitor['id']}", headers=reception["headers"]).status_code == 404


class TestPhotoScreening:
    def test_missing_photo(self, client, reception):
        response = client.post(
            "/api/visitors/analyze-photo",
            data={},
            content_type="multipart/form-data",
            headers=reception["headers"],
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "No photo uploaded"

    def test_non_image_upload(self, client, reception):
        response = client.post(
            "/api/visitors/analyze-photo",
            data={"photo": (io.BytesIO(b"plain text"), "notes.txt", "text/plain")},
            content_type="multipart/form-data",
            headers=reception["headers"],
        )

        assert response.status_code == 400
        assert response.get_json()["error"] == "Only image files are allowed"

    def test_analyze_photo(self, client, reception, rekognition):
        rekognition.faces = [{"Confidence": 99.1}, {"Confidence": 97.4}]

        response = client.post(
            "/api/visitors/analyze-photo",
            data={"photo": (io.BytesIO(b"\x89PNG fake image"), "face.png", "image/png")},
            content_type="multipart/form-data",
            headers=reception["headers"],
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["faces_detected"] == 2
        assert len(data["analysis"]) == 2

    def test_analyze_photo_remote_failure(self, client, reception, rekognition):
        rekognition.error = ClientError(
            {"Error": {"Code": "InvalidImageFormatException", "Message": "bad image"}},
            "DetectFaces",
        )

        response = client.post(
            "/api/visitors/analyze-photo",
            data={"photo": (io.BytesIO(b"\x89PNG fake image"), "face.png", "image/png")},
            content_type="multipart/form-data",
            headers=reception["headers"],
        )

        assert response.status_code == 500
        assert response.get_json()["error"] == "Error analyzing photo"

    def test_check_watchlist(self, client, reception):
        response = client.post(
            "/api/visitors/check-watchlist",
            data={"photo": (io.BytesIO(b"\xff\xd8 fake jpeg"), "face.jpg", "image/jpeg")},
            content_type="multipart/form-data",
            headers=reception["headers"],
        )

        assert response.status_code == 200
        assert response.get_json()["data"] == {"watchlist_match": False, "confidence": 0.05}

    def test_oversized_upload(self, client, reception):
        payload = io.BytesIO(b"\x00" * (MAX_PHOTO_BYTES + 1024))

        response = client.post(
            "/api/visitors/analyze-photo",
            data={"photo": (payload, "huge.png", "image/png")},
            content_type="multipart/form-data",
            headers=reception["headers"],
        )

        assert response.status_code == 413
