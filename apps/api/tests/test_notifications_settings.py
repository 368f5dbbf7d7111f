"""
Notification and settings endpoint tests.
"""
import pytest
from fastapi.testclient import TestClient

from main import app
from models import DEFAULT_SETTINGS

client = TestClient(app)


@pytest.fixture
def user_headers(make_user, auth_headers):
    return auth_headers(make_user(first_name="Nia", email="nia@example.com"))


@pytest.fixture
def other_headers(make_user, auth_headers):
    return auth_headers(make_user(first_name="Omar", email="omar@example.com"))


def _notify(headers, title="Heads up", **extra):
    response = client.post("/notifications", json={"title": title, "message": "Something happened", **extra},
                           headers=headers)
    assert response.status_code == 201
    return response.json()


class TestNotifications:
    def test_create_defaults(self, user_headers):
        created = _notify(user_headers)
        assert created["type"] == "info"
        assert created["is_read"] is False

    def test_title_required(self, user_headers):
        response = client.post("/notifications", json={"message": "x"}, headers=user_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "title is required"

    def test_list_newest_first_and_scoped(self, user_headers, other_headers):
        first = _notify(user_headers, title="one")
        second = _notify(user_headers, title="two")
        _notify(other_headers, title="not yours")

        ids = [n["id"] for n in client.get("/notifications", headers=user_headers).json()]
        assert ids == [second["id"], first["id"]]

    def test_mark_read_and_unread_filter(self, user_headers):
        read = _notify(user_headers, title="read me")
        unread = _notify(user_headers, title="later")

        response = client.put(f"/notifications/{read['id']}/read", headers=user_headers)
        assert response.status_code == 200
        assert response.json()["is_read"] is True

        listed = client.get("/notifications", params={"unread_only": True}, headers=user_headers).json()
        assert [n["id"] for n in listed] == [unread["id"]]

    def test_limit_and_offset(self, user_headers):
        for i in range(3):
            _notify(user_headers, title=f"n{i}")
        page = client.get("/notifications", params={"limit": 1, "offset": 1}, headers=user_headers).json()
        assert [n["title"] for n in page] == ["n1"]

    def test_other_users_notification_is_404(self, user_headers, other_headers):
        created = _notify(user_headers)
        assert client.put(f"/notifications/{created['id']}/read", headers=other_headers).status_code == 404
        assert client.delete(f"/notifications/{created['id']}", headers=other_headers).status_code == 404

    def test_delete(self, user_headers):
        created = _notify(user_headers)
        assert client.delete(f"/notifications/{created['id']}", headers=user_headers).status_code == 200
        assert client.get("/notifications", headers=user_headers).json() == []


class TestSettings:
    def test_defaults_seeded(self, user_headers):
        settings = client.get("/settings", headers=user_headers).json()
        assert {s["key"] for s in settings} == {key for key, _, _ in DEFAULT_SETTINGS}

    def test_update(self, user_headers):
        response = client.put("/settings/max_progress_display", json={"value": " 50 "}, headers=user_headers)
        assert response.status_code == 200
        assert response.json()["value"] == "50"

    def test_update_requires_value(self, user_headers):
        for body in ({}, {"value": ""}, {"value": "  "}):
            response = client.put("/settings/max_progress_display", json=body, headers=user_headers)
            assert response.status_code == 400
            assert response.json()["detail"] == "Setting value is required"

    def test_unknown_key_is_404(self, user_headers):
        response = client.put("/settings/not_a_setting", json={"value": "1"}, headers=user_headers)
        assert response.status_code == 404


class TestMetrics:
    def test_counts(self, user_headers, other_headers):
        client.post("/progress", json={
            "category": "cardio", "metric": "distance", "value": 5, "date": "2026-03-01",
        }, headers=user_headers)

        metrics = client.get("/settings/metrics", headers=user_headers).json()
        assert metrics == {"total_users": 2, "total_progress": 1, "active_users": 1}
