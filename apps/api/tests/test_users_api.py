"""
User profile endpoint tests.
"""
import pytest
from fastapi.testclient import TestClient

from main import app
from models import Group, ProgressEntry, RefreshToken, User

client = TestClient(app)


@pytest.fixture
def me(make_user):
    return make_user(first_name="Maya", last_name="Lee", email="maya@example.com")


@pytest.fixture
def them(make_user):
    return make_user(first_name="Theo", last_name="Ng", email="theo@example.com")


class TestGetUser:
    def test_public_projection(self, me, them, auth_headers):
        response = client.get(f"/users/{them.id}", headers=auth_headers(me))
        assert response.status_code == 200
        data = response.json()
        assert data["first_name"] == "Theo"
        assert "email" not in data
        assert "password_hash" not in data
        assert "goals" not in data

    def test_missing_user_is_404(self, me, auth_headers):
        assert client.get("/users/999999", headers=auth_headers(me)).status_code == 404


class TestUpdateUser:
    def test_update_own_profile(self, me, auth_headers):
        response = client.put(f"/users/{me.id}", json={
            "first_name": "  Maya-Rose ",
            "avatar_url": "https://example.com/a.png",
        }, headers=auth_headers(me))
        assert response.status_code == 200
        data = response.json()
        assert data["first_name"] == "Maya-Rose"
        assert data["last_name"] == "Lee"
        assert data["avatar_url"] == "https://example.com/a.png"
        assert "password_hash" not in data

    def test_update_goals(self, me, auth_headers):
        goal = {"category": "Strength", "metric": "squat", "start_value": 60, "target_value": 100,
                "unit": "kg", "deadline": "2026-12-31"}
        response = client.put(f"/users/{me.id}", json={"goals": [goal]}, headers=auth_headers(me))
        assert response.status_code == 200
        saved = response.json()["goals"][0]
        assert saved["category"] == "strength"
        assert saved["deadline"] == "2026-12-31"

    def test_invalid_goal_rejected(self, me, auth_headers):
        goal = {"category": "yoga", "metric": "poses", "start_value": 0, "target_value": 10}
        response = client.put(f"/users/{me.id}", json={"goals": [goal]}, headers=auth_headers(me))
        assert response.status_code == 400

    def test_null_name_rejected(self, me, auth_headers):
        response = client.put(f"/users/{me.id}", json={"first_name": None}, headers=auth_headers(me))
        assert response.status_code == 400

    def test_cannot_update_someone_else(self, me, them, auth_headers):
        response = client.put(f"/users/{them.id}", json={"first_name": "Hacked"}, headers=auth_headers(me))
        assert response.status_code == 403
        assert client.get(f"/users/{them.id}", headers=auth_headers(me)).json()["first_name"] == "Theo"


class TestDeleteUser:
    def test_cannot_delete_someone_else(self, me, them, auth_headers):
        response = client.delete(f"/users/{them.id}", headers=auth_headers(me))
        assert response.status_code == 403

    def test_delete_cascades(self, me, auth_headers, db):
        headers = auth_headers(me)
        user_id = me.id
        client.post("/progress", json={
            "category": "strength", "metric": "squat", "value": 80, "date": "2026-03-01",
        }, headers=headers)
        client.post("/auth/login", json={"email": me.email, "password": "pw12345678"})

        response = client.delete(f"/users/{user_id}", headers=headers)
        assert response.status_code == 200

        db.expire_all()
        assert db.query(User).filter(User.id == user_id).first() is None
        assert db.query(ProgressEntry).filter(ProgressEntry.user_id == user_id).count() == 0
        assert db.query(RefreshToken).filter(RefreshToken.user_id == user_id).count() == 0

        # Token for a deleted account no longer resolves
        assert client.get("/auth/me", headers=headers).status_code == 404

    def test_delete_collects_emptied_group(self, me, auth_headers, db):
        headers = auth_headers(me)
        group = client.post("/groups", json={"name": "Solo"}, headers=headers).json()

        assert client.delete(f"/users/{me.id}", headers=headers).status_code == 200
        db.expire_all()
        assert db.query(Group).filter(Group.id == group["id"]).first() is None

    def test_delete_keeps_group_with_other_members(self, me, them, auth_headers, db):
        code = client.post("/groups", json={"name": "Pair"}, headers=auth_headers(me)).json()["code"]
        client.post("/groups/join", json={"code": code}, headers=auth_headers(them))

        client.delete(f"/users/{me.id}", headers=auth_headers(me))
        detail = client.get("/groups/my-group", headers=auth_headers(them)).json()
        assert detail["member_count"] == 1
