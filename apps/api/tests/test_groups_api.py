"""
Group registry API tests: create, join, membership gating, leave and
empty-group collection.
"""
from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError
from fastapi.testclient import TestClient

import services.group_service as group_service
from main import app
from models import Group, GroupMember
from services.group_codes import GROUP_CODE_ALPHABET, generate_unique_group_code

client = TestClient(app)


def _signup(email: str, first_name: str) -> dict:
    response = client.post("/auth/register", json={
        "email": email,
        "password": "pw12345678",
        "first_name": first_name,
        "last_name": "Tester",
    })
    assert response.status_code == 201
    login = client.post("/auth/login", json={"email": email, "password": "pw12345678"})
    assert login.status_code == 200
    data = login.json()
    return {"id": data["user"]["id"], "headers": {"Authorization": f"Bearer {data['access_token']}"}}


@pytest.fixture
def alice():
    return _signup("alice@example.com", "Alice")


@pytest.fixture
def bob():
    return _signup("bob@example.com", "Bob")


@pytest.fixture
def carol():
    return _signup("carol@example.com", "Carol")


def _create(user, name="Squad", **extra):
    return client.post("/groups", json={"name": name, **extra}, headers=user["headers"])


class TestCreateGroup:
    def test_create_returns_code(self, alice):
        response = _create(alice, description="Lifting crew")
        assert response.status_code == 201
        group = response.json()
        assert group["name"] == "Squad"
        assert group["description"] == "Lifting crew"
        assert group["creator_id"] == alice["id"]
        assert group["member_count"] == 1
        assert len(group["code"]) == 6
        assert set(group["code"]) <= set(GROUP_CODE_ALPHABET)

    def test_name_required(self, alice):
        for body in ({}, {"name": ""}, {"name": "   "}):
            response = client.post("/groups", json=body, headers=alice["headers"])
            assert response.status_code == 400
            assert response.json()["detail"] == "Group name is required"

    def test_cannot_create_while_in_group(self, alice):
        assert _create(alice).status_code == 201
        response = _create(alice, name="Second")
        assert response.status_code == 400

    def test_codes_unique_across_groups(self, alice, bob, carol):
        codes = {_create(user, name=f"G{i}").json()["code"] for i, user in enumerate((alice, bob, carol))}
        assert len(codes) == 3

    def test_code_exhaustion_is_500(self, alice, bob, monkeypatch):
        existing = _create(bob).json()["code"]
        monkeypatch.setattr(group_service, "generate_unique_group_code", _always_colliding(existing))
        response = _create(alice)
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to generate unique code"

    def test_database_enforces_single_membership(self, alice, db):
        group = _create(alice).json()
        db.add(GroupMember(group_id=group["id"], user_id=alice["id"]))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_racing_create_surfaces_as_conflict(self, alice, bob, monkeypatch):
        code = _create(alice).json()["code"]
        client.post("/groups/join", json={"code": code}, headers=bob["headers"])
        # Simulate losing the race: the pre-check sees no membership, the insert does
        monkeypatch.setattr(group_service, "_membership", lambda db, user_id: None)
        response = _create(bob, name="Racing")
        assert response.status_code == 409


def _always_colliding(code):
    def _generate(is_taken, max_attempts):
        return generate_unique_group_code(is_taken, max_attempts, generator=lambda: code)

    return _generate


class TestJoinGroup:
    def test_join_with_lowercase_code(self, alice, bob):
        code = _create(alice).json()["code"]
        response = client.post("/groups/join", json={"code": code.lower()}, headers=bob["headers"])
        assert response.status_code == 200
        assert response.json()["code"] == code
        assert response.json()["member_count"] == 2

    def test_code_required(self, bob):
        response = client.post("/groups/join", json={}, headers=bob["headers"])
        assert response.status_code == 400
        assert response.json()["detail"] == "Group code is required"

    def test_unknown_code(self, bob):
        response = client.post("/groups/join", json={"code": "ZZZZZZ"}, headers=bob["headers"])
        assert response.status_code == 404

    def test_cannot_join_while_in_group(self, alice, bob):
        code = _create(alice).json()["code"]
        _create(bob, name="Bob's")
        response = client.post("/groups/join", json={"code": code}, headers=bob["headers"])
        assert response.status_code == 400

    def test_member_cannot_rejoin_own_group(self, alice):
        code = _create(alice).json()["code"]
        response = client.post("/groups/join", json={"code": code}, headers=alice["headers"])
        assert response.status_code == 400


class TestMembershipGating:
    def test_non_member_gets_403_for_existing_group(self, alice, bob):
        group_id = _create(alice).json()["id"]
        assert client.get(f"/groups/{group_id}", headers=bob["headers"]).status_code == 403
        assert client.get(f"/groups/{group_id}/progress", headers=bob["headers"]).status_code == 403
        assert client.get(f"/groups/{group_id}/leaderboard", headers=bob["headers"]).status_code == 403
        assert client.get(f"/groups/{group_id}/leaders", headers=bob["headers"]).status_code == 403

    def test_non_member_gets_403_for_missing_group(self, bob):
        assert client.get("/groups/999999", headers=bob["headers"]).status_code == 403
        assert client.get("/groups/999999/progress", headers=bob["headers"]).status_code == 403

    def test_my_group_null_when_not_member(self, bob):
        response = client.get("/groups/my-group", headers=bob["headers"])
        assert response.status_code == 200
        assert response.json() is None


class TestGroupProgressFeed:
    def _log(self, user, value, day, category="strength", metric="squat"):
        response = client.post("/progress", json={
            "category": category,
            "metric": metric,
            "value": value,
            "unit": "kg",
            "date": day.isoformat(),
        }, headers=user["headers"])
        assert response.status_code == 201
        return response.json()

    def test_feed_newest_first_with_author(self, alice, bob):
        code = _create(alice).json()["code"]
        group_id = client.post("/groups/join", json={"code": code}, headers=bob["headers"]).json()["id"]
        self._log(alice, 100, date(2026, 1, 1))
        self._log(bob, 80, date(2026, 1, 3))
        self._log(alice, 105, date(2026, 1, 2))

        feed = client.get(f"/groups/{group_id}/progress", headers=alice["headers"]).json()
        assert [entry["date"] for entry in feed] == ["2026-01-03", "2026-01-02", "2026-01-01"]
        assert feed[0]["first_name"] == "Bob"
        assert feed[1]["first_name"] == "Alice"

    def test_feed_filters_and_limit(self, alice, bob):
        code = _create(alice).json()["code"]
        group_id = client.post("/groups/join", json={"code": code}, headers=bob["headers"]).json()["id"]
        self._log(alice, 100, date(2026, 1, 1))
        self._log(alice, 5, date(2026, 1, 5), category="cardio", metric="distance")
        self._log(bob, 90, date(2026, 1, 10))

        by_category = client.get(
            f"/groups/{group_id}/progress", params={"category": "cardio"}, headers=alice["headers"]
        ).json()
        assert [e["metric"] for e in by_category] == ["distance"]

        by_range = client.get(
            f"/groups/{group_id}/progress",
            params={"start_date": "2026-01-02", "end_date": "2026-01-10"},
            headers=alice["headers"],
        ).json()
        assert len(by_range) == 2

        limited = client.get(f"/groups/{group_id}/progress", params={"limit": 1}, headers=alice["headers"]).json()
        assert len(limited) == 1
        assert limited[0]["date"] == "2026-01-10"

    def test_former_member_entries_leave_feed(self, alice, bob):
        code = _create(alice).json()["code"]
        group_id = client.post("/groups/join", json={"code": code}, headers=bob["headers"]).json()["id"]
        self._log(bob, 90, date(2026, 1, 10))
        client.delete(f"/groups/{group_id}/leave", headers=bob["headers"])

        feed = client.get(f"/groups/{group_id}/progress", headers=alice["headers"]).json()
        assert feed == []


class TestLeaveGroup:
    def test_leave_not_member_is_404(self, alice, bob):
        group_id = _create(alice).json()["id"]
        response = client.delete(f"/groups/{group_id}/leave", headers=bob["headers"])
        assert response.status_code == 404

    def test_last_member_leaving_deletes_group(self, alice, db):
        group = _create(alice).json()
        response = client.delete(f"/groups/{group['id']}/leave", headers=alice["headers"])
        assert response.status_code == 200
        assert response.json()["group_deleted"] is True
        assert db.query(Group).filter(Group.id == group["id"]).first() is None

    def test_can_create_after_leaving(self, alice):
        group_id = _create(alice).json()["id"]
        client.delete(f"/groups/{group_id}/leave", headers=alice["headers"])
        assert _create(alice, name="Fresh start").status_code == 201


class TestSquadScenario:
    def test_full_lifecycle(self, alice, bob, db):
        created = _create(alice)
        assert created.status_code == 201
        code = created.json()["code"]
        group_id = created.json()["id"]
        assert len(code) == 6 and set(code) <= set(GROUP_CODE_ALPHABET)

        joined = client.post("/groups/join", json={"code": code.lower()}, headers=bob["headers"])
        assert joined.status_code == 200

        detail = client.get(f"/groups/{group_id}", headers=alice["headers"]).json()
        assert [m["first_name"] for m in detail["members"]] == ["Alice", "Bob"]
        assert detail["member_count"] == 2

        # Alice leaves, Bob remains
        left = client.delete(f"/groups/{group_id}/leave", headers=alice["headers"])
        assert left.status_code == 200
        assert left.json()["group_deleted"] is False
        assert client.get("/groups/my-group", headers=alice["headers"]).json() is None
        assert client.get("/groups/my-group", headers=bob["headers"]).json()["name"] == "Squad"

        # Bob leaves too: the code no longer resolves
        client.delete(f"/groups/{group_id}/leave", headers=bob["headers"])
        assert db.query(Group).filter(Group.code == code).first() is None
        rejoin = client.post("/groups/join", json={"code": code}, headers=alice["headers"])
        assert rejoin.status_code == 404
