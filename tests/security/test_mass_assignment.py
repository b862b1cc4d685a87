"""
Security tests for mass-assignment hardening.

Creation ignores server-controlled fields; updates reject any key outside
the allow-list so ownership and identity can never be reassigned.
"""

from __future__ import annotations

import pytest

from tracker_app.models import Task, User

pytestmark = pytest.mark.security


def test_create_task_ignores_protected_fields(client, db_session, user_one, user_two, user_one_headers):
    """Task creation must ignore user-controlled identity/system fields."""
    # Arrange
    payload = {
        "id": 999999,
        "owner": user_two.id,
        "owner_id": user_two.id,
        "description": "Mass assignment probe",
        "created_at": "1990-01-01T00:00:00+00:00",
        "is_admin": True,
    }

    # Act
    response = client.post("/tasks", json=payload, headers=user_one_headers)

    # Assert
    assert response.status_code == 201
    body = response.get_json()
    assert body["id"] != payload["id"]
    assert body["owner"] == user_one.id
    assert body["created_at"] != payload["created_at"]
    assert "is_admin" not in body


def test_update_task_cannot_reassign_owner(client, db_session, user_one, user_two, user_tasks, user_one_headers):
    task_id = user_tasks["one"].id

    response = client.patch(
        f"/tasks/{task_id}",
        json={"description": "Mine now", "owner_id": user_two.id},
        headers=user_one_headers,
    )

    assert response.status_code == 400
    task = db_session.session.get(Task, task_id)
    assert task.owner_id == user_one.id
    assert task.description == "First task"


@pytest.mark.parametrize("field", ["id", "password_hash", "tokens", "avatar", "created_at"])
def test_update_profile_rejects_protected_fields(client, db_session, user_one, user_one_headers, field):
    response = client.patch("/users/me", json={field: "x"}, headers=user_one_headers)

    assert response.status_code == 400
    assert db_session.session.get(User, user_one.id).check_password("56what!!")


def test_signup_ignores_unknown_fields(client, db_session):
    response = client.post(
        "/users",
        json={
            "name": "Probe",
            "email": "probe@tasktracker.io",
            "password": "Secret1",
            "id": 4242,
            "password_hash": "plain",
        },
    )

    assert response.status_code == 201
    user = db_session.session.get(User, response.get_json()["user"]["id"])
    assert user.id != 4242
    assert user.check_password("Secret1")
