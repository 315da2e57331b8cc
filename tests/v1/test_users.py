# mypy: ignore-errors
# tests/v1/test_users.py
"""Tests for user profile, settings and follow endpoints."""

from __future__ import annotations

from fastapi import status

from tribelab_stage.models import Notification, UserFollow
from tests.conftest import TEST_PASSWORD, make_user


def test_get_profile_includes_posts(client, test_user, test_post, community) -> None:
    response = client.get(f"/api/v1/users/{test_user.id}")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["user"]["username"] == test_user.username
    assert [p["id"] for p in data["posts"]] == [test_post.id]
    assert data["posts"][0]["community_slug"] == community.slug
    assert data["followers_count"] == 0


def test_get_profile_missing_user(client) -> None:
    response = client.get("/api/v1/users/99999")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_update_username_rejects_invalid_characters(client, auth_token) -> None:
    """Usernames may only contain letters, digits and underscores."""
    for bad in ("has space", "dash-name", "emoji😀x", "semi;colon"):
        response = client.patch(
            "/api/v1/users/me/settings",
            json={"username": bad},
            headers=auth_token,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST, bad


def test_update_username_rederives_slug(client, test_user, auth_token) -> None:
    response = client.patch(
        "/api/v1/users/me/settings",
        json={"username": "Renamed_User", "bio": "hello"},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["username"] == "Renamed_User"
    assert data["slug"] == "renamed-user"
    assert data["bio"] == "hello"


def test_update_username_conflict(client, other_user, auth_token) -> None:
    response = client.patch(
        "/api/v1/users/me/settings",
        json={"username": other_user.username.upper()},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_change_password(client, test_user, auth_token) -> None:
    wrong = client.post(
        "/api/v1/users/me/password",
        json={"current_password": "wrong-password", "new_password": "another-password"},
        headers=auth_token,
    )
    assert wrong.status_code == status.HTTP_400_BAD_REQUEST

    ok = client.post(
        "/api/v1/users/me/password",
        json={"current_password": TEST_PASSWORD, "new_password": "another-password"},
        headers=auth_token,
    )
    assert ok.status_code == status.HTTP_204_NO_CONTENT

    login = client.post(
        "/api/v1/auth/login",
        json={"identifier": test_user.username, "password": "another-password"},
    )
    assert login.status_code == status.HTTP_200_OK


def test_follow_and_unfollow(client, db_session, test_user, other_user, auth_token) -> None:
    response = client.post(f"/api/v1/users/{other_user.id}/follow", headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"following": True, "followers_count": 1, "following_count": 0}

    again = client.post(f"/api/v1/users/{other_user.id}/follow", headers=auth_token)
    assert again.json()["followers_count"] == 1

    notifications = (
        db_session.query(Notification)
        .filter(Notification.recipient_id == other_user.id, Notification.type == "follow")
        .all()
    )
    assert len(notifications) == 1

    status_response = client.get(f"/api/v1/users/{other_user.id}/follow-status", headers=auth_token)
    assert status_response.json()["following"] is True

    response = client.delete(f"/api/v1/users/{other_user.id}/follow", headers=auth_token)
    assert response.json()["following"] is False
    assert db_session.query(UserFollow).count() == 0


def test_cannot_follow_self(client, test_user, auth_token) -> None:
    response = client.post(f"/api/v1/users/{test_user.id}/follow", headers=auth_token)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_my_communities(client, community, member, other_auth_token) -> None:
    response = client.get("/api/v1/users/me/communities", headers=other_auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert [c["slug"] for c in response.json()] == [community.slug]


def test_search_users_prefix(client, test_user, other_user, auth_token) -> None:
    response = client.get("/api/v1/users/search", params={"q": "OTHER"}, headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert [u["id"] for u in response.json()] == [other_user.id]


def test_search_users_treats_wildcards_literally(client, db_session, auth_token) -> None:
    underscored = make_user(db_session, "a_bcd")
    make_user(db_session, "axbcd")
    make_user(db_session, "abcd")

    response = client.get("/api/v1/users/search", params={"q": "a_b"}, headers=auth_token)
    assert [u["id"] for u in response.json()] == [underscored.id]

    response = client.get("/api/v1/users/search", params={"q": "%"}, headers=auth_token)
    assert response.json() == []
