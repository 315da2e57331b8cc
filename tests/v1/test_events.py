# mypy: ignore-errors
# tests/v1/test_events.py
"""Tests for community calendar events."""

from fastapi import status


def _event(client, community, headers, title, start, end):
    return client.post(
        f"/api/v1/communities/{community.slug}/events",
        json={"title": title, "start": start, "end": end},
        headers=headers,
    )


def test_create_and_list_events(client, community, member, auth_token, other_auth_token) -> None:
    later = _event(client, community, auth_token, "Later", "2030-05-02T10:00:00Z", "2030-05-02T11:00:00Z")
    assert later.status_code == status.HTTP_201_CREATED
    assert later.json()["color"] == "#3788d8"
    _event(client, community, auth_token, "Sooner", "2030-05-01T10:00:00Z", "2030-05-01T11:00:00Z")

    listed = client.get(f"/api/v1/communities/{community.slug}/events", headers=other_auth_token)
    assert [e["title"] for e in listed.json()] == ["Sooner", "Later"]

    windowed = client.get(
        f"/api/v1/communities/{community.slug}/events",
        params={"start": "2030-05-02T00:00:00Z", "end": "2030-05-03T00:00:00Z"},
        headers=other_auth_token,
    )
    assert [e["title"] for e in windowed.json()] == ["Later"]


def test_end_before_start_rejected(client, community, auth_token) -> None:
    response = _event(client, community, auth_token, "Backwards", "2030-05-02T10:00:00Z", "2030-05-01T10:00:00Z")
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_members_cannot_create_events(client, community, member, other_auth_token) -> None:
    response = _event(client, community, other_auth_token, "Party", "2030-05-02T10:00:00Z", "2030-05-02T12:00:00Z")
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_update_and_delete_event(client, community, auth_token) -> None:
    created = _event(client, community, auth_token, "Standup", "2030-05-02T10:00:00Z", "2030-05-02T10:15:00Z").json()

    bad = client.patch(
        f"/api/v1/events/{created['id']}",
        json={"end": "2030-05-01T00:00:00Z"},
        headers=auth_token,
    )
    assert bad.status_code == status.HTTP_400_BAD_REQUEST

    updated = client.patch(
        f"/api/v1/events/{created['id']}",
        json={"title": "Retro", "location": "Room 1"},
        headers=auth_token,
    )
    assert updated.status_code == status.HTTP_200_OK
    assert updated.json()["title"] == "Retro"
    assert updated.json()["location"] == "Room 1"

    deleted = client.delete(f"/api/v1/events/{created['id']}", headers=auth_token)
    assert deleted.status_code == status.HTTP_204_NO_CONTENT
    missing = client.patch(f"/api/v1/events/{created['id']}", json={"title": "Ghost"}, headers=auth_token)
    assert missing.status_code == status.HTTP_404_NOT_FOUND
