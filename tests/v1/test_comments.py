# mypy: ignore-errors
# tests/v1/test_comments.py
"""Tests for comment threads, comment likes and subtree deletion."""

from fastapi import status

from tribelab_stage.models import Comment, CommentLike, Notification, Post


def _comment(client, post_id, headers, text, parent_id=None):
    payload = {"text": text}
    if parent_id is not None:
        payload["parent_id"] = parent_id
    return client.post(f"/api/v1/posts/{post_id}/comments", json=payload, headers=headers)


def test_comment_notifies_post_author(client, db_session, test_user, test_post, member, other_auth_token) -> None:
    response = _comment(client, test_post.id, other_auth_token, "Nice post")
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["parent_id"] is None
    assert data["parent_author_id"] is None
    assert data["author_username"] == member.username

    notification = db_session.query(Notification).filter(Notification.type == "comment").one()
    assert notification.recipient_id == test_user.id
    assert notification.source_id == test_post.id


def test_reply_notifies_parent_author(client, db_session, test_post, member, auth_token, other_auth_token) -> None:
    parent = _comment(client, test_post.id, other_auth_token, "Question?").json()
    reply = _comment(client, test_post.id, auth_token, "Answer.", parent_id=parent["id"])
    assert reply.status_code == status.HTTP_201_CREATED
    assert reply.json()["parent_author_id"] == member.id

    recipients = [
        n.recipient_id for n in db_session.query(Notification).filter(Notification.type == "comment")
    ]
    assert member.id in recipients


def test_reply_parent_must_exist(client, test_post, auth_token) -> None:
    response = _comment(client, test_post.id, auth_token, "orphan", parent_id=99999)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_reply_parent_must_be_on_same_post(client, db_session, community, test_user, test_post, auth_token) -> None:
    other_post = Post(community_id=community.id, author_id=test_user.id, title="Other", content="x")
    db_session.add(other_post)
    db_session.commit()
    parent = _comment(client, other_post.id, auth_token, "elsewhere").json()

    response = _comment(client, test_post.id, auth_token, "cross-post", parent_id=parent["id"])
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_list_top_level_and_replies(client, test_post, auth_token) -> None:
    first = _comment(client, test_post.id, auth_token, "first").json()
    second = _comment(client, test_post.id, auth_token, "second").json()
    reply = _comment(client, test_post.id, auth_token, "reply", parent_id=first["id"]).json()

    top = client.get(f"/api/v1/posts/{test_post.id}/comments", headers=auth_token).json()
    assert [c["id"] for c in top] == [second["id"], first["id"]]
    assert top[1]["reply_count"] == 1

    replies = client.get(
        f"/api/v1/posts/{test_post.id}/comments",
        params={"parent_id": first["id"]},
        headers=auth_token,
    ).json()
    assert [c["id"] for c in replies] == [reply["id"]]


def test_comment_like_is_idempotent(client, db_session, test_user, test_post, member, auth_token, other_auth_token) -> None:
    comment = _comment(client, test_post.id, auth_token, "like me").json()

    for _ in range(2):
        response = client.post(f"/api/v1/comments/{comment['id']}/like", headers=other_auth_token)
        assert response.json() == {"liked": True, "like_count": 1}
    db_session.refresh(test_user)
    assert test_user.points == 1

    response = client.delete(f"/api/v1/comments/{comment['id']}/like", headers=other_auth_token)
    assert response.json() == {"liked": False, "like_count": 0}
    db_session.refresh(test_user)
    assert test_user.points == 0


def test_delete_comment_removes_subtree(client, db_session, test_post, member, auth_token, other_auth_token) -> None:
    root = _comment(client, test_post.id, other_auth_token, "root").json()
    child = _comment(client, test_post.id, auth_token, "child", parent_id=root["id"]).json()
    _comment(client, test_post.id, other_auth_token, "grandchild", parent_id=child["id"])
    sibling = _comment(client, test_post.id, auth_token, "sibling").json()
    client.post(f"/api/v1/comments/{child['id']}/like", headers=other_auth_token)

    response = client.delete(f"/api/v1/comments/{root['id']}", headers=other_auth_token)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    remaining = [c.id for c in db_session.query(Comment).all()]
    assert remaining == [sibling["id"]]
    assert db_session.query(CommentLike).count() == 0


def test_delete_comment_permissions(client, db_session, community, test_post, member, auth_token, other_auth_token) -> None:
    admin_comment = _comment(client, test_post.id, auth_token, "admin says").json()
    forbidden = client.delete(f"/api/v1/comments/{admin_comment['id']}", headers=other_auth_token)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    member_comment = _comment(client, test_post.id, other_auth_token, "member says").json()
    moderated = client.delete(f"/api/v1/comments/{member_comment['id']}", headers=auth_token)
    assert moderated.status_code == status.HTTP_204_NO_CONTENT
