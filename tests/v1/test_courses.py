# mypy: ignore-errors
# tests/v1/test_courses.py
"""Tests for courses, modules, lessons and enrollment."""

from fastapi import status

from tribelab_stage.models import Course, CourseEnrollment, Lesson, Module


def _lessons(db_session, course):
    return db_session.query(Lesson).filter(Lesson.course_id == course.id).order_by(Lesson.order).all()


def test_create_course_requires_manager(client, community, member, auth_token, other_auth_token) -> None:
    payload = {"title": "Intro", "description": "Start here"}
    forbidden = client.post(
        f"/api/v1/communities/{community.slug}/courses", json=payload, headers=other_auth_token
    )
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    response = client.post(f"/api/v1/communities/{community.slug}/courses", json=payload, headers=auth_token)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["is_published"] is False


def test_drafts_hidden_from_members(client, db_session, community, test_user, course, member, auth_token, other_auth_token) -> None:
    draft = Course(community_id=community.id, created_by=test_user.id, title="Draft", is_published=False)
    db_session.add(draft)
    db_session.commit()

    as_member = client.get(f"/api/v1/communities/{community.slug}/courses", headers=other_auth_token).json()
    assert [c["id"] for c in as_member] == [course.id]

    as_admin = client.get(f"/api/v1/communities/{community.slug}/courses", headers=auth_token).json()
    assert {c["id"] for c in as_admin} == {course.id, draft.id}

    hidden = client.get(f"/api/v1/courses/{draft.id}", headers=other_auth_token)
    assert hidden.status_code == status.HTTP_404_NOT_FOUND


def test_course_detail_orders_and_hides_unpublished(client, db_session, course, member, auth_token, other_auth_token) -> None:
    module = db_session.query(Module).filter(Module.course_id == course.id).one()
    late = Module(course_id=course.id, title="Module 0", order=0, is_published=True)
    module.order = 1
    db_session.add(late)
    db_session.flush()
    db_session.add(Lesson(module_id=module.id, course_id=course.id, title="Secret", order=5, is_published=False))
    db_session.commit()

    detail = client.get(f"/api/v1/courses/{course.id}", headers=other_auth_token).json()
    assert [m["title"] for m in detail["modules"]] == ["Module 0", "Module 1"]
    assert [lesson["title"] for lesson in detail["modules"][1]["lessons"]] == ["Lesson 1", "Lesson 2"]
    assert detail["is_enrolled"] is False

    as_admin = client.get(f"/api/v1/courses/{course.id}", headers=auth_token).json()
    assert [lesson["title"] for lesson in as_admin["modules"][1]["lessons"]] == ["Lesson 1", "Lesson 2", "Secret"]


def test_enroll_requires_membership(client, course, other_user, other_auth_token) -> None:
    outsider = client.post(f"/api/v1/courses/{course.id}/enroll", headers=other_auth_token)
    assert outsider.status_code == status.HTTP_403_FORBIDDEN


def test_enroll_and_unenroll(client, db_session, course, member, other_auth_token) -> None:
    for _ in range(2):
        response = client.post(f"/api/v1/courses/{course.id}/enroll", headers=other_auth_token)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "enrolled"
    assert db_session.query(CourseEnrollment).count() == 1

    detail = client.get(f"/api/v1/courses/{course.id}", headers=other_auth_token).json()
    assert detail["is_enrolled"] is True

    response = client.delete(f"/api/v1/courses/{course.id}/enroll", headers=other_auth_token)
    assert response.json()["status"] == "unenrolled"
    assert db_session.query(CourseEnrollment).count() == 0


def test_module_and_lesson_crud(client, db_session, course, member, auth_token, other_auth_token) -> None:
    module = client.post(
        f"/api/v1/courses/{course.id}/modules",
        json={"title": "Advanced", "order": 3},
        headers=auth_token,
    )
    assert module.status_code == status.HTTP_201_CREATED
    module_id = module.json()["id"]

    lesson = client.post(
        f"/api/v1/modules/{module_id}/lessons",
        json={"title": "Deep dive", "content": "..."},
        headers=auth_token,
    )
    assert lesson.status_code == status.HTTP_201_CREATED
    lesson_id = lesson.json()["id"]
    assert lesson.json()["course_id"] == course.id

    renamed = client.patch(f"/api/v1/lessons/{lesson_id}", json={"title": "Deeper dive"}, headers=auth_token)
    assert renamed.json()["title"] == "Deeper dive"

    fetched = client.get(f"/api/v1/lessons/{lesson_id}", headers=other_auth_token)
    assert fetched.status_code == status.HTTP_200_OK

    forbidden = client.patch(f"/api/v1/modules/{module_id}", json={"title": "Mine"}, headers=other_auth_token)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    updated = client.patch(f"/api/v1/modules/{module_id}", json={"title": "Expert"}, headers=auth_token)
    assert updated.json()["title"] == "Expert"
    assert [lesson["id"] for lesson in updated.json()["lessons"]] == [lesson_id]

    deleted = client.delete(f"/api/v1/modules/{module_id}", headers=auth_token)
    assert deleted.status_code == status.HTTP_204_NO_CONTENT
    assert db_session.query(Lesson).filter(Lesson.id == lesson_id).count() == 0


def test_delete_lesson(client, db_session, course, auth_token) -> None:
    lesson = _lessons(db_session, course)[0]
    lesson_id = lesson.id
    response = client.delete(f"/api/v1/lessons/{lesson_id}", headers=auth_token)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert db_session.query(Lesson).filter(Lesson.id == lesson_id).count() == 0


def test_update_and_delete_course(client, db_session, course, member, auth_token) -> None:
    response = client.patch(f"/api/v1/courses/{course.id}", json={"title": "Renamed"}, headers=auth_token)
    assert response.json()["title"] == "Renamed"

    db_session.add(CourseEnrollment(course_id=course.id, user_id=member.id))
    db_session.commit()
    course_id = course.id

    deleted = client.delete(f"/api/v1/courses/{course_id}", headers=auth_token)
    assert deleted.status_code == status.HTTP_204_NO_CONTENT
    assert db_session.query(Lesson).filter(Lesson.course_id == course_id).count() == 0
    assert db_session.query(CourseEnrollment).count() == 0


def test_null_fields_leave_course_content_unchanged(client, db_session, course, auth_token) -> None:
    lesson = _lessons(db_session, course)[0]
    module_id = lesson.module_id
    lesson_id = lesson.id

    response = client.patch(
        f"/api/v1/courses/{course.id}",
        json={"title": None, "is_published": None},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["title"] == "Getting Started"
    assert response.json()["is_published"] is True

    response = client.patch(f"/api/v1/modules/{module_id}", json={"title": None, "order": None}, headers=auth_token)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["title"] == "Module 1"
    assert response.json()["order"] == 0

    response = client.patch(
        f"/api/v1/lessons/{lesson_id}",
        json={"title": None, "content": None, "is_published": None},
        headers=auth_token,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["title"] == "Lesson 1"
    assert response.json()["content"] == "..."
    assert response.json()["is_published"] is True
