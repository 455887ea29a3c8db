from __future__ import annotations

import asyncio
import uuid

from fastapi.testclient import TestClient

from enrollment_service.api import dependencies
from enrollment_service.models.course import Course, Lesson
from enrollment_service.services.cache import cache_service
from enrollment_service.services.content_service import ContentService
from tests.conftest import auth, create_test_course, lesson_ids, mint_token


def _enrolled(client: TestClient, *lesson_counts: int) -> tuple[uuid.UUID, Course]:
    course = create_test_course(*lesson_counts)
    student = uuid.uuid4()
    resp = client.post(
        "/v1/enrollments",
        json={
            "student_id": str(student),
            "course_id": str(course.id),
            "amount_paid": "49.99",
        },
        headers=auth(mint_token(student)),
    )
    assert resp.status_code == 201
    return student, course


def _post(
    client: TestClient,
    action: str,
    student: uuid.UUID,
    course: Course,
    lesson: uuid.UUID,
    token: str | None = None,
):
    return client.post(
        f"/v1/progress/{action}",
        json={
            "student_id": str(student),
            "course_id": str(course.id),
            "lesson_id": str(lesson),
        },
        headers=auth(token or mint_token(student)),
    )


def _get(client: TestClient, student: uuid.UUID, course: Course, token=None):
    return client.get(
        "/v1/progress",
        params={"student_id": str(student), "course_id": str(course.id)},
        headers=auth(token or mint_token(student)),
    )


def test_complete_lesson_returns_progress(client: TestClient) -> None:
    student, course = _enrolled(client, 4)
    first = lesson_ids(course)[0]

    resp = _post(client, "complete", student, course, first)

    assert resp.status_code == 200
    body = resp.json()
    assert body["completed_lesson_ids"] == [str(first)]
    assert body["percentage"] == 25
    assert body["total_lessons"] == 4
    assert body["status"] == "in_progress"
    assert body["watched_seconds"] == 60
    assert body["last_lesson_id"] == str(first)


def test_get_progress_for_fresh_enrollment(client: TestClient) -> None:
    student, course = _enrolled(client, 2)

    resp = _get(client, student, course)

    assert resp.status_code == 200
    assert resp.json()["completed_lesson_ids"] == []
    assert resp.json()["percentage"] == 0
    assert resp.json()["status"] == "not_started"


def test_uncomplete_and_reset(client: TestClient) -> None:
    student, course = _enrolled(client, 2)
    a, b = lesson_ids(course)
    _post(client, "complete", student, course, a)
    _post(client, "complete", student, course, b)

    resp = _post(client, "uncomplete", student, course, b)
    assert resp.json()["percentage"] == 50

    resp = client.post(
        "/v1/progress/reset",
        json={"student_id": str(student), "course_id": str(course.id)},
        headers=auth(mint_token(student)),
    )
    assert resp.status_code == 200
    assert resp.json()["percentage"] == 0
    assert _get(client, student, course).json()["completed_lesson_ids"] == []


def test_unknown_lesson_is_404(client: TestClient) -> None:
    student, course = _enrolled(client, 2)

    resp = _post(client, "complete", student, course, uuid.uuid4())

    assert resp.status_code == 404
    assert resp.json()["code"] == "lesson_not_found"
    assert _get(client, student, course).json()["percentage"] == 0


def test_not_enrolled_is_404(client: TestClient) -> None:
    course = create_test_course(2)
    student = uuid.uuid4()

    resp = _post(client, "complete", student, course, lesson_ids(course)[0])
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_enrolled"

    assert _get(client, student, course).json()["code"] == "not_enrolled"


def test_other_students_progress_is_403(client: TestClient) -> None:
    student, course = _enrolled(client, 2)
    intruder = mint_token()

    assert _get(client, student, course, token=intruder).status_code == 403
    resp = _post(
        client, "complete", student, course, lesson_ids(course)[0], token=intruder
    )
    assert resp.status_code == 403


def test_admin_reads_any_progress(client: TestClient, admin_token: str) -> None:
    student, course = _enrolled(client, 2)
    resp = _get(client, student, course, token=admin_token)
    assert resp.status_code == 200


def test_new_lesson_lowers_percentage_on_next_read(client: TestClient) -> None:
    student, course = _enrolled(client, 3, 3)
    for lesson in lesson_ids(course)[:4]:
        _post(client, "complete", student, course, lesson)
    assert _get(client, student, course).json()["percentage"] == 67

    content = ContentService(
        dependencies.course_repo, cache_service, ttl_seconds=60, timeout_seconds=1
    )
    tree = asyncio.run(content.get_tree(course.id))
    asyncio.run(
        content.add_lesson(
            course.id, tree.sections[1].id, Lesson.new(title="bonus", position=0)
        )
    )

    body = _get(client, student, course).json()
    assert body["total_lessons"] == 7
    assert body["percentage"] == 57
