"""Progress endpoints.

  POST /v1/progress/complete    {student_id, course_id, lesson_id}
  POST /v1/progress/uncomplete  {student_id, course_id, lesson_id}
  POST /v1/progress/reset       {student_id, course_id}
  GET  /v1/progress?student_id=&course_id=

Every response is recomputed from the current content tree; the client
never supplies a percentage.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from enrollment_service.api.dependencies import ProgressTrackerDep, require_user
from enrollment_service.core.errors import UnauthorizedError
from enrollment_service.models.principal import Principal
from enrollment_service.models.progress import ProgressRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class LessonProgressIn(BaseModel):
    student_id: UUID
    course_id: UUID
    lesson_id: UUID


class ResetIn(BaseModel):
    student_id: UUID
    course_id: UUID


class ProgressOut(BaseModel):
    student_id: UUID
    course_id: UUID
    completed_lesson_ids: list[UUID]
    percentage: int
    total_lessons: int
    status: str  # not_started|in_progress|completed
    watched_seconds: int
    total_seconds: int
    last_accessed_at: int | None
    last_lesson_id: UUID | None

    @staticmethod
    def of(r: ProgressRecord) -> ProgressOut:
        return ProgressOut(
            student_id=r.student_id,
            course_id=r.course_id,
            completed_lesson_ids=sorted(r.completed_lesson_ids, key=str),
            percentage=r.percentage,
            total_lessons=r.total_lessons,
            status=r.status,
            watched_seconds=r.watched_seconds,
            total_seconds=r.total_seconds,
            last_accessed_at=r.last_accessed_at,
            last_lesson_id=r.last_lesson_id,
        )


def _check_owner(principal: Principal, student_id: UUID) -> None:
    if not principal.acts_for(student_id):
        logger.warning(
            "Access denied: user=%s cannot touch progress of student=%s",
            principal.user_id,
            student_id,
        )
        raise UnauthorizedError("cannot access another student's progress")


@router.post("/complete", response_model=ProgressOut)
async def complete_lesson(
    body: LessonProgressIn,
    principal: Annotated[Principal, Depends(require_user)],
    tracker: ProgressTrackerDep,
) -> ProgressOut:
    _check_owner(principal, body.student_id)
    record = await tracker.mark_complete(body.student_id, body.course_id, body.lesson_id)
    return ProgressOut.of(record)


@router.post("/uncomplete", response_model=ProgressOut)
async def uncomplete_lesson(
    body: LessonProgressIn,
    principal: Annotated[Principal, Depends(require_user)],
    tracker: ProgressTrackerDep,
) -> ProgressOut:
    _check_owner(principal, body.student_id)
    record = await tracker.unmark_complete(
        body.student_id, body.course_id, body.lesson_id
    )
    return ProgressOut.of(record)


@router.post("/reset", response_model=ProgressOut)
async def reset_progress(
    body: ResetIn,
    principal: Annotated[Principal, Depends(require_user)],
    tracker: ProgressTrackerDep,
) -> ProgressOut:
    _check_owner(principal, body.student_id)
    return ProgressOut.of(await tracker.reset_progress(body.student_id, body.course_id))


@router.get("", response_model=ProgressOut)
async def get_progress(
    student_id: Annotated[UUID, Query()],
    course_id: Annotated[UUID, Query()],
    principal: Annotated[Principal, Depends(require_user)],
    tracker: ProgressTrackerDep,
) -> ProgressOut:
    _check_owner(principal, student_id)
    return ProgressOut.of(await tracker.get_progress(student_id, course_id))
