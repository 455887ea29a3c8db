"""Course-scoped reads.

  GET /v1/courses/{course_id}/content      ordered sections → lessons
  GET /v1/courses/{course_id}/enrollment   {enrolled: bool} for the caller
  GET /v1/courses/{course_id}/enrollments  roster (owning instructor or admin)
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from enrollment_service.api.dependencies import (
    ContentServiceDep,
    CourseRepoDep,
    EnrollmentLedgerDep,
    require_any_role,
    require_user,
)
from enrollment_service.api.enrollments import EnrollmentOut
from enrollment_service.core.errors import CourseNotFound, UnauthorizedError
from enrollment_service.models.principal import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class LessonOut(BaseModel):
    id: UUID
    title: str
    position: int
    type: str
    duration_seconds: int
    is_preview: bool


class SectionOut(BaseModel):
    id: UUID
    title: str
    position: int
    lessons: list[LessonOut]


class ContentOut(BaseModel):
    course_id: UUID
    total_lessons: int
    total_duration_seconds: int
    sections: list[SectionOut]


class EnrollmentStatusOut(BaseModel):
    course_id: UUID
    enrolled: bool


@router.get("/{course_id}/content", response_model=ContentOut)
async def get_content(
    course_id: UUID,
    _principal: Annotated[Principal, Depends(require_user)],
    content: ContentServiceDep,
) -> ContentOut:
    tree = await content.get_tree(course_id)
    return ContentOut(
        course_id=tree.course_id,
        total_lessons=tree.total_lessons,
        total_duration_seconds=tree.total_duration_seconds,
        sections=[
            SectionOut(
                id=s.id,
                title=s.title,
                position=s.position,
                lessons=[
                    LessonOut(
                        id=x.id,
                        title=x.title,
                        position=x.position,
                        type=x.type,
                        duration_seconds=x.duration_seconds,
                        is_preview=x.is_preview,
                    )
                    for x in s.lessons
                ],
            )
            for s in tree.sections
        ],
    )


@router.get("/{course_id}/enrollment", response_model=EnrollmentStatusOut)
async def get_enrollment_status(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    ledger: EnrollmentLedgerDep,
) -> EnrollmentStatusOut:
    enrolled = await ledger.is_enrolled(principal.uid, course_id)
    return EnrollmentStatusOut(course_id=course_id, enrolled=enrolled)


@router.get("/{course_id}/enrollments", response_model=list[EnrollmentOut])
async def list_course_enrollments(
    course_id: UUID,
    principal: Annotated[
        Principal, Depends(require_any_role({"instructor", "admin"}))
    ],
    courses: CourseRepoDep,
    ledger: EnrollmentLedgerDep,
) -> list[EnrollmentOut]:
    course = await courses.get(course_id)
    if course is None:
        raise CourseNotFound(course_id)
    if not principal.acts_for(course.instructor_id):
        logger.warning(
            "Access denied: user=%s is not the instructor of course=%s",
            principal.user_id,
            course_id,
        )
        raise UnauthorizedError("only the course instructor can view its roster")
    return [EnrollmentOut.of(e) for e in await ledger.list_for_course(course_id)]
