"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment_service.db.tables import CourseRow, LessonRow, SectionRow
from enrollment_service.models.course import Course, Lesson, Section


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id, populate_existing=True)
        if row is None:
            return None
        return _row_to_course(row)

    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]:
        stmt = select(CourseRow).where(CourseRow.instructor_id == instructor_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def add(self, course: Course, sections: list[Section]) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                instructor_id=course.instructor_id,
                title=course.title,
                price=course.price,
                is_published=course.is_published,
                enrollment_count=course.enrollment_count,
                rating=course.rating,
                review_count=course.review_count,
            )
        )
        await self._session.flush()
        await self._insert_sections(course.id, sections)

    async def get_sections(self, course_id: UUID) -> list[Section] | None:
        if await self._session.get(CourseRow, course_id) is None:
            return None

        section_rows = (
            (
                await self._session.execute(
                    select(SectionRow).where(SectionRow.course_id == course_id)
                )
            )
            .scalars()
            .all()
        )
        lesson_rows = (
            (
                await self._session.execute(
                    select(LessonRow).where(LessonRow.course_id == course_id)
                )
            )
            .scalars()
            .all()
        )

        by_section: dict[UUID, list[Lesson]] = defaultdict(list)
        for lr in lesson_rows:
            by_section[lr.section_id].append(
                Lesson(
                    id=lr.id,
                    title=lr.title,
                    position=lr.position,
                    type=lr.type,
                    duration_seconds=lr.duration_seconds,
                    is_preview=lr.is_preview,
                )
            )

        return [
            Section(
                id=sr.id,
                title=sr.title,
                position=sr.position,
                lessons=tuple(sorted(by_section[sr.id], key=lambda x: x.position)),
            )
            for sr in section_rows
        ]

    async def replace_sections(self, course_id: UUID, sections: list[Section]) -> None:
        await self._session.execute(
            delete(LessonRow).where(LessonRow.course_id == course_id)
        )
        await self._session.execute(
            delete(SectionRow).where(SectionRow.course_id == course_id)
        )
        await self._insert_sections(course_id, sections)

    async def increment_enrollment_count(self, course_id: UUID) -> None:
        # Single UPDATE … SET n = n + 1: no read, no lost increments.
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(enrollment_count=CourseRow.enrollment_count + 1)
        )
        await self._session.execute(stmt)

    async def set_rating(self, course_id: UUID, rating: float, review_count: int) -> None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(rating=rating, review_count=review_count)
        )
        await self._session.execute(stmt)

    async def _insert_sections(self, course_id: UUID, sections: list[Section]) -> None:
        for s in sections:
            self._session.add(
                SectionRow(
                    id=s.id, course_id=course_id, title=s.title, position=s.position
                )
            )
        await self._session.flush()
        for s in sections:
            for lesson in s.lessons:
                self._session.add(
                    LessonRow(
                        id=lesson.id,
                        course_id=course_id,
                        section_id=s.id,
                        title=lesson.title,
                        position=lesson.position,
                        type=lesson.type,
                        duration_seconds=lesson.duration_seconds,
                        is_preview=lesson.is_preview,
                    )
                )
        await self._session.flush()


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        instructor_id=row.instructor_id,
        title=row.title,
        price=row.price,
        is_published=row.is_published,
        enrollment_count=row.enrollment_count,
        rating=row.rating or 0.0,
        review_count=row.review_count,
    )
