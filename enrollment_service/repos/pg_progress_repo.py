"""PostgreSQL implementation of ProgressRepo.

The completed set is stored one row per lesson in ``completed_lessons``.
Marking a lesson is ``INSERT … ON CONFLICT DO NOTHING`` and unmarking is a
single-row ``DELETE``, so two writers touching different lessons of the
same record never clobber each other.  ``progress_records`` only holds the
informational fields (cached percentage, last access).
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment_service.db.tables import CompletedLessonRow, ProgressRecordRow
from enrollment_service.models.progress import StoredProgress


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: UUID, course_id: UUID) -> StoredProgress | None:
        row = await self._session.get(
            ProgressRecordRow, (student_id, course_id), populate_existing=True
        )
        if row is None:
            return None
        return _to_stored(row, await self._lesson_ids(student_id, course_id))

    async def ensure(self, student_id: UUID, course_id: UUID) -> None:
        stmt = (
            insert(ProgressRecordRow)
            .values(student_id=student_id, course_id=course_id, cached_percentage=0)
            .on_conflict_do_nothing(index_elements=["student_id", "course_id"])
        )
        await self._session.execute(stmt)

    async def add_lesson(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID, at: int
    ) -> StoredProgress:
        await self.ensure(student_id, course_id)
        await self._session.execute(
            insert(CompletedLessonRow)
            .values(
                student_id=student_id,
                course_id=course_id,
                lesson_id=lesson_id,
                completed_at=at,
            )
            .on_conflict_do_nothing(
                index_elements=["student_id", "course_id", "lesson_id"]
            )
        )
        await self._touch(student_id, course_id, at, last_lesson_id=lesson_id)
        return await self._require(student_id, course_id)

    async def remove_lesson(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID, at: int
    ) -> StoredProgress:
        await self.ensure(student_id, course_id)
        await self._session.execute(
            delete(CompletedLessonRow).where(
                CompletedLessonRow.student_id == student_id,
                CompletedLessonRow.course_id == course_id,
                CompletedLessonRow.lesson_id == lesson_id,
            )
        )
        await self._touch(student_id, course_id, at)
        return await self._require(student_id, course_id)

    async def clear(self, student_id: UUID, course_id: UUID, at: int) -> StoredProgress:
        await self.ensure(student_id, course_id)
        await self._session.execute(
            delete(CompletedLessonRow).where(
                CompletedLessonRow.student_id == student_id,
                CompletedLessonRow.course_id == course_id,
            )
        )
        await self._session.execute(
            update(ProgressRecordRow)
            .where(
                ProgressRecordRow.student_id == student_id,
                ProgressRecordRow.course_id == course_id,
            )
            .values(cached_percentage=0, last_accessed_at=at, last_lesson_id=None)
        )
        return await self._require(student_id, course_id)

    async def set_cached_percentage(
        self, student_id: UUID, course_id: UUID, percentage: int
    ) -> None:
        await self._session.execute(
            update(ProgressRecordRow)
            .where(
                ProgressRecordRow.student_id == student_id,
                ProgressRecordRow.course_id == course_id,
            )
            .values(cached_percentage=percentage)
        )

    async def list_by_course(self, course_id: UUID) -> list[StoredProgress]:
        records = (
            (
                await self._session.execute(
                    select(ProgressRecordRow).where(
                        ProgressRecordRow.course_id == course_id
                    )
                )
            )
            .scalars()
            .all()
        )
        completed = (
            await self._session.execute(
                select(CompletedLessonRow.student_id, CompletedLessonRow.lesson_id).where(
                    CompletedLessonRow.course_id == course_id
                )
            )
        ).all()

        by_student: dict[UUID, set[UUID]] = defaultdict(set)
        for student_id, lesson_id in completed:
            by_student[student_id].add(lesson_id)

        return [
            _to_stored(r, frozenset(by_student.get(r.student_id, ()))) for r in records
        ]

    async def _lesson_ids(self, student_id: UUID, course_id: UUID) -> frozenset[UUID]:
        stmt = select(CompletedLessonRow.lesson_id).where(
            CompletedLessonRow.student_id == student_id,
            CompletedLessonRow.course_id == course_id,
        )
        return frozenset((await self._session.execute(stmt)).scalars().all())

    async def _touch(
        self,
        student_id: UUID,
        course_id: UUID,
        at: int,
        last_lesson_id: UUID | None = None,
    ) -> None:
        values: dict[str, object] = {"last_accessed_at": at}
        if last_lesson_id is not None:
            values["last_lesson_id"] = last_lesson_id
        await self._session.execute(
            update(ProgressRecordRow)
            .where(
                ProgressRecordRow.student_id == student_id,
                ProgressRecordRow.course_id == course_id,
            )
            .values(**values)
        )

    async def _require(self, student_id: UUID, course_id: UUID) -> StoredProgress:
        stored = await self.get(student_id, course_id)
        if stored is None:  # pragma: no cover - ensure() just created it
            raise RuntimeError(f"progress record vanished: {student_id}/{course_id}")
        return stored


def _to_stored(row: ProgressRecordRow, lesson_ids: frozenset[UUID]) -> StoredProgress:
    return StoredProgress(
        student_id=row.student_id,
        course_id=row.course_id,
        lesson_ids=lesson_ids,
        cached_percentage=row.cached_percentage,
        last_accessed_at=row.last_accessed_at,
        last_lesson_id=row.last_lesson_id,
    )
