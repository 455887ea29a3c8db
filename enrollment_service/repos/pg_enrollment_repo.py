"""PostgreSQL implementation of EnrollmentRepo.

``add_if_absent`` is one statement:

    INSERT INTO enrollments (...) VALUES (...)
    ON CONFLICT ON CONSTRAINT uq_enrollment_student_course DO NOTHING
    RETURNING id

The unique constraint decides the race inside PostgreSQL.  Two concurrent
payment callbacks for the same pair both reach the INSERT; exactly one
gets a row back, the other gets nothing.  There is no read-then-write
window for a lost update.

``savepoint`` wraps a group of reads in SAVEPOINT so one failing course
does not abort the transaction the rest of an analytics report reads from.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment_service.db.tables import EnrollmentRow
from enrollment_service.models.enrollment import Enrollment


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_if_absent(self, enrollment: Enrollment) -> bool:
        stmt = (
            insert(EnrollmentRow)
            .values(
                student_id=enrollment.student_id,
                course_id=enrollment.course_id,
                enrolled_at=enrollment.enrolled_at,
                amount_paid=enrollment.amount_paid,
                currency=enrollment.currency,
                payment_reference=enrollment.payment_reference,
            )
            .on_conflict_do_nothing(constraint="uq_enrollment_student_course")
            .returning(EnrollmentRow.id)
        )
        inserted = (await self._session.execute(stmt)).scalar_one_or_none()
        return inserted is not None

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def exists(self, student_id: UUID, course_id: UUID) -> bool:
        stmt = select(EnrollmentRow.id).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )
        return (await self._session.execute(stmt)).first() is not None

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.student_id == student_id)
            .order_by(EnrollmentRow.enrolled_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.course_id == course_id)
            .order_by(EnrollmentRow.enrolled_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def commit(self) -> None:
        await self._session.commit()

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """SAVEPOINT around the block, rolled back if the block raises.

        A failed statement aborts the whole PostgreSQL transaction; rolling
        back to the savepoint makes the session usable again for the rest
        of the request.
        """
        async with self._session.begin_nested():
            yield


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        student_id=row.student_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        amount_paid=row.amount_paid,
        currency=row.currency,
        payment_reference=row.payment_reference,
    )
