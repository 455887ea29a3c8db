"""Enrollment ledger: the one-time transition of a student into a course.

Uniqueness is decided by the store's atomic conditional insert
(``EnrollmentRepo.add_if_absent``), never by reading first and writing
after.  Of N concurrent enrolls for the same pair exactly one returns an
Enrollment; the rest raise AlreadyEnrolled.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from uuid import UUID

from enrollment_service.core.errors import (
    AlreadyEnrolled,
    CourseNotFound,
    CourseNotPublished,
    ValidationError,
)
from enrollment_service.core.metrics import ENROLLMENTS
from enrollment_service.models.course import Course
from enrollment_service.models.enrollment import Enrollment
from enrollment_service.models.payment import Receipt
from enrollment_service.repos.course_repo import CourseRepo
from enrollment_service.repos.enrollment_repo import EnrollmentRepo
from enrollment_service.repos.progress_repo import ProgressRepo
from enrollment_service.services.payment_gateway import PaymentGateway
from enrollment_service.services.timeouts import bounded

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def utc_now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class EnrollmentLedger:
    def __init__(
        self,
        courses: CourseRepo,
        enrollments: EnrollmentRepo,
        progress: ProgressRepo,
        *,
        clock: Clock = utc_now,
        timeout_seconds: float = 5.0,
        payment_timeout_seconds: float = 10.0,
    ) -> None:
        self._courses = courses
        self._enrollments = enrollments
        self._progress = progress
        self._clock = clock
        self._timeout = timeout_seconds
        self._payment_timeout = payment_timeout_seconds

    async def enroll(
        self,
        student_id: UUID,
        course_id: UUID,
        amount_paid: Decimal | int | str | None = None,
        payment_reference: str | None = None,
    ) -> Enrollment:
        """Record that ``student_id`` has access to ``course_id``.

        ``amount_paid`` defaults to the course's current price.  Raises
        CourseNotFound, CourseNotPublished, AlreadyEnrolled, or
        ValidationError for a negative amount.  On success the course's
        enrollment counter is incremented and an empty progress record
        exists for the pair.
        """
        amount = None if amount_paid is None else _parse_amount(amount_paid)
        course = await self._enrollable_course(course_id)
        if amount is None:
            amount = course.price

        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            enrolled_at=self._clock(),
            amount_paid=amount,
            payment_reference=payment_reference,
        )
        created = await bounded(
            self._enrollments.add_if_absent(enrollment), self._timeout, "enrollment write"
        )
        if not created:
            ENROLLMENTS.labels(result="duplicate").inc()
            logger.warning(
                "Duplicate enrollment rejected student=%s course=%s",
                student_id,
                course_id,
                extra={"student_id": student_id, "course_id": course_id},
            )
            raise AlreadyEnrolled(student_id, course_id)

        await self._courses.increment_enrollment_count(course_id)
        await self._progress.ensure(student_id, course_id)

        ENROLLMENTS.labels(result="created").inc()
        logger.info(
            "Enrolled student=%s course=%s amount=%s",
            student_id,
            course_id,
            amount,
            extra={"student_id": student_id, "course_id": course_id},
        )
        return enrollment

    async def is_enrolled(self, student_id: UUID, course_id: UUID) -> bool:
        return await bounded(
            self._enrollments.exists(student_id, course_id),
            self._timeout,
            "enrollment read",
        )

    async def get_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        return await bounded(
            self._enrollments.get(student_id, course_id),
            self._timeout,
            "enrollment read",
        )

    async def list_for_student(self, student_id: UUID) -> list[Enrollment]:
        return await bounded(
            self._enrollments.list_by_student(student_id),
            self._timeout,
            "enrollment read",
        )

    async def list_for_course(self, course_id: UUID) -> list[Enrollment]:
        if await self._courses.get(course_id) is None:
            raise CourseNotFound(course_id)
        return await bounded(
            self._enrollments.list_by_course(course_id),
            self._timeout,
            "enrollment read",
        )

    async def purchase(
        self, student_id: UUID, course_id: UUID, gateway: PaymentGateway
    ) -> tuple[Enrollment, Receipt | None]:
        """Charge the course price, then enroll.

        An already-enrolled student is rejected before any charge.  The
        charge carries an idempotency key for the (student, course) pair,
        so a retry after a charge that timed out gets the same receipt back
        instead of a second charge.  Once charged, the enrollment is written
        and committed; if either step raises, the receipt is refunded
        before the error propagates.  Free courses are enrolled without
        touching the gateway.
        """
        course = await self._enrollable_course(course_id)
        if await self.is_enrolled(student_id, course_id):
            ENROLLMENTS.labels(result="duplicate").inc()
            raise AlreadyEnrolled(student_id, course_id)

        if course.price == 0:
            return await self.enroll(student_id, course_id, Decimal(0)), None

        receipt = await bounded(
            gateway.charge(
                student_id,
                course_id,
                course.price,
                "USD",
                idempotency_key=purchase_key(student_id, course_id),
            ),
            self._payment_timeout,
            "payment charge",
        )
        try:
            enrollment = await self.enroll(
                student_id, course_id, receipt.amount, payment_reference=receipt.id
            )
            await bounded(
                self._enrollments.commit(), self._timeout, "enrollment commit"
            )
        except Exception as e:
            logger.warning(
                "Refunding receipt=%s: enrollment failed (%s) student=%s course=%s",
                receipt.id,
                type(e).__name__,
                student_id,
                course_id,
                extra={"student_id": student_id, "course_id": course_id},
            )
            await bounded(
                gateway.refund(receipt), self._payment_timeout, "payment refund"
            )
            raise
        return enrollment, receipt

    async def _enrollable_course(self, course_id: UUID) -> Course:
        course = await bounded(
            self._courses.get(course_id), self._timeout, "course read"
        )
        if course is None:
            ENROLLMENTS.labels(result="rejected").inc()
            raise CourseNotFound(course_id)
        if not course.is_published:
            ENROLLMENTS.labels(result="rejected").inc()
            raise CourseNotPublished(course_id)
        return course


def _parse_amount(raw: Decimal | int | str) -> Decimal:
    try:
        amount = Decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"amount_paid must be a decimal (got {raw!r})") from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"amount_paid must be >= 0 (got {raw!r})")
    return amount


def purchase_key(student_id: UUID, course_id: UUID) -> str:
    """Idempotency key for the one charge a (student, course) pair may have."""
    return f"purchase:{student_id}:{course_id}"
