from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Durable record that a student paid for and gained access to a course.

    Created exactly once per (student_id, course_id); never mutated or
    deleted.  Cancellation is out of scope.
    """

    student_id: UUID
    course_id: UUID
    enrolled_at: int
    amount_paid: Decimal
    currency: str = "USD"
    payment_reference: str | None = None

    @property
    def key(self) -> tuple[UUID, UUID]:
        return (self.student_id, self.course_id)
