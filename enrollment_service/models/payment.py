from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Receipt:
    id: str
    student_id: UUID
    course_id: UUID
    amount: Decimal
    currency: str
    created_at: int
    status: str = "succeeded"  # succeeded|refunded
