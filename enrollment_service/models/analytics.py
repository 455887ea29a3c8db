from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True, slots=True)
class MonthBucket:
    month: str  # YYYY-MM
    label: str  # e.g. "Oct 26"
    enrollments: int = 0
    revenue: Decimal = Decimal(0)


@dataclass(frozen=True, slots=True)
class CourseComparisonRow:
    course_id: UUID
    title: str
    students: int
    revenue: Decimal
    rating: float


@dataclass(frozen=True, slots=True)
class ActivitySplit:
    """Per-enrollment counts: one student in two courses counts twice."""

    active: int = 0
    inactive: int = 0


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    """Read-time report over an instructor's courses.  Never persisted."""

    instructor_id: UUID
    window_months: int
    generated_at: int
    trend: tuple[MonthBucket, ...]
    courses: tuple[CourseComparisonRow, ...]
    rating_histogram: dict[int, int]
    activity: ActivitySplit
    total_enrollments: int
    total_revenue: Decimal
    course_count: int = 0
