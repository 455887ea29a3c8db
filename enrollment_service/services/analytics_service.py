"""Instructor analytics, computed on demand from the ledger and progress.

Nothing here is persisted.  The report is a read-only scan over every
course the instructor owns; a course whose data cannot be read (timeout,
storage error) is logged, counted in ``analytics_course_failures_total``,
and left out of the report entirely while the rest still render.
"""

from __future__ import annotations

import datetime
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from enrollment_service.core.errors import CoreError, ValidationError
from enrollment_service.core.metrics import (
    ANALYTICS_COURSE_FAILURES,
    ANALYTICS_REPORT_DURATION,
)
from enrollment_service.models.analytics import (
    ActivitySplit,
    AnalyticsSnapshot,
    CourseComparisonRow,
    MonthBucket,
)
from enrollment_service.models.course import ContentTree, Course
from enrollment_service.models.enrollment import Enrollment
from enrollment_service.models.progress import ProgressRecord, StoredProgress
from enrollment_service.repos.course_repo import CourseRepo
from enrollment_service.repos.enrollment_repo import EnrollmentRepo
from enrollment_service.repos.progress_repo import ProgressRepo
from enrollment_service.services.content_service import ContentService
from enrollment_service.services.enrollment_ledger import Clock, utc_now
from enrollment_service.services.timeouts import bounded

logger = logging.getLogger(__name__)

MIN_WINDOW_MONTHS = 1
MAX_WINDOW_MONTHS = 24

# Fixed English abbreviations; strftime("%b") follows the process locale.
_MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)  # fmt: skip


@dataclass(frozen=True, slots=True)
class _CourseData:
    course: Course
    enrollments: list[Enrollment]
    progress: dict[UUID, StoredProgress]  # by student_id
    tree: ContentTree


def month_window(now: int, window_months: int) -> list[tuple[str, str]]:
    """The last ``window_months`` calendar months ending at ``now`` (UTC).

    Returns ``(YYYY-MM, "Mon YY")`` pairs, oldest first.
    """
    current = datetime.datetime.fromtimestamp(now, datetime.UTC)
    index = current.year * 12 + (current.month - 1)
    out: list[tuple[str, str]] = []
    for i in range(index - window_months + 1, index + 1):
        year, month0 = divmod(i, 12)
        out.append(
            (f"{year:04d}-{month0 + 1:02d}", f"{_MONTH_ABBR[month0]} {year % 100:02d}")
        )
    return out


def month_key(epoch_seconds: int) -> str:
    dt = datetime.datetime.fromtimestamp(epoch_seconds, datetime.UTC)
    return f"{dt.year:04d}-{dt.month:02d}"


def star_bucket(rating: float) -> int:
    """Round half-up to a whole star (4.5 → 5, 4.4 → 4)."""
    return int(Decimal(str(rating)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


class AnalyticsService:
    def __init__(
        self,
        courses: CourseRepo,
        enrollments: EnrollmentRepo,
        progress: ProgressRepo,
        content: ContentService,
        *,
        clock: Clock = utc_now,
        timeout_seconds: float = 5.0,
        default_window_months: int = 6,
    ) -> None:
        self._courses = courses
        self._enrollments = enrollments
        self._progress = progress
        self._content = content
        self._clock = clock
        self._timeout = timeout_seconds
        self._default_window = default_window_months

    async def build_instructor_report(
        self,
        instructor_id: UUID,
        window_months: int | None = None,
        now: int | None = None,
    ) -> AnalyticsSnapshot:
        if window_months is None:
            window_months = self._default_window
        if not MIN_WINDOW_MONTHS <= window_months <= MAX_WINDOW_MONTHS:
            raise ValidationError(
                f"window_months must be {MIN_WINDOW_MONTHS}..{MAX_WINDOW_MONTHS} "
                f"(got {window_months})"
            )
        if now is None:
            now = self._clock()

        started = time.perf_counter()
        courses = await bounded(
            self._courses.list_by_instructor(instructor_id),
            self._timeout,
            "course list",
        )

        # Sequential: a request-scoped DB session is not safe for concurrent use.
        loaded: list[_CourseData] = []
        for course in courses:
            data = await self._load_course(course)
            if data is not None:
                loaded.append(data)

        snapshot = _aggregate(instructor_id, window_months, now, loaded)
        ANALYTICS_REPORT_DURATION.observe(time.perf_counter() - started)
        logger.info(
            "Analytics built instructor=%s courses=%d/%d window=%d",
            instructor_id,
            len(loaded),
            len(courses),
            window_months,
        )
        return snapshot

    async def _load_course(self, course: Course) -> _CourseData | None:
        # One savepoint per course: a failed read rolls back only this
        # course and the session stays usable for the next one.
        try:
            async with self._enrollments.savepoint():
                enrollments = await bounded(
                    self._enrollments.list_by_course(course.id),
                    self._timeout,
                    "analytics enrollment read",
                )
                progress = await bounded(
                    self._progress.list_by_course(course.id),
                    self._timeout,
                    "analytics progress read",
                )
                tree = await self._content.get_tree(course.id)
        except (CoreError, SQLAlchemyError) as e:
            ANALYTICS_COURSE_FAILURES.inc()
            logger.warning(
                "Analytics course fetch failed course=%s: %s", course.id, e
            )
            return None
        return _CourseData(
            course=course,
            enrollments=enrollments,
            progress={p.student_id: p for p in progress},
            tree=tree,
        )


def _aggregate(
    instructor_id: UUID,
    window_months: int,
    now: int,
    loaded: Sequence[_CourseData],
) -> AnalyticsSnapshot:
    window = month_window(now, window_months)
    counts: dict[str, int] = {key: 0 for key, _ in window}
    revenue: dict[str, Decimal] = {key: Decimal(0) for key, _ in window}

    rows: list[CourseComparisonRow] = []
    histogram = {star: 0 for star in range(1, 6)}
    active = inactive = 0

    for data in loaded:
        course = data.course
        for e in data.enrollments:
            key = month_key(e.enrolled_at)
            if key in counts:
                counts[key] += 1
                # Revenue uses the course's current price.
                revenue[key] += course.price

            stored = data.progress.get(e.student_id)
            lesson_ids = stored.lesson_ids if stored is not None else frozenset()
            record = ProgressRecord.derive(
                student_id=e.student_id,
                course_id=course.id,
                stored_lesson_ids=lesson_ids,
                tree=data.tree,
            )
            # Per enrollment: a student in two courses is counted twice.
            if record.percentage > 0:
                active += 1
            else:
                inactive += 1

        rows.append(
            CourseComparisonRow(
                course_id=course.id,
                title=course.title,
                students=course.enrollment_count,
                revenue=course.price * course.enrollment_count,
                rating=course.rating,
            )
        )

        star = star_bucket(course.rating)
        if star in histogram:  # unrated courses round to 0 and are skipped
            histogram[star] += 1

    trend = tuple(
        MonthBucket(month=key, label=label, enrollments=counts[key], revenue=revenue[key])
        for key, label in window
    )
    return AnalyticsSnapshot(
        instructor_id=instructor_id,
        window_months=window_months,
        generated_at=now,
        trend=trend,
        courses=tuple(rows),
        rating_histogram=histogram,
        activity=ActivitySplit(active=active, inactive=inactive),
        total_enrollments=sum(r.students for r in rows),
        total_revenue=sum((r.revenue for r in rows), Decimal(0)),
        course_count=len(rows),
    )
