"""Instructor analytics.

  GET /v1/instructors/{instructor_id}/analytics?window_months=6

Readable by the instructor themself or an admin.  The snapshot is built
per request and never stored.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from enrollment_service.api.dependencies import AnalyticsServiceDep, require_any_role
from enrollment_service.core.errors import UnauthorizedError
from enrollment_service.models.analytics import AnalyticsSnapshot
from enrollment_service.models.principal import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/instructors", tags=["analytics"])


class MonthBucketOut(BaseModel):
    month: str
    label: str
    enrollments: int
    revenue: Decimal


class CourseRowOut(BaseModel):
    course_id: UUID
    title: str
    students: int
    revenue: Decimal
    rating: float


class ActivityOut(BaseModel):
    active: int
    inactive: int


class AnalyticsOut(BaseModel):
    instructor_id: UUID
    window_months: int
    generated_at: int
    trend: list[MonthBucketOut]
    courses: list[CourseRowOut]
    rating_histogram: dict[int, int]
    activity: ActivityOut
    total_enrollments: int
    total_revenue: Decimal
    course_count: int

    @staticmethod
    def of(s: AnalyticsSnapshot) -> AnalyticsOut:
        return AnalyticsOut(
            instructor_id=s.instructor_id,
            window_months=s.window_months,
            generated_at=s.generated_at,
            trend=[
                MonthBucketOut(
                    month=b.month,
                    label=b.label,
                    enrollments=b.enrollments,
                    revenue=b.revenue,
                )
                for b in s.trend
            ],
            courses=[
                CourseRowOut(
                    course_id=r.course_id,
                    title=r.title,
                    students=r.students,
                    revenue=r.revenue,
                    rating=r.rating,
                )
                for r in s.courses
            ],
            rating_histogram=dict(s.rating_histogram),
            activity=ActivityOut(active=s.activity.active, inactive=s.activity.inactive),
            total_enrollments=s.total_enrollments,
            total_revenue=s.total_revenue,
            course_count=s.course_count,
        )


@router.get("/{instructor_id}/analytics", response_model=AnalyticsOut)
async def get_instructor_analytics(
    instructor_id: UUID,
    principal: Annotated[
        Principal, Depends(require_any_role({"instructor", "admin"}))
    ],
    analytics: AnalyticsServiceDep,
    window_months: Annotated[int | None, Query()] = None,
) -> AnalyticsOut:
    if not principal.acts_for(instructor_id):
        logger.warning(
            "Access denied: user=%s cannot read analytics of instructor=%s",
            principal.user_id,
            instructor_id,
        )
        raise UnauthorizedError("cannot read another instructor's analytics")
    snapshot = await analytics.build_instructor_report(instructor_id, window_months)
    return AnalyticsOut.of(snapshot)
