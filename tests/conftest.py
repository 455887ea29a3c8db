from __future__ import annotations

import asyncio
import sys
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from enrollment_service.api import dependencies
from enrollment_service.main import app
from enrollment_service.models.course import Course, Lesson, Section
from enrollment_service.repos.course_repo import InMemoryCourseRepo
from enrollment_service.repos.enrollment_repo import InMemoryEnrollmentRepo
from enrollment_service.repos.progress_repo import InMemoryProgressRepo
from enrollment_service.services import token_service
from enrollment_service.services.analytics_service import AnalyticsService
from enrollment_service.services.cache import InMemoryCacheService, cache_service
from enrollment_service.services.content_service import ContentService
from enrollment_service.services.enrollment_ledger import EnrollmentLedger
from enrollment_service.services.payment_gateway import payment_gateway
from enrollment_service.services.progress_tracker import ProgressTracker

# Ensure repo root is on sys.path so `import enrollment_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Clear the in-memory repositories between tests."""
    dependencies.course_repo._courses.clear()
    dependencies.course_repo._sections.clear()
    dependencies.enrollment_repo._store.clear()
    dependencies.progress_repo._store.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_payments() -> None:
    if hasattr(payment_gateway, "_receipts"):
        payment_gateway._receipts.clear()  # type: ignore[union-attr]
        payment_gateway._by_key.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    user_id: uuid.UUID | str | None = None,
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    sub = str(user_id) if user_id is not None else str(uuid.uuid4())
    return token_service.create_access_token(sub=sub, roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(roles=["admin"])


# ---------------------------------------------------------------------------
# Course helpers
# ---------------------------------------------------------------------------


def build_sections(*lesson_counts: int, duration: int = 60) -> list[Section]:
    """Sections with the given number of lessons each, positions 0..n-1."""
    return [
        Section.new(
            title=f"Section {i + 1}",
            position=i,
            lessons=tuple(
                Lesson.new(
                    title=f"Lesson {i + 1}.{j + 1}",
                    position=j,
                    duration_seconds=duration,
                    is_preview=(i == 0 and j == 0),
                )
                for j in range(count)
            ),
        )
        for i, count in enumerate(lesson_counts)
    ]


def create_test_course(
    *lesson_counts: int,
    instructor_id: uuid.UUID | None = None,
    price: str | int = "49.99",
    is_published: bool = True,
    rating: float = 0.0,
    title: str = "Test Course",
) -> Course:
    """Create and persist a course in the in-memory repo."""
    course = Course.new(
        instructor_id=instructor_id or uuid.uuid4(),
        title=title,
        price=Decimal(price),
        is_published=is_published,
        rating=rating,
    )
    sections = build_sections(*(lesson_counts or (3,)))
    asyncio.run(dependencies.course_repo.add(course, sections))
    return course


def lesson_ids(course: Course) -> list[uuid.UUID]:
    sections = asyncio.run(dependencies.course_repo.get_sections(course.id))
    assert sections is not None
    return [x.id for s in sections for x in s.lessons]


# ---------------------------------------------------------------------------
# Service-level stores
# ---------------------------------------------------------------------------

# 2026-10-17T12:00:00Z
NOW = 1_792_238_400


@dataclass
class FakeClock:
    now: int = NOW

    def __call__(self) -> int:
        return self.now


@dataclass
class Stores:
    courses: InMemoryCourseRepo = field(default_factory=InMemoryCourseRepo)
    enrollments: InMemoryEnrollmentRepo = field(default_factory=InMemoryEnrollmentRepo)
    progress: InMemoryProgressRepo = field(default_factory=InMemoryProgressRepo)
    cache: InMemoryCacheService = field(default_factory=InMemoryCacheService)
    clock: FakeClock = field(default_factory=FakeClock)

    def content(self) -> ContentService:
        return ContentService(
            self.courses, self.cache, ttl_seconds=60, timeout_seconds=1
        )

    def ledger(self) -> EnrollmentLedger:
        return EnrollmentLedger(
            self.courses, self.enrollments, self.progress, clock=self.clock
        )

    def tracker(self) -> ProgressTracker:
        return ProgressTracker(
            self.content(), self.enrollments, self.progress, clock=self.clock
        )

    def analytics(self) -> AnalyticsService:
        return AnalyticsService(
            self.courses,
            self.enrollments,
            self.progress,
            self.content(),
            clock=self.clock,
        )

    def add_course(
        self,
        *lesson_counts: int,
        instructor_id: uuid.UUID | None = None,
        price: str = "10.00",
        is_published: bool = True,
        rating: float = 0.0,
        title: str = "Course",
    ) -> Course:
        course = Course.new(
            instructor_id=instructor_id or uuid.uuid4(),
            title=title,
            price=Decimal(price),
            is_published=is_published,
            rating=rating,
        )
        sections = build_sections(*(lesson_counts or (3,)))
        asyncio.run(self.courses.add(course, sections))
        return course


@pytest.fixture
def stores() -> Stores:
    return Stores()
