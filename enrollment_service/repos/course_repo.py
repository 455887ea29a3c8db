from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from enrollment_service.models.course import Course, Lesson, Section


class CourseRepo(Protocol):
    async def get(self, course_id: UUID) -> Course | None: ...
    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]: ...
    async def add(self, course: Course, sections: list[Section]) -> None: ...
    async def get_sections(self, course_id: UUID) -> list[Section] | None: ...
    async def replace_sections(
        self, course_id: UUID, sections: list[Section]
    ) -> None: ...
    async def increment_enrollment_count(self, course_id: UUID) -> None: ...
    async def set_rating(
        self, course_id: UUID, rating: float, review_count: int
    ) -> None: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._sections: dict[UUID, list[Section]] = {}

    async def get(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]:
        return [c for c in self._courses.values() if c.instructor_id == instructor_id]

    async def add(self, course: Course, sections: list[Section]) -> None:
        if course.id in self._courses:
            raise ValueError("course already exists")
        self._courses[course.id] = course
        self._sections[course.id] = list(sections)

    async def get_sections(self, course_id: UUID) -> list[Section] | None:
        if course_id not in self._courses:
            return None
        return list(self._sections.get(course_id, []))

    async def replace_sections(self, course_id: UUID, sections: list[Section]) -> None:
        if course_id not in self._courses:
            raise KeyError("course not found")
        self._sections[course_id] = list(sections)

    async def increment_enrollment_count(self, course_id: UUID) -> None:
        c = self._courses.get(course_id)
        if c is None:
            raise KeyError("course not found")
        self._courses[course_id] = replace(c, enrollment_count=c.enrollment_count + 1)

    async def set_rating(
        self, course_id: UUID, rating: float, review_count: int
    ) -> None:
        c = self._courses.get(course_id)
        if c is None:
            raise KeyError("course not found")
        self._courses[course_id] = replace(c, rating=rating, review_count=review_count)


def with_lesson_added(
    sections: list[Section], section_id: UUID, lesson: Lesson
) -> list[Section]:
    """Return a copy of ``sections`` with ``lesson`` appended to one section."""
    out: list[Section] = []
    found = False
    for s in sections:
        if s.id == section_id:
            found = True
            placed = replace(lesson, position=len(s.lessons))
            s = replace(s, lessons=(*s.lessons, placed))
        out.append(s)
    if not found:
        raise KeyError("section not found")
    return out


def with_lesson_removed(sections: list[Section], lesson_id: UUID) -> list[Section]:
    """Return a copy of ``sections`` without ``lesson_id``, positions re-packed."""
    out: list[Section] = []
    for s in sections:
        kept = [lesson for lesson in s.lessons if lesson.id != lesson_id]
        if len(kept) != len(s.lessons):
            kept = [replace(lesson, position=i) for i, lesson in enumerate(kept)]
            s = replace(s, lessons=tuple(kept))
        out.append(s)
    return out
