from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID, uuid4

from enrollment_service.core.errors import ValidationError

LESSON_TYPES = ("video", "quiz", "text")


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    title: str
    position: int
    type: str = "video"  # video|quiz|text
    duration_seconds: int = 0
    is_preview: bool = False

    @staticmethod
    def new(
        *,
        title: str,
        position: int,
        type: str = "video",
        duration_seconds: int = 0,
        is_preview: bool = False,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            title=title,
            position=position,
            type=type,
            duration_seconds=duration_seconds,
            is_preview=is_preview,
        )


@dataclass(frozen=True, slots=True)
class Section:
    id: UUID
    title: str
    position: int
    lessons: tuple[Lesson, ...] = ()

    @staticmethod
    def new(
        *, title: str, position: int, lessons: tuple[Lesson, ...] = ()
    ) -> Section:
        return Section(id=uuid4(), title=title, position=position, lessons=lessons)


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    instructor_id: UUID
    title: str
    price: Decimal
    is_published: bool = True
    enrollment_count: int = 0
    rating: float = 0.0  # 0..5, maintained by the review collaborator
    review_count: int = 0

    @staticmethod
    def new(
        *,
        instructor_id: UUID,
        title: str,
        price: Decimal | int | str,
        is_published: bool = True,
        rating: float = 0.0,
    ) -> Course:
        price = Decimal(price)
        if price < 0:
            raise ValidationError("price cannot be negative")
        return Course(
            id=uuid4(),
            instructor_id=instructor_id,
            title=title,
            price=price,
            is_published=is_published,
            rating=rating,
        )


@dataclass(frozen=True, slots=True)
class ContentTree:
    """Ordered sections → lessons of one course.

    The tree is the source of truth for the lesson count every progress
    percentage is computed against.  Built through ``ContentTree.build``
    so ordering and uniqueness are checked once, up front.
    """

    course_id: UUID
    sections: tuple[Section, ...] = ()
    _lessons: dict[UUID, Lesson] = field(default_factory=dict, repr=False)

    @staticmethod
    def build(
        course_id: UUID, sections: tuple[Section, ...] | list[Section]
    ) -> ContentTree:
        ordered = tuple(sorted(sections, key=lambda s: s.position))
        _check_dense("section", [s.position for s in ordered])

        lessons: dict[UUID, Lesson] = {}
        normalized: list[Section] = []
        for section in ordered:
            section_lessons = tuple(sorted(section.lessons, key=lambda x: x.position))
            _check_dense(
                f"lesson in section {section.id}", [x.position for x in section_lessons]
            )
            for lesson in section_lessons:
                if lesson.type not in LESSON_TYPES:
                    raise ValidationError(f"unknown lesson type: {lesson.type!r}")
                if lesson.duration_seconds < 0:
                    raise ValidationError("lesson duration cannot be negative")
                if lesson.id in lessons:
                    raise ValidationError(f"duplicate lesson id in course: {lesson.id}")
                lessons[lesson.id] = lesson
            normalized.append(
                Section(
                    id=section.id,
                    title=section.title,
                    position=section.position,
                    lessons=section_lessons,
                )
            )

        return ContentTree(
            course_id=course_id, sections=tuple(normalized), _lessons=lessons
        )

    def __iter__(self) -> Iterator[Lesson]:
        for section in self.sections:
            yield from section.lessons

    @property
    def lesson_ids(self) -> frozenset[UUID]:
        return frozenset(self._lessons)

    @property
    def total_lessons(self) -> int:
        return len(self._lessons)

    @property
    def total_duration_seconds(self) -> int:
        return sum(x.duration_seconds for x in self._lessons.values())

    @property
    def preview_lesson_ids(self) -> frozenset[UUID]:
        return frozenset(x.id for x in self._lessons.values() if x.is_preview)

    def contains(self, lesson_id: UUID) -> bool:
        return lesson_id in self._lessons

    def lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    def lesson_duration(self, lesson_id: UUID) -> int:
        lesson = self._lessons.get(lesson_id)
        return lesson.duration_seconds if lesson is not None else 0


def _check_dense(what: str, positions: list[int]) -> None:
    # Order indices must be exactly 0..n-1 per parent.
    if positions != list(range(len(positions))):
        raise ValidationError(
            f"{what} positions must be contiguous from 0 (got {positions})"
        )
