"""ContentTree construction and queries."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from enrollment_service.core.errors import ValidationError
from enrollment_service.models.course import ContentTree, Course, Lesson, Section
from tests.conftest import build_sections


def test_build_orders_sections_and_lessons_by_position() -> None:
    a = Lesson.new(title="a", position=0)
    b = Lesson.new(title="b", position=1)
    s0 = Section.new(title="first", position=0, lessons=(b, a))
    s1 = Section.new(title="second", position=1)

    tree = ContentTree.build(uuid.uuid4(), [s1, s0])

    assert [s.title for s in tree.sections] == ["first", "second"]
    assert [x.title for x in tree] == ["a", "b"]


def test_totals_and_lookups() -> None:
    sections = build_sections(2, 3, duration=120)
    tree = ContentTree.build(uuid.uuid4(), sections)
    first = sections[0].lessons[0]

    assert tree.total_lessons == 5
    assert tree.total_duration_seconds == 600
    assert tree.contains(first.id)
    assert not tree.contains(uuid.uuid4())
    assert tree.lesson_duration(first.id) == 120
    assert tree.lesson_duration(uuid.uuid4()) == 0
    assert tree.preview_lesson_ids == frozenset({first.id})


def test_empty_course_has_no_lessons() -> None:
    tree = ContentTree.build(uuid.uuid4(), [])
    assert tree.total_lessons == 0
    assert list(tree) == []


def test_rejects_gap_in_section_positions() -> None:
    with pytest.raises(ValidationError, match="contiguous"):
        ContentTree.build(
            uuid.uuid4(),
            [Section.new(title="a", position=0), Section.new(title="b", position=2)],
        )


def test_rejects_duplicate_lesson_positions() -> None:
    section = Section.new(
        title="s",
        position=0,
        lessons=(Lesson.new(title="a", position=0), Lesson.new(title="b", position=0)),
    )
    with pytest.raises(ValidationError):
        ContentTree.build(uuid.uuid4(), [section])


def test_rejects_lesson_id_shared_across_sections() -> None:
    lesson = Lesson.new(title="a", position=0)
    sections = [
        Section.new(title="s0", position=0, lessons=(lesson,)),
        Section.new(title="s1", position=1, lessons=(lesson,)),
    ]
    with pytest.raises(ValidationError, match="duplicate lesson id"):
        ContentTree.build(uuid.uuid4(), sections)


def test_rejects_unknown_lesson_type() -> None:
    section = Section.new(
        title="s", position=0, lessons=(Lesson.new(title="a", position=0, type="vr"),)
    )
    with pytest.raises(ValidationError, match="unknown lesson type"):
        ContentTree.build(uuid.uuid4(), [section])


def test_rejects_negative_duration() -> None:
    section = Section.new(
        title="s",
        position=0,
        lessons=(Lesson.new(title="a", position=0, duration_seconds=-1),),
    )
    with pytest.raises(ValidationError):
        ContentTree.build(uuid.uuid4(), [section])


def test_course_rejects_negative_price() -> None:
    with pytest.raises(ValidationError, match="price"):
        Course.new(instructor_id=uuid.uuid4(), title="t", price=Decimal("-1"))
