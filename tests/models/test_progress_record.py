"""Percentage arithmetic and record derivation."""

from __future__ import annotations

import uuid

import pytest

from enrollment_service.models.course import ContentTree
from enrollment_service.models.progress import ProgressRecord, completion_percentage
from tests.conftest import build_sections


@pytest.mark.parametrize(
    "completed,total,expected",
    [
        (0, 0, 0),
        (0, 5, 0),
        (4, 6, 67),
        (4, 7, 57),
        (1, 8, 13),  # 12.5 rounds up
        (1, 3, 33),
        (2, 3, 67),
        (3, 3, 100),
        (5, 3, 100),  # clamped
    ],
)
def test_completion_percentage(completed: int, total: int, expected: int) -> None:
    assert completion_percentage(completed, total) == expected


def _derive(stored: set[uuid.UUID], tree: ContentTree, **kw) -> ProgressRecord:
    return ProgressRecord.derive(
        student_id=uuid.uuid4(),
        course_id=tree.course_id,
        stored_lesson_ids=stored,
        tree=tree,
        **kw,
    )


def test_derive_ignores_lessons_no_longer_in_tree() -> None:
    tree = ContentTree.build(uuid.uuid4(), build_sections(2))
    kept = next(iter(tree)).id
    gone = uuid.uuid4()

    record = _derive({kept, gone}, tree, last_lesson_id=gone)

    assert record.completed_lesson_ids == frozenset({kept})
    assert record.percentage == 50
    assert record.last_lesson_id is None


def test_derive_sums_watched_seconds() -> None:
    tree = ContentTree.build(uuid.uuid4(), build_sections(3, duration=100))
    ids = [x.id for x in tree]

    record = _derive({ids[0], ids[2]}, tree)

    assert record.watched_seconds == 200
    assert record.total_seconds == 300


@pytest.mark.parametrize(
    "done,status",
    [(0, "not_started"), (1, "in_progress"), (3, "completed")],
)
def test_status(done: int, status: str) -> None:
    tree = ContentTree.build(uuid.uuid4(), build_sections(3))
    ids = [x.id for x in tree][:done]
    assert _derive(set(ids), tree).status == status
