from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from enrollment_service.models.course import ContentTree


def completion_percentage(completed: int, total: int) -> int:
    """Round-half-up integer percentage, clamped to [0, 100].

    Integer arithmetic so 0.5 always rounds up (round() would bank to even).
    A course with no lessons is 0% complete.
    """
    if total <= 0 or completed <= 0:
        return 0
    pct = (200 * completed + total) // (2 * total)
    return max(0, min(100, pct))


@dataclass(frozen=True, slots=True)
class StoredProgress:
    """What the store holds for a (student, course) pair.

    ``cached_percentage`` is last-writer-wins and informational only;
    reads always recompute against the current content tree.
    """

    student_id: UUID
    course_id: UUID
    lesson_ids: frozenset[UUID] = frozenset()
    cached_percentage: int = 0
    last_accessed_at: int | None = None
    last_lesson_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """Per-student, per-course completion state.

    ``completed_lesson_ids`` only ever holds lessons that exist in the
    current content tree; ``percentage`` is derived from it and the
    tree's *current* lesson count, so adding lessons to a course can
    lower a student's percentage without any action on their part.
    """

    student_id: UUID
    course_id: UUID
    completed_lesson_ids: frozenset[UUID]
    percentage: int
    total_lessons: int
    watched_seconds: int = 0
    total_seconds: int = 0
    last_accessed_at: int | None = None
    last_lesson_id: UUID | None = None

    @property
    def status(self) -> str:
        # not_started|in_progress|completed
        if self.percentage >= 100:
            return "completed"
        if self.completed_lesson_ids:
            return "in_progress"
        return "not_started"

    @staticmethod
    def derive(
        *,
        student_id: UUID,
        course_id: UUID,
        stored_lesson_ids: frozenset[UUID] | set[UUID],
        tree: ContentTree,
        last_accessed_at: int | None = None,
        last_lesson_id: UUID | None = None,
    ) -> ProgressRecord:
        """Recompute a record from the stored set against the current tree.

        Ids removed from the course since they were completed are dropped
        from the result (they no longer count toward the percentage).
        """
        valid = frozenset(stored_lesson_ids) & tree.lesson_ids
        if last_lesson_id is not None and not tree.contains(last_lesson_id):
            last_lesson_id = None
        return ProgressRecord(
            student_id=student_id,
            course_id=course_id,
            completed_lesson_ids=valid,
            percentage=completion_percentage(len(valid), tree.total_lessons),
            total_lessons=tree.total_lessons,
            watched_seconds=sum(tree.lesson_duration(lid) for lid in valid),
            total_seconds=tree.total_duration_seconds,
            last_accessed_at=last_accessed_at,
            last_lesson_id=last_lesson_id,
        )
