"""Progress tracker: completed-lesson sets and their percentages.

The stored set is only ever changed one lesson at a time (merge or
remove), and every returned record is re-derived against the current
content tree.  Nothing the client sends is trusted as a percentage.
"""

from __future__ import annotations

import logging
from uuid import UUID

from enrollment_service.core.errors import LessonNotFound, NotEnrolled
from enrollment_service.core.metrics import LESSON_COMPLETIONS
from enrollment_service.models.course import ContentTree
from enrollment_service.models.progress import ProgressRecord, StoredProgress
from enrollment_service.repos.enrollment_repo import EnrollmentRepo
from enrollment_service.repos.progress_repo import ProgressRepo
from enrollment_service.services.content_service import ContentService
from enrollment_service.services.enrollment_ledger import Clock, utc_now
from enrollment_service.services.timeouts import bounded

logger = logging.getLogger(__name__)


class ProgressTracker:
    def __init__(
        self,
        content: ContentService,
        enrollments: EnrollmentRepo,
        progress: ProgressRepo,
        *,
        clock: Clock = utc_now,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._content = content
        self._enrollments = enrollments
        self._progress = progress
        self._clock = clock
        self._timeout = timeout_seconds

    async def mark_complete(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> ProgressRecord:
        """Add ``lesson_id`` to the completed set.  Idempotent.

        Raises NotEnrolled, or LessonNotFound (record left untouched).
        """
        tree = await self._tree_for(student_id, course_id, lesson_id)
        stored = await bounded(
            self._progress.add_lesson(student_id, course_id, lesson_id, self._clock()),
            self._timeout,
            "progress write",
        )
        record = await self._settle(stored, tree)
        LESSON_COMPLETIONS.labels(action="complete").inc()
        logger.info(
            "Lesson completed student=%s course=%s lesson=%s pct=%d",
            student_id,
            course_id,
            lesson_id,
            record.percentage,
            extra={"student_id": student_id, "course_id": course_id},
        )
        return record

    async def unmark_complete(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> ProgressRecord:
        tree = await self._tree_for(student_id, course_id, lesson_id)
        stored = await bounded(
            self._progress.remove_lesson(
                student_id, course_id, lesson_id, self._clock()
            ),
            self._timeout,
            "progress write",
        )
        record = await self._settle(stored, tree)
        LESSON_COMPLETIONS.labels(action="uncomplete").inc()
        logger.info(
            "Lesson uncompleted student=%s course=%s lesson=%s pct=%d",
            student_id,
            course_id,
            lesson_id,
            record.percentage,
        )
        return record

    async def reset_progress(self, student_id: UUID, course_id: UUID) -> ProgressRecord:
        await self._require_enrollment(student_id, course_id)
        tree = await self._content.get_tree(course_id)
        stored = await bounded(
            self._progress.clear(student_id, course_id, self._clock()),
            self._timeout,
            "progress write",
        )
        LESSON_COMPLETIONS.labels(action="reset").inc()
        logger.info("Progress reset student=%s course=%s", student_id, course_id)
        return _derive(stored, tree)

    async def get_progress(self, student_id: UUID, course_id: UUID) -> ProgressRecord:
        """Current record for an enrolled pair.  Pure read.

        An enrolled pair without a stored record reads as zero progress.
        """
        await self._require_enrollment(student_id, course_id)
        tree = await self._content.get_tree(course_id)
        stored = await bounded(
            self._progress.get(student_id, course_id), self._timeout, "progress read"
        )
        if stored is None:
            stored = StoredProgress(student_id=student_id, course_id=course_id)
        return _derive(stored, tree)

    async def _tree_for(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> ContentTree:
        await self._require_enrollment(student_id, course_id)
        tree = await self._content.get_tree(course_id)
        if not tree.contains(lesson_id):
            logger.warning(
                "Unknown lesson rejected student=%s course=%s lesson=%s",
                student_id,
                course_id,
                lesson_id,
            )
            raise LessonNotFound(course_id, lesson_id)
        return tree

    async def _require_enrollment(self, student_id: UUID, course_id: UUID) -> None:
        enrolled = await bounded(
            self._enrollments.exists(student_id, course_id),
            self._timeout,
            "enrollment read",
        )
        if not enrolled:
            raise NotEnrolled(student_id, course_id)

    async def _settle(self, stored: StoredProgress, tree: ContentTree) -> ProgressRecord:
        record = _derive(stored, tree)
        # Informational only; last writer wins.
        await self._progress.set_cached_percentage(
            stored.student_id, stored.course_id, record.percentage
        )
        return record


def _derive(stored: StoredProgress, tree: ContentTree) -> ProgressRecord:
    return ProgressRecord.derive(
        student_id=stored.student_id,
        course_id=stored.course_id,
        stored_lesson_ids=stored.lesson_ids,
        tree=tree,
        last_accessed_at=stored.last_accessed_at,
        last_lesson_id=stored.last_lesson_id,
    )
