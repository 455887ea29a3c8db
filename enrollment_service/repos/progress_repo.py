from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from enrollment_service.models.progress import StoredProgress


class ProgressRepo(Protocol):
    async def get(self, student_id: UUID, course_id: UUID) -> StoredProgress | None: ...
    async def ensure(self, student_id: UUID, course_id: UUID) -> None: ...

    async def add_lesson(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID, at: int
    ) -> StoredProgress:
        """Merge one lesson id into the stored set (creating the record lazily)."""
        ...

    async def remove_lesson(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID, at: int
    ) -> StoredProgress: ...

    async def clear(
        self, student_id: UUID, course_id: UUID, at: int
    ) -> StoredProgress: ...

    async def set_cached_percentage(
        self, student_id: UUID, course_id: UUID, percentage: int
    ) -> None: ...

    async def list_by_course(self, course_id: UUID) -> list[StoredProgress]: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], StoredProgress] = {}
        self._lock = threading.Lock()

    async def get(self, student_id: UUID, course_id: UUID) -> StoredProgress | None:
        return self._store.get((student_id, course_id))

    async def ensure(self, student_id: UUID, course_id: UUID) -> None:
        with self._lock:
            self._store.setdefault(
                (student_id, course_id),
                StoredProgress(student_id=student_id, course_id=course_id),
            )

    async def add_lesson(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID, at: int
    ) -> StoredProgress:
        with self._lock:
            current = self._current(student_id, course_id)
            updated = replace(
                current,
                lesson_ids=current.lesson_ids | {lesson_id},
                last_accessed_at=at,
                last_lesson_id=lesson_id,
            )
            self._store[(student_id, course_id)] = updated
            return updated

    async def remove_lesson(
        self, student_id: UUID, course_id: UUID, lesson_id: UUID, at: int
    ) -> StoredProgress:
        with self._lock:
            current = self._current(student_id, course_id)
            updated = replace(
                current,
                lesson_ids=current.lesson_ids - {lesson_id},
                last_accessed_at=at,
            )
            self._store[(student_id, course_id)] = updated
            return updated

    async def clear(self, student_id: UUID, course_id: UUID, at: int) -> StoredProgress:
        with self._lock:
            current = self._current(student_id, course_id)
            updated = replace(
                current,
                lesson_ids=frozenset(),
                cached_percentage=0,
                last_accessed_at=at,
                last_lesson_id=None,
            )
            self._store[(student_id, course_id)] = updated
            return updated

    async def set_cached_percentage(
        self, student_id: UUID, course_id: UUID, percentage: int
    ) -> None:
        with self._lock:
            current = self._current(student_id, course_id)
            self._store[(student_id, course_id)] = replace(
                current, cached_percentage=percentage
            )

    async def list_by_course(self, course_id: UUID) -> list[StoredProgress]:
        return [p for p in self._store.values() if p.course_id == course_id]

    def _current(self, student_id: UUID, course_id: UUID) -> StoredProgress:
        return self._store.get(
            (student_id, course_id),
            StoredProgress(student_id=student_id, course_id=course_id),
        )
