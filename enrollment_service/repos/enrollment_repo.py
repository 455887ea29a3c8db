from __future__ import annotations

import threading
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol
from uuid import UUID

from enrollment_service.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def add_if_absent(self, enrollment: Enrollment) -> bool:
        """Insert unless the (student, course) pair exists.  Atomic.

        Returns True when this call created the row, False when a row for
        the pair was already there.  Never raises on a duplicate and never
        inserts a second row.
        """
        ...

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None: ...
    async def exists(self, student_id: UUID, course_id: UUID) -> bool: ...
    async def list_by_student(self, student_id: UUID) -> list[Enrollment]: ...
    async def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...

    async def commit(self) -> None:
        """Make the writes so far durable before the caller acts on them."""
        ...

    def savepoint(self) -> AbstractAsyncContextManager[None]:
        """Scope a group of reads so a failure inside it is rolled back alone.

        Later statements on the same session still run after an exception
        escapes the block.
        """
        ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[UUID, UUID], Enrollment] = {}
        # Guards the check-and-insert.  The critical section never awaits,
        # so a plain lock also covers handlers running on other threads.
        self._lock = threading.Lock()

    async def add_if_absent(self, enrollment: Enrollment) -> bool:
        with self._lock:
            if enrollment.key in self._store:
                return False
            self._store[enrollment.key] = enrollment
            return True

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        return self._store.get((student_id, course_id))

    async def exists(self, student_id: UUID, course_id: UUID) -> bool:
        return (student_id, course_id) in self._store

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        found = [e for e in self._store.values() if e.student_id == student_id]
        return sorted(found, key=lambda e: e.enrolled_at, reverse=True)

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        found = [e for e in self._store.values() if e.course_id == course_id]
        return sorted(found, key=lambda e: e.enrolled_at, reverse=True)

    async def commit(self) -> None:
        pass  # writes are visible as soon as they are made

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        # Nothing to roll back: reads never leave the store half-written.
        yield
