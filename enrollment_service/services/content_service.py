"""Content tree accessor.

Every progress percentage is computed against the tree this service
returns, so the cache in front of it is invalidated on every content
change made through here.  Authoring itself belongs to another service;
``add_lesson``/``remove_lesson``/``replace_tree`` exist for seeding and
for that collaborator's write path.
"""

from __future__ import annotations

import json
import logging
from uuid import UUID

from enrollment_service.core.errors import CourseNotFound, ValidationError
from enrollment_service.models.course import ContentTree, Lesson, Section
from enrollment_service.repos.course_repo import (
    CourseRepo,
    with_lesson_added,
    with_lesson_removed,
)
from enrollment_service.services.cache import CacheService
from enrollment_service.services.timeouts import bounded

logger = logging.getLogger(__name__)


def _cache_key(course_id: UUID) -> str:
    return f"content:{course_id}"


class ContentService:
    def __init__(
        self,
        courses: CourseRepo,
        cache: CacheService,
        ttl_seconds: int,
        timeout_seconds: float,
    ) -> None:
        self._courses = courses
        self._cache = cache
        self._ttl = ttl_seconds
        self._timeout = timeout_seconds

    async def get_tree(self, course_id: UUID) -> ContentTree:
        """Return the current tree for a course (read-through cached).

        Raises CourseNotFound if the course does not exist.
        """
        cached = await self._cache.get(_cache_key(course_id))
        if cached is not None:
            return tree_from_json(cached)

        sections = await bounded(
            self._courses.get_sections(course_id), self._timeout, "content read"
        )
        if sections is None:
            raise CourseNotFound(course_id)

        tree = ContentTree.build(course_id, sections)
        await self._cache.set(_cache_key(course_id), tree_to_json(tree), self._ttl)
        return tree

    async def add_lesson(
        self, course_id: UUID, section_id: UUID, lesson: Lesson
    ) -> ContentTree:
        """Append ``lesson`` at the end of a section."""
        sections = await self._sections_or_raise(course_id)
        try:
            updated = with_lesson_added(sections, section_id, lesson)
        except KeyError:
            raise ValidationError(
                f"section {section_id} not in course {course_id}"
            ) from None
        return await self.replace_tree(course_id, updated)

    async def remove_lesson(self, course_id: UUID, lesson_id: UUID) -> ContentTree:
        sections = await self._sections_or_raise(course_id)
        updated = with_lesson_removed(sections, lesson_id)
        return await self.replace_tree(course_id, updated)

    async def replace_tree(
        self, course_id: UUID, sections: list[Section]
    ) -> ContentTree:
        # Validate before writing anything.
        tree = ContentTree.build(course_id, sections)
        if await self._courses.get(course_id) is None:
            raise CourseNotFound(course_id)
        await self._courses.replace_sections(course_id, list(tree.sections))
        await self._cache.delete(_cache_key(course_id))
        logger.info(
            "Content changed course=%s lessons=%d", course_id, tree.total_lessons
        )
        return tree

    async def _sections_or_raise(self, course_id: UUID) -> list[Section]:
        sections = await self._courses.get_sections(course_id)
        if sections is None:
            raise CourseNotFound(course_id)
        return sections


# ---------------------------------------------------------------------------
# Cache serialization
# ---------------------------------------------------------------------------


def tree_to_json(tree: ContentTree) -> str:
    return json.dumps(
        {
            "course_id": str(tree.course_id),
            "sections": [
                {
                    "id": str(s.id),
                    "title": s.title,
                    "position": s.position,
                    "lessons": [
                        {
                            "id": str(x.id),
                            "title": x.title,
                            "position": x.position,
                            "type": x.type,
                            "duration_seconds": x.duration_seconds,
                            "is_preview": x.is_preview,
                        }
                        for x in s.lessons
                    ],
                }
                for s in tree.sections
            ],
        }
    )


def tree_from_json(raw: str) -> ContentTree:
    data = json.loads(raw)
    sections = [
        Section(
            id=UUID(s["id"]),
            title=s["title"],
            position=s["position"],
            lessons=tuple(
                Lesson(
                    id=UUID(x["id"]),
                    title=x["title"],
                    position=x["position"],
                    type=x["type"],
                    duration_seconds=x["duration_seconds"],
                    is_preview=x["is_preview"],
                )
                for x in s["lessons"]
            ),
        )
        for s in data["sections"]
    ]
    return ContentTree.build(UUID(data["course_id"]), sections)
