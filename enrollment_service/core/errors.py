"""Error taxonomy for the enrollment core.

Services raise these; the API layer translates them into HTTP responses
in exactly one place (enrollment_service/api/errors.py).  Each error carries a stable
machine-readable ``code`` so clients can tell "already enrolled" apart
from a generic failure without parsing the message.

  NotFoundError            → 404  course / lesson / enrollment missing
  ConflictError            → 409  duplicate enrollment
  UnauthorizedError        → 403  caller lacks role or ownership
  ValidationError          → 422  malformed input, unpublished course
  PaymentDeclinedError     → 402  gateway refused the charge
  UpstreamUnavailableError → 503  storage / gateway timeout (retryable)
"""

from __future__ import annotations


class CoreError(Exception):
    """Base error for the enrollment core."""

    code = "core_error"
    retryable = False

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class NotFoundError(CoreError):
    code = "not_found"


class ConflictError(CoreError):
    code = "conflict"


class UnauthorizedError(CoreError):
    code = "unauthorized"


class ValidationError(CoreError):
    code = "validation_error"


class PaymentDeclinedError(CoreError):
    code = "payment_declined"


class UpstreamUnavailableError(CoreError):
    """Storage or gateway did not answer in time.  Safe to retry with backoff."""

    code = "upstream_unavailable"
    retryable = True

    def __init__(self, message: str, retry_after_seconds: int = 1) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)


# --- Concrete domain errors ---


class CourseNotFound(NotFoundError):
    def __init__(self, course_id: object) -> None:
        self.course_id = course_id
        super().__init__(f"course not found: {course_id}", "course_not_found")


class LessonNotFound(NotFoundError):
    def __init__(self, course_id: object, lesson_id: object) -> None:
        self.course_id = course_id
        self.lesson_id = lesson_id
        super().__init__(
            f"lesson {lesson_id} is not part of course {course_id}",
            "lesson_not_found",
        )


class NotEnrolled(NotFoundError):
    def __init__(self, student_id: object, course_id: object) -> None:
        self.student_id = student_id
        self.course_id = course_id
        super().__init__(
            f"student {student_id} is not enrolled in course {course_id}",
            "not_enrolled",
        )


class AlreadyEnrolled(ConflictError):
    def __init__(self, student_id: object, course_id: object) -> None:
        self.student_id = student_id
        self.course_id = course_id
        super().__init__(
            f"student {student_id} is already enrolled in course {course_id}",
            "already_enrolled",
        )


class CourseNotPublished(ValidationError):
    def __init__(self, course_id: object) -> None:
        self.course_id = course_id
        super().__init__(
            f"course {course_id} is not available for enrollment",
            "course_not_published",
        )
