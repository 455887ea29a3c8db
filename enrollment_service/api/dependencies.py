from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from enrollment_service.core.config import SETTINGS
from enrollment_service.db.engine import async_session_factory, get_async_session
from enrollment_service.models.principal import Principal
from enrollment_service.repos.course_repo import CourseRepo, InMemoryCourseRepo
from enrollment_service.repos.enrollment_repo import (
    EnrollmentRepo,
    InMemoryEnrollmentRepo,
)
from enrollment_service.repos.pg_course_repo import PgCourseRepo
from enrollment_service.repos.pg_enrollment_repo import PgEnrollmentRepo
from enrollment_service.repos.pg_progress_repo import PgProgressRepo
from enrollment_service.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from enrollment_service.services import token_service
from enrollment_service.services.analytics_service import AnalyticsService
from enrollment_service.services.cache import cache_service
from enrollment_service.services.content_service import ContentService
from enrollment_service.services.enrollment_ledger import EnrollmentLedger
from enrollment_service.services.payment_gateway import (
    PaymentGateway,
    payment_gateway,
)
from enrollment_service.services.progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

# Tokens are issued by the external auth service; tokenUrl is informational.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any protected endpoint.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
        UUID(claims["sub"])
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def require_any_role(roles: set[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"admin", "instructor"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                roles,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
# In-memory singletons serve dev and tests (conftest.py clears them between
# tests).  With DATABASE_URL set, every request gets its own session and
# the Pg repos share it, so one request is one transaction.

course_repo = InMemoryCourseRepo()
enrollment_repo = InMemoryEnrollmentRepo()
progress_repo = InMemoryProgressRepo()


async def get_session() -> AsyncGenerator[AsyncSession | None, None]:
    if async_session_factory is None:
        yield None
        return
    async for session in get_async_session():
        yield session


SessionDep = Annotated[AsyncSession | None, Depends(get_session)]


def get_course_repo(session: SessionDep) -> CourseRepo:
    return course_repo if session is None else PgCourseRepo(session)


def get_enrollment_repo(session: SessionDep) -> EnrollmentRepo:
    return enrollment_repo if session is None else PgEnrollmentRepo(session)


def get_progress_repo(session: SessionDep) -> ProgressRepo:
    return progress_repo if session is None else PgProgressRepo(session)


CourseRepoDep = Annotated[CourseRepo, Depends(get_course_repo)]
EnrollmentRepoDep = Annotated[EnrollmentRepo, Depends(get_enrollment_repo)]
ProgressRepoDep = Annotated[ProgressRepo, Depends(get_progress_repo)]


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def get_content_service(courses: CourseRepoDep) -> ContentService:
    return ContentService(
        courses,
        cache_service,
        ttl_seconds=SETTINGS.content_cache_ttl_seconds,
        timeout_seconds=SETTINGS.storage_timeout_seconds,
    )


ContentServiceDep = Annotated[ContentService, Depends(get_content_service)]


def get_enrollment_ledger(
    courses: CourseRepoDep,
    enrollments: EnrollmentRepoDep,
    progress: ProgressRepoDep,
) -> EnrollmentLedger:
    return EnrollmentLedger(
        courses,
        enrollments,
        progress,
        timeout_seconds=SETTINGS.storage_timeout_seconds,
        payment_timeout_seconds=SETTINGS.payment_timeout_seconds,
    )


def get_progress_tracker(
    content: ContentServiceDep,
    enrollments: EnrollmentRepoDep,
    progress: ProgressRepoDep,
) -> ProgressTracker:
    return ProgressTracker(
        content,
        enrollments,
        progress,
        timeout_seconds=SETTINGS.storage_timeout_seconds,
    )


def get_analytics_service(
    courses: CourseRepoDep,
    enrollments: EnrollmentRepoDep,
    progress: ProgressRepoDep,
    content: ContentServiceDep,
) -> AnalyticsService:
    return AnalyticsService(
        courses,
        enrollments,
        progress,
        content,
        timeout_seconds=SETTINGS.storage_timeout_seconds,
        default_window_months=SETTINGS.analytics_window_months,
    )


def get_payment_gateway() -> PaymentGateway:
    return payment_gateway


EnrollmentLedgerDep = Annotated[EnrollmentLedger, Depends(get_enrollment_ledger)]
ProgressTrackerDep = Annotated[ProgressTracker, Depends(get_progress_tracker)]
AnalyticsServiceDep = Annotated[AnalyticsService, Depends(get_analytics_service)]
PaymentGatewayDep = Annotated[PaymentGateway, Depends(get_payment_gateway)]
