from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from enrollment_service.api.analytics import router as analytics_router
from enrollment_service.api.courses import router as courses_router
from enrollment_service.api.enrollments import router as enrollments_router
from enrollment_service.api.errors import register_error_handlers
from enrollment_service.api.health import router as health_router
from enrollment_service.api.metrics_endpoint import router as metrics_router
from enrollment_service.api.payments import router as payments_router
from enrollment_service.api.progress import router as progress_router
from enrollment_service.core.config import SETTINGS
from enrollment_service.core.logging import setup_logging
from enrollment_service.db.engine import lifespan_db
from enrollment_service.db.redis import lifespan_redis
from enrollment_service.middleware.metrics import MetricsMiddleware
from enrollment_service.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one fails.
    async with lifespan_db():
        async with lifespan_redis():
            yield


# only app setup + router registration

app = FastAPI(
    title="enrollment-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Middleware execution order: last-added runs first (outermost layer).
# RequestContext (outermost) → Metrics → route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(analytics_router)
app.include_router(courses_router)
app.include_router(enrollments_router)
app.include_router(payments_router)
app.include_router(progress_router)

logger.info(
    "enrollment-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
