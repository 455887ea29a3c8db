"""Prometheus metrics endpoint.

Prometheus scrapes this every N seconds.  The body is the plain-text
exposition format, not JSON:

  # TYPE enrollments_total counter
  enrollments_total{result="created"} 1432.0
  enrollments_total{result="duplicate"} 17.0

Metric data reveals request rates and error patterns; restrict /metrics
to the Prometheus server at the ingress.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose all Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
