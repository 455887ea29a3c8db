"""Application metrics using the Prometheus client library.

This module defines all metrics in one place — a single inventory of
everything the service measures.  Other modules import specific metrics
and increment/observe them at the point of action.

  COUNTER   only goes up; Prometheus derives rates with rate().
  GAUGE     goes up and down; a snapshot of current state.
  HISTOGRAM observations grouped into buckets; Prometheus derives
            percentiles with histogram_quantile().

Prometheus PULLS these from GET /metrics on its own schedule.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Domain metrics
# ---------------------------------------------------------------------------
# Incremented in the service that owns the behavior.

ENROLLMENTS = Counter(
    "enrollments_total",
    "Enrollment attempts by outcome",
    ["result"],  # "created", "duplicate", "rejected"
)

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "Progress mutations by action",
    ["action"],  # "complete", "uncomplete", "reset"
)

ANALYTICS_COURSE_FAILURES = Counter(
    "analytics_course_failures_total",
    "Courses skipped in an analytics report because their data could not be read",
)

ANALYTICS_REPORT_DURATION = Histogram(
    "analytics_report_duration_seconds",
    "Time to build one instructor analytics report",
    # Reports fan out one read per course; a few hundred ms is normal.
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Content-tree cache operations by result",
    ["operation"],  # "hit", "miss", "invalidate", "error"
)
