"""Bounded awaits for storage and gateway calls.

A call that does not finish in time, or whose connection fails, becomes an
UpstreamUnavailableError so the API answers 503 with Retry-After instead
of hanging the request.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from enrollment_service.core.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def bounded(call: Awaitable[T], timeout_seconds: float, what: str) -> T:
    try:
        return await asyncio.wait_for(call, timeout=timeout_seconds)
    except TimeoutError:
        logger.warning("%s timed out after %.1fs", what, timeout_seconds)
        raise UpstreamUnavailableError(f"{what} timed out") from None
    except OperationalError as e:
        logger.warning("%s failed: %s", what, e)
        raise UpstreamUnavailableError(f"{what} unavailable") from None
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        logger.warning("%s lost its connection: %s", what, e)
        raise UpstreamUnavailableError(f"{what} unavailable") from None
