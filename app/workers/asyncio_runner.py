from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")
logger = structlog.get_logger(__name__)


async def _run_job(job_name: str, awaitable: Awaitable[T]) -> T:
    # Celery workers call asyncio.run per task; pooled connections must not outlive the loop.
    await dispose_engine()
    started = time.monotonic()
    try:
        result = await awaitable
    except Exception:
        logger.exception("worker_job_failed", job=job_name)
        raise
    finally:
        await dispose_engine()
    logger.info("worker_job_completed", job=job_name, duration_ms=int((time.monotonic() - started) * 1000))
    return result


def run_async_job(awaitable: Awaitable[T], *, job_name: str) -> T:
    return asyncio.run(_run_job(job_name, awaitable))
