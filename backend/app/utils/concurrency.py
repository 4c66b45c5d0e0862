"""
Concurrency utilities - semaphores for resource-limited operations.
"""

import asyncio

from app.config import SANDBOX_MAX_CONCURRENCY


def sandbox_semaphore(limit: int = SANDBOX_MAX_CONCURRENCY) -> asyncio.Semaphore:
    """Semaphore shared by every sandbox call of one grading job."""
    return asyncio.Semaphore(max(1, limit))


async def gather_or_cancel(*aws):
    """
    Like asyncio.gather, but the first exception cancels the remaining
    awaitables and waits for them to unwind before re-raising.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
