"""
Background task worker - fails grading jobs orphaned in `processing`.

Grading runs as a detached task inside the API process, so a restart leaves
its jobs in `processing` forever. Jobs that stopped updating and are not
running in this process are marked failed.
"""

import asyncio

from app.config import logger, STALE_JOB_TIMEOUT, STALE_JOB_SWEEP_INTERVAL
from app.services.background import running_job_ids


async def sweep_stale_jobs(job_store, timeout: int = STALE_JOB_TIMEOUT) -> int:
    return await job_store.fail_stale_jobs(timeout, exclude_job_ids=running_job_ids())


async def worker_loop(job_store, interval: int = STALE_JOB_SWEEP_INTERVAL):
    """Main worker loop. Runs indefinitely, sweeping every `interval` seconds."""
    logger.info("🔄 Task worker loop started (stale job sweep)")
    while True:
        try:
            await sweep_stale_jobs(job_store)
        except Exception as e:
            logger.error(f"Stale job sweep failed: {e}", exc_info=True)
        await asyncio.sleep(interval)
