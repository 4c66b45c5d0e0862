"""
Background task service - detached grading tasks and the periodic worker.
"""

import asyncio
from typing import Coroutine, Dict, Set

from app.config import logger

# Strong references so detached tasks are not garbage collected mid-run
_running_tasks: Set[asyncio.Task] = set()
_running_jobs: Dict[str, asyncio.Task] = {}


def launch_grading_task(job_id: str, coro: Coroutine) -> asyncio.Task:
    """Start a grading coroutine without awaiting it."""
    task = asyncio.create_task(coro, name=f"grading-{job_id}")
    _running_tasks.add(task)
    _running_jobs[job_id] = task

    def _done(finished: asyncio.Task):
        _running_tasks.discard(finished)
        if _running_jobs.get(job_id) is finished:
            del _running_jobs[job_id]
        if finished.cancelled():
            logger.warning(f"Grading task for job {job_id} was cancelled")
        elif finished.exception() is not None:
            logger.error(f"Grading task for job {job_id} crashed", exc_info=finished.exception())

    task.add_done_callback(_done)
    return task


def running_job_ids() -> Set[str]:
    return set(_running_jobs)


async def drain_running_tasks(timeout: float = 30.0):
    """Give in-flight grading jobs a chance to finish on shutdown."""
    if not _running_tasks:
        return
    logger.info(f"⏳ Waiting for {len(_running_tasks)} grading jobs to finish...")
    done, pending = await asyncio.wait(set(_running_tasks), timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning(f"⏹️  Cancelled {len(pending)} grading jobs still running at shutdown")


async def run_background_worker(job_store):
    """Integrated background worker - sweeps stale jobs."""
    logger.info("🔄 Background worker started")
    logger.info("=" * 60)

    try:
        from app.services.task_worker import worker_loop
        await worker_loop(job_store)  # runs forever, handles polling internally
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error(f"Background worker error: {e}", exc_info=True)
