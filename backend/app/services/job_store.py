"""
Grading job persistence.

Every transition is a single-document update filtered on the current
status, so a job only moves forward: pending -> processing -> completed/failed.
"""

import uuid
from datetime import datetime, timezone, timedelta
from typing import Optional, Iterable

from pymongo import ReturnDocument

from app.config import logger
from app.models.job import JobStatus


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:12]}"


def compute_progress(graded: int, total: int) -> int:
    if total <= 0:
        return 100
    return min(100, round(graded / total * 100))


class JobStore:
    def __init__(self, database):
        self.collection = database.grading_jobs

    async def create_job(self, user_id: str, exam_id: str, total_questions: int = 0,
                         job_id: Optional[str] = None) -> dict:
        now = _now()
        job = {
            "job_id": job_id or new_job_id(),
            "user_id": user_id,
            "exam_id": exam_id,
            "status": JobStatus.PENDING.value,
            "progress": 0,
            "graded_questions": 0,
            "total_questions": total_questions,
            "result_data": None,
            "error_message": None,
            "error_stage": None,
            "created_at": now,
            "updated_at": now,
        }
        await self.collection.insert_one(job)
        job.pop("_id", None)
        logger.info(f"Created grading job {job['job_id']} for user {user_id}, exam {exam_id}")
        return job

    async def get_job(self, job_id: str) -> Optional[dict]:
        return await self.collection.find_one({"job_id": job_id}, {"_id": 0})

    async def claim_job(self, job_id: str, total_questions: int) -> Optional[dict]:
        """Atomically move a pending job to processing. None if it was not pending."""
        return await self.collection.find_one_and_update(
            {"job_id": job_id, "status": JobStatus.PENDING.value},
            {"$set": {
                "status": JobStatus.PROCESSING.value,
                "total_questions": total_questions,
                "updated_at": _now(),
            }},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )

    async def update_progress(self, job_id: str, graded_questions: int, total_questions: int):
        # $max keeps counters monotonic when concurrent updates land out of order
        await self.collection.update_one(
            {"job_id": job_id, "status": JobStatus.PROCESSING.value},
            {
                "$max": {
                    "graded_questions": graded_questions,
                    "progress": compute_progress(graded_questions, total_questions),
                },
                "$set": {"updated_at": _now()},
            },
        )

    async def mark_completed(self, job_id: str, result_data: dict) -> bool:
        now = _now()
        result = await self.collection.update_one(
            {"job_id": job_id, "status": JobStatus.PROCESSING.value},
            {"$set": {
                "status": JobStatus.COMPLETED.value,
                "progress": 100,
                "result_data": result_data,
                "updated_at": now,
                "completed_at": now,
            }},
        )
        return result.modified_count > 0

    async def mark_failed(self, job_id: str, error_message: str, error_stage: str = "grading") -> bool:
        result = await self.collection.update_one(
            {"job_id": job_id, "status": {"$in": [JobStatus.PENDING.value, JobStatus.PROCESSING.value]}},
            {"$set": {
                "status": JobStatus.FAILED.value,
                "error_message": error_message,
                "error_stage": error_stage,
                "updated_at": _now(),
            }},
        )
        return result.modified_count > 0

    async def fail_stale_jobs(self, older_than_seconds: int, exclude_job_ids: Iterable[str] = ()) -> int:
        """Fail processing jobs that stopped reporting progress."""
        cutoff = (datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)).isoformat()
        query = {"status": JobStatus.PROCESSING.value, "updated_at": {"$lt": cutoff}}
        excluded = list(exclude_job_ids)
        if excluded:
            query["job_id"] = {"$nin": excluded}

        stale = await self.collection.find(query, {"_id": 0, "job_id": 1}).to_list(1000)
        failed = 0
        for job in stale:
            if await self.mark_failed(job["job_id"], "Grading timed out", error_stage="timeout"):
                failed += 1
        if failed:
            logger.warning(f"Marked {failed} stale grading jobs as failed")
        return failed
