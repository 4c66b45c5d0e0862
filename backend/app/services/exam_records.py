"""
Exam result and draft collections touched by the grading pipeline.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pymongo.errors import DuplicateKeyError

from app.config import logger
from app.models.submission import ExamResult


class ExamResultStore:
    def __init__(self, database):
        self.collection = database.exam_results

    async def insert_result(self, user_id: str, exam_id: str, result: ExamResult) -> str:
        """
        Insert the graded result. A result already stored for (user, exam)
        means another run got there first; that is treated as success and
        the existing result id is returned.
        """
        result_id = f"result_{uuid.uuid4().hex[:12]}"
        doc = {
            "result_id": result_id,
            "user_id": user_id,
            "exam_id": exam_id,
            **result.model_dump(),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self.collection.insert_one(doc)
        except DuplicateKeyError:
            existing = await self.get_result(user_id, exam_id)
            logger.warning(f"Exam result for user {user_id}, exam {exam_id} already exists; keeping it")
            return existing["result_id"] if existing else result_id
        return result_id

    async def get_result(self, user_id: str, exam_id: str) -> Optional[dict]:
        return await self.collection.find_one({"user_id": user_id, "exam_id": exam_id}, {"_id": 0})


class DraftStore:
    def __init__(self, database):
        self.collection = database.exam_drafts

    async def delete_draft(self, user_id: str, exam_id: str) -> int:
        result = await self.collection.delete_many({"user_id": user_id, "exam_id": exam_id})
        return result.deleted_count
