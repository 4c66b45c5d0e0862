"""
Database connection - MongoDB async (Motor) + index setup.
"""

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING

from app.config import MONGO_URL, DB_NAME, logger

# Async client (used by all app queries)
client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]


async def ensure_indexes(database=None):
    """Create the indexes the grading pipeline relies on."""
    database = database if database is not None else db

    await database.grading_jobs.create_index([("job_id", ASCENDING)], unique=True)
    await database.grading_jobs.create_index([("status", ASCENDING), ("updated_at", ASCENDING)])
    # One result per (user, exam); a second insert is a duplicate submission
    await database.exam_results.create_index(
        [("user_id", ASCENDING), ("exam_id", ASCENDING)], unique=True
    )
    await database.exam_drafts.create_index([("user_id", ASCENDING), ("exam_id", ASCENDING)])
    logger.info("✅ MongoDB indexes ensured")
