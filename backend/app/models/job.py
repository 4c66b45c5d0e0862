"""Grading job Pydantic models"""

from enum import Enum
from typing import Optional

from .base import CamelModel
from .submission import ExamResult


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class GradingJob(CamelModel):
    job_id: str
    user_id: str
    exam_id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    graded_questions: int = 0
    total_questions: int = 0
    result_data: Optional[ExamResult] = None
    error_message: Optional[str] = None
    error_stage: Optional[str] = None  # grading, persistence, timeout, validation
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None


class GradingJobCreate(CamelModel):
    user_id: str
    exam_id: str
    total_questions: int = 0
    job_id: Optional[str] = None
