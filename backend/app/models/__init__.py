"""Pydantic models for the exam grading service"""

from .base import CamelModel
from .exam import TestCase, CodingSettings, Question
from .submission import (
    GradeRequest,
    TestCaseResult,
    CodingResult,
    QuestionResult,
    ExamResult,
)
from .job import JobStatus, GradingJob, GradingJobCreate
from .execution import ExecutionResult, ExecuteCodeRequest
