"""Grading request and scoring-related Pydantic models"""

from typing import Any, Dict, Optional, List

from .base import CamelModel
from .exam import Question


class GradeRequest(CamelModel):
    """Body of the background grading trigger"""
    job_id: str
    user_id: str
    exam_id: str
    answers: Dict[str, Any] = {}
    questions: List[Question] = []
    start_time: float  # epoch milliseconds when the student started


class TestCaseResult(CamelModel):
    test_index: int
    passed: bool
    input: str
    expected_output: str
    actual_output: str
    error: Optional[str] = None
    is_hidden: bool = False
    execution_time: int = 0  # milliseconds


class CodingResult(CamelModel):
    passed: int = 0
    total: int = 0
    results: List[TestCaseResult] = []

    @property
    def all_passed(self) -> bool:
        return self.passed == self.total


class QuestionResult(CamelModel):
    question_id: str
    user_answer: Any = None
    earned_points: float
    max_points: float
    is_correct: bool
    coding_result: Optional[CodingResult] = None


class ExamResult(CamelModel):
    """Final graded exam, stored once per (user, exam)"""
    question_results: List[QuestionResult] = []
    earned_points: float = 0
    total_points: float = 0
    percentage: float = 0
    grade: str = "F"  # A, B, C, D, F
    duration: int = 0  # seconds from start to completion
