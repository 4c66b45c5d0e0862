"""Exam question definitions as submitted with a grading request"""

from pydantic import field_validator
from typing import Any, Optional, List

from .base import CamelModel


class TestCase(CamelModel):
    input: str = ""
    expected_output: str = ""
    is_hidden: bool = False
    weight: float = 1  # only used by weighted scoring

    @field_validator("weight", mode="before")
    @classmethod
    def _default_weight(cls, value):
        # Missing, zero or negative weights count as 1 so earned points stay within max points
        if value is None or (isinstance(value, (int, float)) and value <= 0):
            return 1
        return value


class CodingSettings(CamelModel):
    """Nested coding block some exam templates use instead of top-level fields"""
    test_cases: List[TestCase] = []
    default_language: Optional[str] = None
    scoring_method: Optional[str] = None


class Question(CamelModel):
    id: str
    type: str  # multiple-choice, true-false, short-answer, coding
    points: Optional[float] = None
    correct_answer: Any = None
    # coding only
    language: Optional[str] = None
    test_cases: Optional[List[TestCase]] = None
    scoring_method: Optional[str] = None
    coding: Optional[CodingSettings] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if isinstance(value, int) else value

    @property
    def max_points(self) -> float:
        # Unset or zero points count as a single point
        return self.points or 1

    @property
    def is_coding(self) -> bool:
        return self.type == "coding"

    def get_test_cases(self) -> List[TestCase]:
        if self.test_cases is not None:
            return self.test_cases
        if self.coding is not None:
            return self.coding.test_cases
        return []

    def get_language(self) -> str:
        if self.language:
            return self.language
        if self.coding is not None and self.coding.default_language:
            return self.coding.default_language
        return "python"

    def get_scoring_method(self) -> str:
        if self.scoring_method:
            return self.scoring_method
        if self.coding is not None and self.coding.scoring_method:
            return self.coding.scoring_method
        return "proportional"
