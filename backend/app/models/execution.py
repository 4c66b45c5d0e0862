"""Sandbox execution models"""

from pydantic import BaseModel
from typing import Optional, List

from .base import CamelModel
from .exam import TestCase


class ExecutionResult(BaseModel):
    """Outcome of one sandbox run"""
    success: bool
    output: str = ""
    error: Optional[str] = None
    execution_time: int = 0  # milliseconds


class ExecuteCodeRequest(CamelModel):
    code: Optional[str] = None
    language: Optional[str] = None
    test_cases: Optional[List[TestCase]] = None
    time_limit: Optional[float] = None  # seconds
    memory_limit: Optional[int] = None  # accepted, not enforced by the sandbox API
    include_hidden: bool = False
