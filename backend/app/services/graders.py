"""
Question graders.

Fixed-form graders are pure and synchronous. The coding grader delegates to
the test case runner. Missing answers score zero, they are never an error.
"""

import asyncio
from typing import Any, Optional

from app.config import logger
from app.errors import UnsupportedQuestionType
from app.models.exam import Question
from app.models.submission import CodingResult, QuestionResult
from app.services.execution import ExecutionClient
from app.services.test_runner import run_test_cases


def round_points(value: float) -> float:
    return round(value, 2)


# ============== FIXED-FORM QUESTIONS ==============

def grade_multiple_choice(question: Question, user_answer: Any) -> float:
    """Exact set match for multi-answer questions; no partial credit."""
    correct_answer = question.correct_answer
    points = question.max_points

    if isinstance(correct_answer, list):
        selected = user_answer if isinstance(user_answer, list) else [user_answer]
        is_correct = (
            len(correct_answer) == len(selected)
            and all(answer in selected for answer in correct_answer)
        )
        return points if is_correct else 0

    if isinstance(user_answer, list):
        user_answer = user_answer[0] if user_answer else None
    return points if user_answer is not None and user_answer == correct_answer else 0


def grade_true_false(question: Question, user_answer: Any) -> float:
    if user_answer is None:
        return 0
    return question.max_points if user_answer == question.correct_answer else 0


def grade_short_answer(question: Question, user_answer: Any) -> float:
    accepted = question.correct_answer
    if not isinstance(accepted, list):
        accepted = [accepted]

    normalized = str(user_answer if user_answer is not None else "").strip().lower()
    is_correct = any(
        str(answer).strip().lower() == normalized
        for answer in accepted
        if answer is not None
    )
    return question.max_points if is_correct else 0


FIXED_FORM_GRADERS = {
    "multiple-choice": grade_multiple_choice,
    "true-false": grade_true_false,
    "short-answer": grade_short_answer,
}


def grade_fixed_form_question(question: Question, user_answer: Any) -> QuestionResult:
    grader = FIXED_FORM_GRADERS.get(question.type)
    if grader is None:
        raise UnsupportedQuestionType(question.id, question.type)

    earned_points = grader(question, user_answer)
    return QuestionResult(
        question_id=question.id,
        user_answer=user_answer,
        earned_points=earned_points,
        max_points=question.max_points,
        is_correct=earned_points == question.max_points,
    )


# ============== CODING QUESTIONS ==============

def score_coding_result(question: Question, coding_result: CodingResult) -> float:
    points = question.max_points
    method = question.get_scoring_method()

    if coding_result.total == 0:
        return 0

    if method == "all-or-nothing":
        return points if coding_result.all_passed else 0

    if method == "weighted":
        test_cases = question.get_test_cases()
        total_weight = 0.0
        earned_weight = 0.0
        for result in coding_result.results:
            weight = test_cases[result.test_index].weight if result.test_index < len(test_cases) else 1
            total_weight += weight
            if result.passed:
                earned_weight += weight
        return round_points(earned_weight / total_weight * points) if total_weight > 0 else 0

    # proportional
    return round_points(coding_result.passed / coding_result.total * points)


async def grade_coding_question(
    question: Question,
    user_answer: Any,
    client: ExecutionClient,
    semaphore: Optional[asyncio.Semaphore] = None,
) -> QuestionResult:
    code = "" if user_answer is None else str(user_answer)
    test_cases = question.get_test_cases()

    if not code.strip() or not test_cases:
        coding_result = CodingResult(passed=0, total=len(test_cases), results=[])
        earned_points = 0
    else:
        language = question.get_language()
        logger.info(
            f"Grading coding question {question.id} with {len(test_cases)} test cases, "
            f"scoring: {question.get_scoring_method()}"
        )
        coding_result = await run_test_cases(client, code, language, test_cases, semaphore=semaphore)
        earned_points = score_coding_result(question, coding_result)

    return QuestionResult(
        question_id=question.id,
        user_answer=code,
        earned_points=earned_points,
        max_points=question.max_points,
        is_correct=coding_result.all_passed,
        coding_result=coding_result,
    )
