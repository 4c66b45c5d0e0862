"""
Grading service - background exam grading job.

A job grades fixed-form questions one by one, then fans out coding questions
to the sandbox, stores the ExamResult, removes the student's draft and marks
the job completed. Any exception marks the job failed instead.
"""

import time
from typing import List

from app.config import logger, SANDBOX_MAX_CONCURRENCY
from app.errors import ResultPersistenceError
from app.models.submission import GradeRequest, QuestionResult, ExamResult
from app.services.execution import ExecutionClient
from app.services.exam_records import ExamResultStore, DraftStore
from app.services.graders import grade_fixed_form_question, grade_coding_question
from app.services.job_store import JobStore
from app.utils.concurrency import sandbox_semaphore, gather_or_cancel

GRADE_THRESHOLDS = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]


def letter_grade(percentage: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return grade
    return "F"


def build_exam_result(question_results: List[QuestionResult], start_time_ms: float) -> ExamResult:
    earned_points = sum(r.earned_points for r in question_results)
    total_points = sum(r.max_points for r in question_results)
    percentage = round(earned_points / total_points * 100, 2) if total_points > 0 else 0
    duration = max(0, round((time.time() * 1000 - start_time_ms) / 1000))

    return ExamResult(
        question_results=question_results,
        earned_points=earned_points,
        total_points=total_points,
        percentage=percentage,
        grade=letter_grade(percentage),
        duration=duration,
    )


async def process_grading_job_in_background(
    request: GradeRequest,
    job_store: JobStore,
    result_store: ExamResultStore,
    draft_store: DraftStore,
    client: ExecutionClient,
    sandbox_concurrency: int = SANDBOX_MAX_CONCURRENCY,
):
    """Background task that owns one grading job from processing to a terminal state."""
    job_id = request.job_id
    stage = "grading"

    try:
        questions = request.questions
        total_questions = len(questions)

        claimed = await job_store.claim_job(job_id, total_questions)
        if claimed is None:
            logger.warning(f"Grading job {job_id} is not pending; skipping duplicate run")
            return

        logger.info(f"=== GRADING START === Job {job_id}: {total_questions} questions for exam {request.exam_id}")

        coding_questions = [q for q in questions if q.is_coding]
        fixed_questions = [q for q in questions if not q.is_coding]
        question_results: List[QuestionResult] = []
        graded_count = 0

        # Fixed-form questions are cheap; report progress after each one
        for question in fixed_questions:
            result = grade_fixed_form_question(question, request.answers.get(question.id))
            question_results.append(result)
            graded_count += 1
            await job_store.update_progress(job_id, graded_count, total_questions)

        if coding_questions:
            logger.info(f"Job {job_id}: grading {len(coding_questions)} coding questions concurrently")
            semaphore = sandbox_semaphore(sandbox_concurrency)

            async def grade_and_report(question):
                nonlocal graded_count
                result = await grade_coding_question(
                    question, request.answers.get(question.id), client, semaphore=semaphore
                )
                graded_count += 1
                await job_store.update_progress(job_id, graded_count, total_questions)
                return result

            # First failure cancels sibling questions so no sandbox calls outlive the job
            coding_results = await gather_or_cancel(*(grade_and_report(q) for q in coding_questions))
            question_results.extend(coding_results)

        exam_result = build_exam_result(question_results, request.start_time)

        stage = "persistence"
        try:
            await result_store.insert_result(request.user_id, request.exam_id, exam_result)
        except Exception as e:
            raise ResultPersistenceError(f"Failed to save result: {e}") from e

        # The result is stored at this point; a leftover draft must not fail the job
        try:
            await draft_store.delete_draft(request.user_id, request.exam_id)
        except Exception as e:
            logger.error(f"Job {job_id}: could not delete draft for user {request.user_id}: {e}", exc_info=True)

        if not await job_store.mark_completed(job_id, exam_result.model_dump()):
            logger.warning(f"Grading job {job_id} was no longer processing when it finished")
            return

        logger.info(
            f"=== GRADING COMPLETE === Job {job_id}: {exam_result.earned_points}/{exam_result.total_points} "
            f"({exam_result.percentage}%, grade {exam_result.grade})"
        )

    except Exception as e:
        logger.error(f"Grading job {job_id} failed during {stage}: {e}", exc_info=True)
        try:
            await job_store.mark_failed(job_id, str(e), error_stage=stage)
        except Exception as store_err:
            logger.error(f"Could not record failure for job {job_id}: {store_err}", exc_info=True)
