"""Grading routes - create job, trigger background grading, poll job status."""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from app.config import logger
from app.deps import (
    get_job_store,
    get_result_store,
    get_draft_store,
    get_execution_client,
    verify_service_key,
    has_service_key,
)
from app.models.job import GradingJobCreate, JobStatus
from app.models.submission import GradeRequest
from app.services.background import launch_grading_task
from app.services.exam_records import ExamResultStore, DraftStore
from app.services.execution import ExecutionClient
from app.services.grading import process_grading_job_in_background
from app.services.job_store import JobStore
from app.utils.serialization import serialize_job

router = APIRouter(tags=["grading"])


def _error_response(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.post("/grading-jobs", status_code=201, dependencies=[Depends(verify_service_key)])
async def create_grading_job(body: GradingJobCreate, job_store: JobStore = Depends(get_job_store)):
    """Create a pending job record the client can subscribe to before triggering"""
    try:
        job = await job_store.create_job(
            body.user_id, body.exam_id, total_questions=body.total_questions, job_id=body.job_id
        )
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Job already exists")
    return serialize_job(job)


@router.post("/grade-exam-background", dependencies=[Depends(verify_service_key)])
async def grade_exam_background(
    request: Request,
    job_store: JobStore = Depends(get_job_store),
    result_store: ExamResultStore = Depends(get_result_store),
    draft_store: DraftStore = Depends(get_draft_store),
    client: ExecutionClient = Depends(get_execution_client),
):
    """Start grading in the background and return immediately"""
    payload = None
    try:
        payload = await request.json()
        grade_request = GradeRequest.model_validate(payload)
    except (ValueError, ValidationError) as e:
        logger.error(f"=== GRADE EXAM BG REJECTED === {e}")
        job_id = payload.get("jobId") if isinstance(payload, dict) else None
        if isinstance(job_id, str):
            try:
                await job_store.mark_failed(job_id, "Invalid grading request", error_stage="validation")
            except Exception as store_err:
                logger.error(f"Could not mark job {job_id} as failed: {store_err}")
        return _error_response(f"Invalid grading request: {e}")

    try:
        job_id = grade_request.job_id
        logger.info(f"=== GRADE EXAM BG START === Job: {job_id}, User: {grade_request.user_id}, "
                    f"Exam: {grade_request.exam_id}, Questions: {len(grade_request.questions)}")

        job = await job_store.get_job(job_id)
        if job is None:
            try:
                job = await job_store.create_job(
                    grade_request.user_id, grade_request.exam_id,
                    total_questions=len(grade_request.questions), job_id=job_id,
                )
            except DuplicateKeyError:
                job = await job_store.get_job(job_id)

        if job["user_id"] != grade_request.user_id or job["exam_id"] != grade_request.exam_id:
            return _error_response("Job does not belong to this submission")

        if job["status"] != JobStatus.PENDING.value:
            return JSONResponse(
                status_code=202,
                content={"success": True, "message": f"Job already {job['status']}", "jobId": job_id},
            )

        launch_grading_task(
            job_id,
            process_grading_job_in_background(grade_request, job_store, result_store, draft_store, client),
        )

        return JSONResponse(
            status_code=202,
            content={"success": True, "message": "Grading started", "jobId": job_id},
        )
    except Exception as e:
        logger.error(f"=== GRADE EXAM BG ERROR === {str(e)}", exc_info=True)
        return _error_response(f"Failed to start grading job: {str(e)}")


@router.get("/grading-jobs/{job_id}")
async def get_grading_job_status(
    job_id: str,
    request: Request,
    include_hidden: bool = Query(False, alias="includeHidden"),
    job_store: JobStore = Depends(get_job_store),
):
    """Poll grading job status"""
    if include_hidden and not has_service_key(request):
        raise HTTPException(status_code=403, detail="Hidden test details require the service key")

    job = await job_store.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return serialize_job(job, include_hidden=include_hidden)
