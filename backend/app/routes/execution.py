"""Interactive code runner - lets a student run code against visible test cases."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.config import (
    logger,
    LANGUAGE_MAP,
    MAX_CODE_LENGTH,
    MAX_TEST_CASES,
    MIN_TIME_LIMIT,
    MAX_TIME_LIMIT,
    DEFAULT_TIME_LIMIT,
)
from app.deps import get_execution_client, get_rate_limiter, caller_key
from app.models.execution import ExecuteCodeRequest
from app.services.execution import ExecutionClient, resolve_language
from app.services.rate_limit import FixedWindowRateLimiter
from app.services.test_runner import run_test_cases

router = APIRouter(tags=["execution"])


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@router.post("/execute-code")
async def execute_code(
    request: Request,
    client: ExecutionClient = Depends(get_execution_client),
    rate_limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
):
    """Run code against test cases; hidden cases only when grading"""
    allowed, wait_time = rate_limiter.check(caller_key(request))
    if not allowed:
        logger.info(f"Rate limit exceeded for {caller_key(request)}")
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "error": f"Too many requests. Please wait {wait_time} seconds before trying again.",
                "retryAfter": wait_time,
            },
            headers={"Retry-After": str(wait_time)},
        )

    try:
        body = ExecuteCodeRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        return _bad_request(f"Invalid request: {e}")

    try:
        if not body.code:
            return _bad_request("Code is required and must be a string")
        if len(body.code) > MAX_CODE_LENGTH:
            return _bad_request(f"Code exceeds maximum length of {MAX_CODE_LENGTH:,} characters")
        if resolve_language(body.language) is None:
            supported = ", ".join(LANGUAGE_MAP)
            return _bad_request(f"Unsupported language: {body.language}. Supported: {supported}")
        if body.test_cases is None:
            return _bad_request("Test cases must be an array")
        if len(body.test_cases) > MAX_TEST_CASES:
            return _bad_request(f"Maximum {MAX_TEST_CASES} test cases allowed")

        time_limit = min(max(MIN_TIME_LIMIT, body.time_limit or DEFAULT_TIME_LIMIT), MAX_TIME_LIMIT)
        cases = body.test_cases if body.include_hidden else [tc for tc in body.test_cases if not tc.is_hidden]

        logger.info(f"Executing {body.language} code with {len(cases)} test cases")
        coding_result = await run_test_cases(
            client, body.code, body.language, cases, run_timeout_ms=int(time_limit * 1000)
        )
        logger.info(f"Results: {coding_result.passed}/{coding_result.total} passed")

        return {
            "success": True,
            "results": [r.model_dump(by_alias=True) for r in coding_result.results],
            "summary": {
                "passed": coding_result.passed,
                "total": coding_result.total,
                "allPassed": coding_result.all_passed,
            },
        }
    except Exception as e:
        logger.error(f"Execute code error: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
