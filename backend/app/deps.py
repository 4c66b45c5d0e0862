"""
FastAPI dependencies - stores, sandbox client, service key check.
"""

import hmac
from typing import Optional

from fastapi import Request, HTTPException

from . import config
from .database import db
from .services.execution import ExecutionClient
from .services.exam_records import ExamResultStore, DraftStore
from .services.job_store import JobStore
from .services.rate_limit import FixedWindowRateLimiter

_execution_client = ExecutionClient()
_rate_limiter = FixedWindowRateLimiter()


def get_database():
    return db


def get_job_store() -> JobStore:
    return JobStore(db)


def get_result_store() -> ExamResultStore:
    return ExamResultStore(db)


def get_draft_store() -> DraftStore:
    return DraftStore(db)


def get_execution_client() -> ExecutionClient:
    return _execution_client


def get_rate_limiter() -> FixedWindowRateLimiter:
    return _rate_limiter


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return request.headers.get("apikey")


def has_service_key(request: Request) -> bool:
    """True when the request carries the configured service key (or none is configured)."""
    expected = config.SERVICE_API_KEY
    if not expected:
        return True
    token = _extract_token(request)
    return bool(token) and hmac.compare_digest(token, expected)


async def verify_service_key(request: Request):
    """Dependency guarding machine-to-machine endpoints"""
    if not has_service_key(request):
        raise HTTPException(status_code=401, detail="Invalid service key")


def caller_key(request: Request) -> str:
    """Identify the caller for rate limiting: bearer token if present, else client address."""
    token = _extract_token(request)
    if token:
        return f"token:{token}"
    return f"ip:{request.client.host if request.client else 'anonymous'}"
