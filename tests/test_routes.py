"""HTTP surface: trigger, job creation, polling, interactive runner."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from app import config, deps
from app.models.execution import ExecutionResult
from app.services.exam_records import ExamResultStore, DraftStore
from app.services.job_store import JobStore
from app.services.rate_limit import FixedWindowRateLimiter
from conftest import ScriptedSandbox
from main import app


@pytest.fixture
def launched(monkeypatch):
    """Capture detached grading tasks instead of running them."""
    calls = []

    def fake_launch(job_id, coro):
        coro.close()
        calls.append(job_id)

    monkeypatch.setattr("app.routes.grading.launch_grading_task", fake_launch)
    return calls


@pytest.fixture
def api(fake_db, monkeypatch):
    monkeypatch.setattr(config, "SERVICE_API_KEY", None)
    sandbox = ScriptedSandbox()
    app.dependency_overrides[deps.get_job_store] = lambda: JobStore(fake_db)
    app.dependency_overrides[deps.get_result_store] = lambda: ExamResultStore(fake_db)
    app.dependency_overrides[deps.get_draft_store] = lambda: DraftStore(fake_db)
    app.dependency_overrides[deps.get_execution_client] = lambda: sandbox
    app.dependency_overrides[deps.get_rate_limiter] = lambda: FixedWindowRateLimiter(limit=2)
    yield TestClient(app)
    app.dependency_overrides.clear()


def grade_body(job_id="job_1", **overrides):
    body = {
        "jobId": job_id,
        "userId": "u1",
        "examId": "e1",
        "answers": {"q1": "B"},
        "questions": [{"id": "q1", "type": "multiple-choice", "points": 1, "correctAnswer": "B"}],
        "startTime": 1700000000000,
    }
    body.update(overrides)
    return body


def test_trigger_creates_job_and_returns_immediately(api, fake_db, launched):
    response = api.post("/api/grade-exam-background", json=grade_body())

    assert response.status_code == 202
    assert response.json() == {"success": True, "message": "Grading started", "jobId": "job_1"}
    assert launched == ["job_1"]
    job = fake_db.grading_jobs.docs[0]
    assert (job["status"], job["total_questions"]) == ("pending", 1)


def test_trigger_uses_existing_pending_job(api, fake_db, launched):
    asyncio.run(JobStore(fake_db).create_job("u1", "e1", job_id="job_2"))

    response = api.post("/api/grade-exam-background", json=grade_body("job_2"))

    assert response.status_code == 202
    assert launched == ["job_2"]
    assert len(fake_db.grading_jobs.docs) == 1


def test_trigger_does_not_relaunch_finished_job(api, fake_db, launched):
    store = JobStore(fake_db)

    async def finish():
        await store.create_job("u1", "e1", job_id="job_3")
        await store.claim_job("job_3", 1)
        await store.mark_completed("job_3", {})

    asyncio.run(finish())

    response = api.post("/api/grade-exam-background", json=grade_body("job_3"))

    assert response.status_code == 202
    assert response.json()["message"] == "Job already completed"
    assert launched == []


def test_malformed_trigger_returns_structured_error_and_fails_job(api, fake_db, launched):
    asyncio.run(JobStore(fake_db).create_job("u1", "e1", job_id="job_4"))
    body = grade_body("job_4")
    del body["questions"][0]["id"]

    response = api.post("/api/grade-exam-background", json=body)

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert launched == []
    assert fake_db.grading_jobs.docs[0]["status"] == "failed"


def test_trigger_rejects_non_json_body(api, launched):
    response = api.post("/api/grade-exam-background", content=b"not json",
                        headers={"Content-Type": "application/json"})

    assert response.status_code == 500
    assert response.json()["success"] is False


def test_trigger_requires_service_key_when_configured(api, monkeypatch, launched):
    monkeypatch.setattr(config, "SERVICE_API_KEY", "s3cret")

    assert api.post("/api/grade-exam-background", json=grade_body()).status_code == 401
    ok = api.post("/api/grade-exam-background", json=grade_body(),
                  headers={"Authorization": "Bearer s3cret"})
    assert ok.status_code == 202


def test_create_job_endpoint(api):
    response = api.post("/api/grading-jobs", json={"userId": "u1", "examId": "e1", "totalQuestions": 3})

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["totalQuestions"] == 3
    assert data["jobId"].startswith("job_")


def test_poll_unknown_job_is_404(api):
    assert api.get("/api/grading-jobs/missing").status_code == 404


def test_poll_hides_hidden_test_case_details(api, fake_db, monkeypatch):
    store = JobStore(fake_db)
    result_data = {
        "question_results": [{
            "question_id": "c1", "user_answer": "code", "earned_points": 1, "max_points": 2,
            "is_correct": False,
            "coding_result": {"passed": 1, "total": 2, "results": [
                {"test_index": 0, "passed": True, "input": "1", "expected_output": "1",
                 "actual_output": "1", "is_hidden": False},
                {"test_index": 1, "passed": False, "input": "secret", "expected_output": "42",
                 "actual_output": "41", "is_hidden": True},
            ]},
        }],
        "earned_points": 1, "total_points": 2, "percentage": 50.0, "grade": "F", "duration": 12,
    }

    async def finish():
        await store.create_job("u1", "e1", job_id="job_5")
        await store.claim_job("job_5", 1)
        await store.update_progress("job_5", 1, 1)
        await store.mark_completed("job_5", result_data)

    asyncio.run(finish())

    data = api.get("/api/grading-jobs/job_5").json()
    assert data["status"] == "completed"
    assert data["progress"] == 100
    assert data["gradedQuestions"] == 1
    cases = data["resultData"]["questionResults"][0]["codingResult"]["results"]
    assert cases[0]["input"] == "1"
    assert cases[1]["input"] == "" and cases[1]["expectedOutput"] == ""
    assert cases[1]["passed"] is False

    monkeypatch.setattr(config, "SERVICE_API_KEY", "s3cret")
    assert api.get("/api/grading-jobs/job_5", params={"includeHidden": "true"}).status_code == 403
    full = api.get("/api/grading-jobs/job_5", params={"includeHidden": "true"},
                   headers={"Authorization": "Bearer s3cret"}).json()
    assert full["resultData"]["questionResults"][0]["codingResult"]["results"][1]["input"] == "secret"


def test_execute_code_filters_hidden_cases(api):
    body = {
        "code": "print(input())",
        "language": "python",
        "testCases": [
            {"input": "a", "expectedOutput": "a"},
            {"input": "b", "expectedOutput": "b", "isHidden": True},
        ],
        "timeLimit": 100,
    }

    data = api.post("/api/execute-code", json=body).json()

    assert data["success"] is True
    assert data["summary"] == {"passed": 1, "total": 1, "allPassed": True}
    assert data["results"][0]["testIndex"] == 0


@pytest.mark.parametrize("body, message", [
    ({"language": "python", "testCases": []}, "Code is required"),
    ({"code": "x" * 50001, "language": "python", "testCases": []}, "maximum length"),
    ({"code": "x", "language": "cobol", "testCases": []}, "Unsupported language"),
    ({"code": "x", "language": "python"}, "Test cases must be an array"),
    ({"code": "x", "language": "python", "testCases": [{"input": "", "expectedOutput": ""}] * 51},
     "Maximum 50 test cases"),
])
def test_execute_code_validation(api, body, message):
    response = api.post("/api/execute-code", json=body)

    assert response.status_code == 400
    assert message in response.json()["error"]


def test_execute_code_is_rate_limited(fake_db, monkeypatch):
    limiter = FixedWindowRateLimiter(limit=1, window=60)
    app.dependency_overrides[deps.get_execution_client] = lambda: ScriptedSandbox(
        lambda code, lang, stdin: ExecutionResult(success=True, output=stdin))
    app.dependency_overrides[deps.get_rate_limiter] = lambda: limiter
    try:
        client = TestClient(app)
        body = {"code": "x", "language": "python", "testCases": []}
        assert client.post("/api/execute-code", json=body).status_code == 200
        limited = client.post("/api/execute-code", json=body)
    finally:
        app.dependency_overrides.clear()

    assert limited.status_code == 429
    assert int(limited.headers["Retry-After"]) >= 1


def test_health(api):
    assert api.get("/health").json()["status"] == "healthy"
