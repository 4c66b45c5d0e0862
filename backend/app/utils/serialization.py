"""Job document serialization for the polling API."""

from app.models.job import GradingJob

HIDDEN_FIELDS = ("input", "expectedOutput", "actualOutput")


def redact_hidden_results(result_data):
    """Blank the details of hidden test cases in a camelCase result payload."""
    if not result_data:
        return result_data
    for question in result_data.get("questionResults", []):
        coding_result = question.get("codingResult") or {}
        for case in coding_result.get("results", []):
            if case.get("isHidden"):
                for field in HIDDEN_FIELDS:
                    case[field] = ""
    return result_data


def serialize_job(doc: dict, include_hidden: bool = False) -> dict:
    """Convert a grading_jobs document to the camelCase polling response"""
    data = GradingJob.model_validate(doc).model_dump(by_alias=True, mode="json")
    if not include_hidden:
        redact_hidden_results(data.get("resultData"))
    return data
