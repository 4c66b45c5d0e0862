"""
Code execution client - runs one snippet with one stdin on the Piston sandbox.

Transient failures (HTTP 429, 5xx, network errors) are retried with
exponential backoff. Exhausted retries come back as a failed
ExecutionResult; this client never raises for sandbox problems.
"""

import asyncio
import time
from typing import Optional

import httpx

from app.config import (
    logger,
    PISTON_API_URL,
    SANDBOX_RUN_TIMEOUT_MS,
    MAX_RETRIES,
    INITIAL_RETRY_DELAY,
    LANGUAGE_MAP,
    LANGUAGE_ALIASES,
    SOURCE_FILE_NAMES,
)
from app.models.execution import ExecutionResult


def resolve_language(language: Optional[str]) -> Optional[str]:
    """Normalise a logical language name to a LANGUAGE_MAP key, or None."""
    if not language:
        return None
    key = language.strip().lower()
    key = LANGUAGE_ALIASES.get(key, key)
    return key if key in LANGUAGE_MAP else None


class ExecutionClient:
    """Thin async wrapper over the sandbox `POST /execute` endpoint."""

    def __init__(
        self,
        base_url: str = PISTON_API_URL,
        run_timeout_ms: int = SANDBOX_RUN_TIMEOUT_MS,
        max_retries: int = MAX_RETRIES,
        initial_retry_delay: float = INITIAL_RETRY_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.run_timeout_ms = run_timeout_ms
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self._transport = transport
        # Client-side timeout must outlast the sandbox's own run timeout
        self._timeout = httpx.Timeout(connect=5.0, read=run_timeout_ms / 1000 + 15.0, write=5.0, pool=5.0)

    async def execute(self, code: str, language: str, stdin: str = "",
                      run_timeout_ms: Optional[int] = None) -> ExecutionResult:
        lang_key = resolve_language(language)
        if lang_key is None:
            return ExecutionResult(success=False, error=f"Unsupported language: {language}")

        piston_language, version = LANGUAGE_MAP[lang_key]
        run_timeout = run_timeout_ms or self.run_timeout_ms
        payload = {
            "language": piston_language,
            "version": version,
            "files": [{"name": SOURCE_FILE_NAMES.get(lang_key, "main.txt"), "content": code}],
            "stdin": stdin,
            "run_timeout": run_timeout,
        }

        start = time.monotonic()
        attempt = 0
        while True:
            error = None
            try:
                async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                    response = await client.post(f"{self.base_url}/execute", json=payload)
            except httpx.HTTPError as e:
                response = None
                error = f"Execution failed: {e}"
                retry_reason = f"Network error ({type(e).__name__})"

            if response is not None:
                if response.status_code == 429:
                    error = f"Rate limit exceeded after {self.max_retries} retries"
                    retry_reason = "Rate limited (429)"
                elif response.status_code >= 500:
                    error = f"API error: {response.status_code}"
                    retry_reason = f"Server error {response.status_code}"
                elif response.status_code >= 400:
                    logger.error(f"Sandbox rejected request: {response.status_code} {response.text[:200]}")
                    return ExecutionResult(
                        success=False,
                        error=f"API error: {response.status_code}",
                        execution_time=_elapsed_ms(start),
                    )
                else:
                    return self._parse_run(response, run_timeout, start)

            if attempt >= self.max_retries:
                logger.error(f"Sandbox call gave up after {attempt + 1} attempts: {error}")
                return ExecutionResult(success=False, error=error, execution_time=_elapsed_ms(start))

            delay = self.initial_retry_delay * (2 ** attempt)
            logger.info(f"{retry_reason}, retry {attempt + 1}/{self.max_retries} after {delay}s")
            await asyncio.sleep(delay)
            attempt += 1

    def _parse_run(self, response: httpx.Response, run_timeout_ms: int, start: float) -> ExecutionResult:
        elapsed = _elapsed_ms(start)
        invalid = ExecutionResult(success=False, error="Invalid response from execution service",
                                  execution_time=elapsed)
        try:
            result = response.json()
        except ValueError:
            return invalid
        if not isinstance(result, dict):
            logger.error(f"Sandbox returned non-object body: {response.text[:200]}")
            return invalid

        compile_stage = result.get("compile") or {}
        run = result.get("run") or {}
        if not isinstance(compile_stage, dict) or not isinstance(run, dict):
            logger.error(f"Sandbox returned malformed run stages: {response.text[:200]}")
            return invalid

        if compile_stage.get("code") not in (None, 0):
            details = compile_stage.get("stderr") or compile_stage.get("output") or ""
            return ExecutionResult(success=False, error=f"Compilation error:\n{details}",
                                   execution_time=elapsed)

        output = run.get("output") or ""
        stderr = run.get("stderr") or ""
        if not isinstance(output, str) or not isinstance(stderr, str):
            logger.error(f"Sandbox returned non-text output: {response.text[:200]}")
            return invalid

        if stderr:
            return ExecutionResult(success=False, output=output, error=stderr,
                                   execution_time=elapsed)

        if run.get("signal") == "SIGKILL":
            return ExecutionResult(success=False, output=output,
                                   error=f"Time Limit Exceeded (>{run_timeout_ms / 1000:g}s)",
                                   execution_time=elapsed)

        return ExecutionResult(success=True, output=output.strip(), execution_time=elapsed)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
