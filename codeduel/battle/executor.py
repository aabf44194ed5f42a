"""Client for the remote code execution API.

Speaks the Piston ``/execute`` protocol: one request per program run,
``{language, version, files: [{name, content}], stdin}`` in and
``{run: {stdout, stderr, output, code, time?}}`` out.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from codeduel.config import settings
from codeduel.core.exceptions import JudgeUnavailableError
from codeduel.core.metrics import record_judge_request

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Result of one remote run."""
    output: str
    stdout: str
    stderr: str
    exit_code: Optional[int]
    execution_time_ms: int

    @property
    def error(self) -> Optional[str]:
        """Last line of stderr when the program crashed."""
        if self.exit_code in (0, None) and not self.stderr.strip():
            return None
        lines = [line for line in self.stderr.strip().splitlines() if line.strip()]
        if lines:
            return lines[-1].strip()
        return f"Process exited with code {self.exit_code}"


class RemoteExecutor:
    """Runs programs through the judge API over HTTP."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        language: Optional[str] = None,
        version: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url or settings.judge_api_url
        self.language = language or settings.judge_language
        self.version = version or settings.judge_language_version
        self.timeout = timeout or settings.judge_timeout_seconds
        self._client = client

    def build_payload(self, source: str, stdin: str = "") -> dict[str, Any]:
        return {
            "language": self.language,
            "version": self.version,
            "files": [{"name": "solution.py", "content": source}],
            "stdin": stdin,
        }

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.api_url, json=payload, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.api_url, json=payload)

    async def execute(self, source: str, stdin: str = "") -> ExecutionResult:
        """Run ``source`` remotely with ``stdin``.

        Raises:
            JudgeUnavailableError: The API could not be reached, answered
                with an error status, or returned a malformed body.
        """
        start = time.perf_counter()
        try:
            response = await self._post(self.build_payload(source, stdin))
            response.raise_for_status()
            body = response.json()
            run = body["run"]
        except httpx.HTTPStatusError as e:
            record_judge_request(False, time.perf_counter() - start)
            raise JudgeUnavailableError(
                f"Judge API returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            record_judge_request(False, time.perf_counter() - start)
            raise JudgeUnavailableError(f"Judge API request failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            record_judge_request(False, time.perf_counter() - start)
            raise JudgeUnavailableError("Judge API returned a malformed response") from e

        elapsed = time.perf_counter() - start
        record_judge_request(True, elapsed)

        reported = run.get("time")
        execution_time_ms = int(reported) if reported is not None else int(elapsed * 1000)

        output = run.get("output")
        stderr = run.get("stderr") or ""
        # Deployments that only report combined output are judged on it
        stdout = run.get("stdout")
        if stdout is None:
            stdout = output or ""
        return ExecutionResult(
            output=output if output is not None else stdout + stderr,
            stdout=stdout,
            stderr=stderr,
            exit_code=run.get("code"),
            execution_time_ms=execution_time_ms,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
