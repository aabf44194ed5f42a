"""Solution judge for battle submissions.

Runs a submission once per test case through the remote executor and
compares what it prints against the expected value.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from codeduel.battle.executor import RemoteExecutor
from codeduel.config import settings
from codeduel.core.exceptions import JudgeUnavailableError

logger = logging.getLogger(__name__)

_DEF_PATTERN = re.compile(r"^\s*def\s+([A-Za-z_]\w*)\s*\(", re.MULTILINE)

# Appended to the submission. Reads JSON arguments from stdin, calls the
# solution, prints the result in the same form expected values are rendered.
HARNESS_TEMPLATE = '''

if __name__ == "__main__":
    import json as _cd_json
    import sys as _cd_sys

    _cd_raw = _cd_sys.stdin.read()
    _cd_args = _cd_json.loads(_cd_raw) if _cd_raw.strip() else None
    if isinstance(_cd_args, list):
        _cd_result = {function_name}(*_cd_args)
    elif isinstance(_cd_args, dict):
        _cd_result = {function_name}(**_cd_args)
    elif _cd_args is None:
        _cd_result = {function_name}()
    else:
        _cd_result = {function_name}(_cd_args)
    if isinstance(_cd_result, (str, bool)):
        print(_cd_result)
    else:
        print(_cd_json.dumps(_cd_result))
'''


@dataclass
class TestResult:
    """Result of running a single test case."""
    passed: bool
    input: Any
    expected: Any
    actual: str
    execution_time_ms: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "input": self.input,
            "expected": self.expected,
            "actual": self.actual,
            "execution_time": self.execution_time_ms,
            "error": self.error,
        }


@dataclass
class JudgeResult:
    """Complete result of judging a submission."""
    success: bool
    total_passed: int
    total_tests: int
    execution_time_ms: int = 0
    test_results: list[TestResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def accuracy(self) -> int:
        if not self.total_tests:
            return 0
        return round(self.total_passed * 100 / self.total_tests)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "execution_time": self.execution_time_ms,
            "test_cases": [r.to_dict() for r in self.test_results],
            "total_passed": self.total_passed,
            "total_tests": self.total_tests,
            "error": self.error,
        }


def function_name_from_signature(signature: Optional[str]) -> Optional[str]:
    if not signature:
        return None
    return signature.split("(")[0].replace("def ", "").strip() or None


def render_expected(value: Any) -> str:
    """Render an expected value the way the harness prints results."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value)


def is_boolean_expectation(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    return isinstance(value, str) and value.strip().lower() in ("true", "false")


class SolutionJudge:
    """Judges submissions against a challenge's test cases.

    Test cases run sequentially with a fixed pause between requests to
    stay under the public API's rate limit. There is no retry: a failed
    request fails that test case only.
    """

    def __init__(
        self,
        executor: Optional[RemoteExecutor] = None,
        request_delay: Optional[float] = None,
    ):
        self.executor = executor or RemoteExecutor()
        self.request_delay = (
            settings.judge_request_delay_seconds if request_delay is None else request_delay
        )

    def precheck(self, code: str, function_name: Optional[str]) -> Optional[str]:
        """Cheap static checks before anything is sent to the API."""
        if not code.strip():
            return "Code is empty"
        if "def " not in code:
            return "Function definition not found"
        if function_name and function_name not in code:
            return f"Function '{function_name}' not found in code"
        return None

    def build_program(self, code: str, function_name: str) -> str:
        return code.rstrip() + "\n" + HARNESS_TEMPLATE.format(function_name=function_name)

    def compare_output(self, expected: Any, actual: str) -> bool:
        """Trimmed comparison; booleans compare case-insensitively."""
        rendered = render_expected(expected).strip()
        actual = actual.strip()
        if is_boolean_expectation(expected):
            return rendered.lower() == actual.lower()
        return rendered == actual

    async def run_test_case(self, program: str, test_case: dict[str, Any]) -> TestResult:
        test_input = test_case.get("input")
        expected = test_case.get("expected", test_case.get("expected_output"))

        try:
            result = await self.executor.execute(program, stdin=json.dumps(test_input))
        except JudgeUnavailableError as e:
            logger.warning(f"Judge call failed for test case {test_input!r}: {e.message}")
            return TestResult(
                passed=False,
                input=test_input,
                expected=expected,
                actual="",
                error=e.message,
            )

        passed = result.error is None and self.compare_output(expected, result.stdout)
        return TestResult(
            passed=passed,
            input=test_input,
            expected=expected,
            actual=result.stdout.strip(),
            execution_time_ms=result.execution_time_ms,
            error=result.error,
        )

    async def judge_solution(
        self,
        code: str,
        test_cases: list[dict[str, Any]],
        function_signature: Optional[str] = None,
    ) -> JudgeResult:
        """Judge ``code`` against every test case.

        Args:
            code: The submitted solution
            test_cases: ``[{"input": <args>, "expected": <value>}]``
            function_signature: Signature the solution must implement

        Returns:
            JudgeResult; ``success`` only when at least one test case ran
            and all of them passed
        """
        function_name = function_name_from_signature(function_signature)
        precheck_error = self.precheck(code, function_name)
        if precheck_error:
            return JudgeResult(
                success=False,
                total_passed=0,
                total_tests=len(test_cases),
                error=precheck_error,
            )

        if function_name is None:
            match = _DEF_PATTERN.search(code)
            if match is None:
                return JudgeResult(
                    success=False,
                    total_passed=0,
                    total_tests=len(test_cases),
                    error="Function definition not found",
                )
            function_name = match.group(1)

        program = self.build_program(code, function_name)
        results: list[TestResult] = []
        first_error: Optional[str] = None

        for index, test_case in enumerate(test_cases):
            if index > 0 and self.request_delay > 0:
                await asyncio.sleep(self.request_delay)
            result = await self.run_test_case(program, test_case)
            if result.error and first_error is None:
                first_error = result.error
            results.append(result)

        passed = sum(1 for r in results if r.passed)
        return JudgeResult(
            success=bool(results) and passed == len(results),
            total_passed=passed,
            total_tests=len(test_cases),
            execution_time_ms=sum(r.execution_time_ms for r in results),
            test_results=results,
            error=first_error,
        )


# Global judge instance
judge = SolutionJudge()
