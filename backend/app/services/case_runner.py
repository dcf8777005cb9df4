from __future__ import annotations

import logging
from dataclasses import dataclass

from ..languages import Language
from .execution import ExecutionBackend, ExecutionError


logger = logging.getLogger(__name__)

EXECUTION_ERROR_PREFIX = "Error executing code: "


@dataclass(frozen=True)
class TestCase:
    __test__ = False

    input: str
    expected_output: str


@dataclass(frozen=True)
class CaseResult:
    input: str
    expected: str
    actual_output: str
    passed: bool
    execution_error: str | None = None


def outputs_match(actual: str, expected: str) -> bool:
    # Ends are whitespace-insensitive; everything between must match exactly.
    return actual.strip() == expected.strip()


def failure_output(reason: str) -> str:
    return EXECUTION_ERROR_PREFIX + (reason or "Unknown error")


def failed_case(test_case: TestCase, reason: str) -> CaseResult:
    reason = reason or "Unknown error"
    return CaseResult(
        input=test_case.input,
        expected=test_case.expected_output,
        actual_output=failure_output(reason),
        passed=False,
        execution_error=reason,
    )


def run_case(backend: ExecutionBackend, language: Language, source: str, test_case: TestCase) -> CaseResult:
    """Run one test case and classify it.

    Execution failures never propagate: they become a failed `CaseResult` whose
    `execution_error` holds the reason.
    """

    try:
        result = backend.execute(language, source, test_case.input)
    except ExecutionError as e:
        return failed_case(test_case, e.message)
    except Exception as e:  # noqa: BLE001
        logger.warning("execution backend raised %s: %s", type(e).__name__, e)
        return failed_case(test_case, f"{type(e).__name__}: {e}")

    return CaseResult(
        input=test_case.input,
        expected=test_case.expected_output,
        actual_output=result.stdout,
        passed=outputs_match(result.stdout, test_case.expected_output),
    )
