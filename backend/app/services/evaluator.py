from __future__ import annotations

# Evaluation orchestration: run every case, aggregate, persist.
#
# Cases run strictly in input order, one at a time; result `i` is final before
# case `i + 1` starts, and `results[i]` always lines up with `test_cases[i]`.
# A run has no cancellation: case failures are absorbed by `run_case` and a
# persistence failure is reported in the outcome, never raised.

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Literal, Sequence

from ..languages import Language
from .case_runner import CaseResult, TestCase, run_case
from .code_store import CodeStore
from .execution import ExecutionBackend
from .verdict import Verdict, aggregate


logger = logging.getLogger(__name__)

NO_TEST_CASES_MESSAGE = "No test cases available"


@dataclass(frozen=True)
class EvaluationContext:
    """Who is evaluating what; threaded explicitly instead of read from globals."""

    user_id: str
    problem_id: str


@dataclass(frozen=True)
class PersistenceOutcome:
    status: Literal["saved", "failed"]
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "saved"


@dataclass(frozen=True)
class EvaluationOutcome:
    results: list[CaseResult]
    verdict: Verdict
    no_test_cases: bool
    persistence: PersistenceOutcome

    @property
    def warning(self) -> str | None:
        if self.persistence.ok:
            return None
        return f"Failed to save code: {self.persistence.error or 'unknown error'}"


def persist(store: CodeStore, ctx: EvaluationContext, *, language: Language, source: str, verdict: Verdict) -> PersistenceOutcome:
    try:
        store.save_user_code(
            problem_id=ctx.problem_id,
            user_id=ctx.user_id,
            code=source,
            language=language,
            status=verdict,
        )
    except Exception as e:  # noqa: BLE001
        logger.exception("save_user_code failed: problem=%s user=%s language=%s", ctx.problem_id, ctx.user_id, language.value)
        message = getattr(e, "message", None) or str(e) or type(e).__name__
        return PersistenceOutcome(status="failed", error=message)
    return PersistenceOutcome(status="saved")


def evaluate(
    ctx: EvaluationContext,
    *,
    language: Language,
    source: str,
    test_cases: Sequence[TestCase],
    backend: ExecutionBackend,
    store: CodeStore,
) -> EvaluationOutcome:
    results: list[CaseResult] = []
    total = len(test_cases)
    for idx, test_case in enumerate(test_cases, start=1):
        result = run_case(backend, language, source, test_case)
        if result.execution_error is not None:
            logger.warning("case %d/%d execution failed: %s", idx, total, result.execution_error)
        results.append(result)

    verdict = aggregate(results)
    logger.info(
        "evaluated problem=%s user=%s language=%s passed=%d/%d verdict=%s",
        ctx.problem_id,
        ctx.user_id,
        language.value,
        sum(1 for r in results if r.passed),
        total,
        verdict.value,
    )

    persistence = persist(store, ctx, language=language, source=source, verdict=verdict)
    return EvaluationOutcome(
        results=results,
        verdict=verdict,
        no_test_cases=total == 0,
        persistence=persistence,
    )


def render_output_text(outcome: EvaluationOutcome) -> str:
    if outcome.no_test_cases:
        return NO_TEST_CASES_MESSAGE
    blocks = []
    for idx, res in enumerate(outcome.results, start=1):
        blocks.append(
            f"Test Case {idx}:\n{'Passed' if res.passed else 'Failed'}\nExpected: {res.expected}\nOutput: {res.actual_output}"
        )
    return "\n\n".join(blocks)


class RunInProgress(Exception):
    pass


class RunGuard:
    """Rejects a second run for the same (user, problem, language) while one is in flight."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: set[tuple[str, str, str]] = set()

    @contextmanager
    def hold(self, ctx: EvaluationContext, language: Language) -> Iterator[None]:
        key = (ctx.user_id, ctx.problem_id, language.value)
        with self._lock:
            if key in self._active:
                raise RunInProgress(f"run already in progress for {language.value}")
            self._active.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(key)
