from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ..deps import CodeStoreDep, CurrentUserDep, ExecutorDep, ProblemStoreDep
from ..languages import Language, get_profile
from ..services.evaluator import EvaluationContext, RunInProgress, evaluate, render_output_text
from ..services.singletons import RUN_GUARD
from ..services.verdict import Verdict
from ..settings import SETTINGS
from ..utils.errors import http_error
from .common import clamp_page


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/problems", tags=["code"])


class UserCodeResponse(BaseModel):
    problem_id: str
    language: Language
    code: str
    status: Verdict
    is_template: bool
    updated_at: datetime | None = None


@router.get("/{problem_id}/code", response_model=UserCodeResponse)
def get_user_code(problem_id: str, language: Language, user: CurrentUserDep, problems: ProblemStoreDep, codes: CodeStoreDep):
    problems.load_problem(problem_id)
    stored = codes.load_user_code(problem_id=problem_id, user_id=user.id, language=language)
    if stored is None:
        return UserCodeResponse(
            problem_id=problem_id,
            language=language,
            code=get_profile(language).template,
            status=Verdict.UNSOLVED,
            is_template=True,
        )
    return UserCodeResponse(
        problem_id=problem_id,
        language=language,
        code=stored.code,
        status=stored.status,
        is_template=False,
        updated_at=stored.updated_at,
    )


class RunRequest(BaseModel):
    language: Language
    code: str = Field(min_length=1)


class CaseResultOut(BaseModel):
    index: int
    input: str
    expected: str
    actual_output: str
    passed: bool
    execution_error: str | None = None


class PersistenceOut(BaseModel):
    status: str
    error: str | None = None


class RunResponse(BaseModel):
    verdict: Verdict
    results: list[CaseResultOut]
    no_test_cases: bool
    output_text: str
    persistence: PersistenceOut
    warning: str | None = None


@router.post("/{problem_id}/run", response_model=RunResponse)
def run_code(
    problem_id: str,
    req: RunRequest,
    user: CurrentUserDep,
    problems: ProblemStoreDep,
    codes: CodeStoreDep,
    backend: ExecutorDep,
):
    if not req.code.strip():
        http_error(422, "invalid_request", "Code is empty")

    problem = problems.load_problem(problem_id)
    ctx = EvaluationContext(user_id=user.id, problem_id=problem.id)

    def _run():
        return evaluate(
            ctx,
            language=req.language,
            source=req.code,
            test_cases=problem.test_cases,
            backend=backend,
            store=codes,
        )

    if SETTINGS.reject_concurrent_runs:
        try:
            with RUN_GUARD.hold(ctx, req.language):
                outcome = _run()
        except RunInProgress as e:
            logger.info("rejected concurrent run: user=%s problem=%s", user.id, problem.id)
            http_error(409, "run_in_progress", str(e))
    else:
        outcome = _run()

    return RunResponse(
        verdict=outcome.verdict,
        results=[
            CaseResultOut(
                index=idx,
                input=r.input,
                expected=r.expected,
                actual_output=r.actual_output,
                passed=r.passed,
                execution_error=r.execution_error,
            )
            for idx, r in enumerate(outcome.results)
        ],
        no_test_cases=outcome.no_test_cases,
        output_text=render_output_text(outcome),
        persistence=PersistenceOut(status=outcome.persistence.status, error=outcome.persistence.error),
        warning=outcome.warning,
    )


class SubmissionItem(BaseModel):
    id: str
    user_id: str
    username: str
    language: str
    code: str
    status: Verdict
    created_at: datetime


class SubmissionsResponse(BaseModel):
    items: list[SubmissionItem]


@router.get("/{problem_id}/submissions", response_model=SubmissionsResponse)
def list_submissions(
    problem_id: str,
    _: CurrentUserDep,
    problems: ProblemStoreDep,
    codes: CodeStoreDep,
    limit: int = 100,
    offset: int = 0,
):
    problems.load_problem(problem_id)
    limit, offset = clamp_page(limit, offset)
    records = codes.list_submissions(problem_id=problem_id, limit=limit, offset=offset)
    return SubmissionsResponse(
        items=[
            SubmissionItem(
                id=r.id,
                user_id=r.user_id,
                username=r.username,
                language=r.language,
                code=r.source_code,
                status=r.verdict,
                created_at=r.timestamp,
            )
            for r in records
        ]
    )
