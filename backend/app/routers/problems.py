from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Response
from pydantic import BaseModel, Field
from sqlalchemy import delete, func, select

from ..deps import AdminUserDep, DbDep, ProblemStoreDep
from ..models import Problem, ProblemTestCase, Submission, UserCode
from ..utils.errors import http_error
from .common import clamp_page, commit_db


router = APIRouter(prefix="/problems", tags=["problems"])


class TestCaseIn(BaseModel):
    input: str = ""
    output: str = ""


class TestCaseOut(BaseModel):
    input: str
    output: str


class ProblemUpsertRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    statement_md: str = ""
    test_cases: list[TestCaseIn] = Field(default_factory=list)


class ProblemListItem(BaseModel):
    id: str
    title: str
    test_case_count: int
    created_at: datetime


class ProblemListResponse(BaseModel):
    items: list[ProblemListItem]
    total: int


class ProblemDetail(BaseModel):
    id: str
    title: str
    statement_md: str
    test_cases: list[TestCaseOut]


def _replace_test_cases(problem: Problem, cases: list[TestCaseIn]) -> None:
    problem.test_cases = [
        ProblemTestCase(position=idx, input_text=tc.input, expected_output=tc.output) for idx, tc in enumerate(cases)
    ]


@router.get("", response_model=ProblemListResponse)
def list_problems(db: DbDep, q: str | None = None, limit: int = 50, offset: int = 0):
    limit, offset = clamp_page(limit, offset)
    counts = (
        select(ProblemTestCase.problem_id, func.count().label("n"))
        .group_by(ProblemTestCase.problem_id)
        .subquery()
    )
    stmt = (
        select(Problem, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.problem_id == Problem.id)
        .order_by(Problem.created_at.desc(), Problem.id)
    )
    count_stmt = select(func.count()).select_from(Problem)
    if q:
        stmt = stmt.where(Problem.title.like(f"%{q}%"))
        count_stmt = count_stmt.where(Problem.title.like(f"%{q}%"))
    total = db.scalar(count_stmt) or 0
    rows = db.execute(stmt.limit(limit).offset(offset)).all()
    return ProblemListResponse(
        items=[
            ProblemListItem(id=p.id, title=p.title, test_case_count=int(n), created_at=p.created_at) for p, n in rows
        ],
        total=total,
    )


@router.get("/{problem_id}", response_model=ProblemDetail)
def get_problem(problem_id: str, problems: ProblemStoreDep):
    loaded = problems.load_problem(problem_id)
    return ProblemDetail(
        id=loaded.id,
        title=loaded.title,
        statement_md=loaded.statement_md,
        test_cases=[TestCaseOut(input=tc.input, output=tc.expected_output) for tc in loaded.test_cases],
    )


@router.post("", response_model=ProblemDetail, status_code=201)
def create_problem(_: AdminUserDep, db: DbDep, problems: ProblemStoreDep, req: ProblemUpsertRequest):
    title = req.title.strip()
    if not title:
        http_error(422, "invalid_request", "Title required")
    problem = Problem(title=title, statement_md=req.statement_md)
    _replace_test_cases(problem, req.test_cases)
    db.add(problem)
    commit_db(db)
    return get_problem(problem.id, problems)


@router.put("/{problem_id}", response_model=ProblemDetail)
def replace_problem(problem_id: str, _: AdminUserDep, db: DbDep, problems: ProblemStoreDep, req: ProblemUpsertRequest):
    problem = db.get(Problem, problem_id)
    if problem is None:
        http_error(404, "not_found", "Problem not found")
    title = req.title.strip()
    if not title:
        http_error(422, "invalid_request", "Title required")
    problem.title = title
    problem.statement_md = req.statement_md
    _replace_test_cases(problem, req.test_cases)
    db.add(problem)
    commit_db(db)
    db.expire_all()
    return get_problem(problem.id, problems)


@router.delete("/{problem_id}", status_code=204)
def delete_problem(problem_id: str, _: AdminUserDep, db: DbDep):
    problem = db.get(Problem, problem_id)
    if problem is None:
        http_error(404, "not_found", "Problem not found")
    db.execute(delete(Submission).where(Submission.problem_id == problem_id))
    db.execute(delete(UserCode).where(UserCode.problem_id == problem_id))
    db.delete(problem)
    commit_db(db)
    return Response(status_code=204)
