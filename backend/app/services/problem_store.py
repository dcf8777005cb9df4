from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Problem
from .case_runner import TestCase
from .errors import LoadError


@dataclass(frozen=True)
class LoadedProblem:
    id: str
    title: str
    statement_md: str
    test_cases: list[TestCase]


class SqlProblemStore:
    def __init__(self, db: Session):
        self.db = db

    def load_problem(self, problem_id: str) -> LoadedProblem:
        try:
            problem = self.db.get(Problem, problem_id)
            if problem is None:
                raise LoadError("not_found", "Problem not found")
            cases = [TestCase(input=tc.input_text, expected_output=tc.expected_output) for tc in problem.test_cases]
        except SQLAlchemyError as e:
            raise LoadError("store_unavailable", f"Problem lookup failed: {e}") from e
        return LoadedProblem(
            id=problem.id,
            title=problem.title,
            statement_md=problem.statement_md,
            test_cases=cases,
        )
