from __future__ import annotations

# User code + submission history.
#
# `save_user_code` overwrites the (problem, user, language) slot and appends a
# `Submission` row in one commit, so readers never observe one without the
# other. Concurrent saves for the same slot are last-writer-wins.

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..languages import Language
from ..models import Submission, UserCode, utcnow
from .errors import LoadError, PersistenceError
from .verdict import Verdict, parse_verdict


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredCode:
    code: str
    status: Verdict
    updated_at: datetime


@dataclass(frozen=True)
class SubmissionRecord:
    id: str
    problem_id: str
    user_id: str
    username: str
    language: str
    source_code: str
    verdict: Verdict
    timestamp: datetime


class CodeStore(Protocol):
    def save_user_code(
        self,
        *,
        problem_id: str,
        user_id: str,
        code: str,
        language: Language,
        status: Verdict,
    ) -> None: ...


class SqlCodeStore:
    def __init__(self, db: Session):
        self.db = db

    def load_user_code(self, *, problem_id: str, user_id: str, language: Language) -> StoredCode | None:
        try:
            row = self.db.scalar(
                select(UserCode).where(
                    UserCode.problem_id == problem_id,
                    UserCode.user_id == user_id,
                    UserCode.language == language.value,
                )
            )
        except SQLAlchemyError as e:
            raise LoadError("store_unavailable", f"Code lookup failed: {e}") from e
        if row is None or not row.code:
            return None
        return StoredCode(code=row.code, status=parse_verdict(row.status), updated_at=row.updated_at)

    def save_user_code(
        self,
        *,
        problem_id: str,
        user_id: str,
        code: str,
        language: Language,
        status: Verdict,
    ) -> None:
        try:
            row = self.db.scalar(
                select(UserCode).where(
                    UserCode.problem_id == problem_id,
                    UserCode.user_id == user_id,
                    UserCode.language == language.value,
                )
            )
            if row is None:
                row = UserCode(problem_id=problem_id, user_id=user_id, language=language.value)
            row.code = code
            row.status = status.value
            row.updated_at = utcnow()
            self.db.add(row)
            self.db.add(
                Submission(
                    problem_id=problem_id,
                    user_id=user_id,
                    language=language.value,
                    code=code,
                    status=status.value,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            try:
                self.db.rollback()
            except SQLAlchemyError as rollback_exc:
                logger.error("rollback after failed save also failed: %s", rollback_exc)
            raise PersistenceError("save_failed", f"Saving code failed: {e}") from e

    def list_submissions(self, *, problem_id: str, limit: int = 100, offset: int = 0) -> list[SubmissionRecord]:
        stmt = (
            select(Submission)
            .options(joinedload(Submission.user))
            .where(Submission.problem_id == problem_id)
            .order_by(Submission.created_at.desc(), Submission.id)
            .limit(limit)
            .offset(offset)
        )
        try:
            rows = self.db.scalars(stmt).all()
        except SQLAlchemyError as e:
            raise LoadError("store_unavailable", f"Submission lookup failed: {e}") from e
        return [
            SubmissionRecord(
                id=row.id,
                problem_id=row.problem_id,
                user_id=row.user_id,
                username=row.user.username if row.user else "",
                language=row.language,
                source_code=row.code,
                verdict=parse_verdict(row.status),
                timestamp=row.created_at,
            )
            for row in rows
        ]
