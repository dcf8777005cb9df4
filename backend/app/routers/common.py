from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..utils.errors import http_error


def commit_db(db: Session) -> None:
    # Commit; on failure roll back and answer 500 db_error.
    try:
        db.commit()
    except SQLAlchemyError as exc:
        details = f"Commit failed: {exc}"
        try:
            db.rollback()
        except SQLAlchemyError as rollback_exc:
            details = f"{details}; rollback failed: {rollback_exc}"
        http_error(500, "db_error", details)


def clamp_page(limit: int, offset: int, *, max_limit: int = 200) -> tuple[int, int]:
    return max(1, min(int(limit), max_limit)), max(0, int(offset))
