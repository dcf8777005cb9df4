from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .auth import InvalidToken, decode_access_token
from .db import SessionLocal
from .models import User
from .services.code_store import SqlCodeStore
from .services.execution import ExecutionBackend, get_execution_backend
from .services.problem_store import SqlProblemStore
from .utils.errors import error_body


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


DbDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    db: DbDep,
    authorization: Annotated[str | None, Header()] = None,
) -> User:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail=error_body("unauthorized", "Missing token"))

    token = authorization.removeprefix("Bearer ").strip()
    try:
        claims = decode_access_token(token)
    except InvalidToken:
        raise HTTPException(status_code=401, detail=error_body("unauthorized", "Invalid token"))

    user = db.get(User, claims.user_id)
    if not user:
        raise HTTPException(status_code=401, detail=error_body("unauthorized", "Unknown user"))
    if user.is_disabled:
        raise HTTPException(status_code=403, detail=error_body("forbidden", "User disabled"))
    return user


CurrentUserDep = Annotated[User, Depends(get_current_user)]


def require_admin(user: CurrentUserDep) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail=error_body("forbidden", "Admin only"))
    return user


AdminUserDep = Annotated[User, Depends(require_admin)]


def get_problem_store(db: DbDep) -> SqlProblemStore:
    return SqlProblemStore(db)


def get_code_store(db: DbDep) -> SqlCodeStore:
    return SqlCodeStore(db)


ProblemStoreDep = Annotated[SqlProblemStore, Depends(get_problem_store)]
CodeStoreDep = Annotated[SqlCodeStore, Depends(get_code_store)]
ExecutorDep = Annotated[ExecutionBackend, Depends(get_execution_backend)]
