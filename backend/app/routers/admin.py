from __future__ import annotations

# Admin user management endpoints.

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import and_, func, select

from ..auth import hash_password
from ..deps import AdminUserDep, DbDep
from ..models import User
from ..utils.errors import http_error
from .auth import validate_credentials
from .common import clamp_page, commit_db


router = APIRouter(prefix="/admin", tags=["admin"])


class UserItem(BaseModel):
    id: str
    username: str
    role: str
    is_disabled: bool
    created_at: datetime


class UsersListResponse(BaseModel):
    items: list[UserItem]
    total: int


ROLES = ("user", "admin")


def _check_role(role: str) -> str:
    role = role.strip()
    if role not in ROLES:
        http_error(422, "invalid_request", "Invalid role")
    return role


@router.get("/users", response_model=UsersListResponse)
def list_users(
    _: AdminUserDep,
    db: DbDep,
    q: str | None = None,
    role: str | None = None,
    is_disabled: bool | None = None,
    limit: int = 50,
    offset: int = 0,
):
    limit, offset = clamp_page(limit, offset)
    stmt = select(User).order_by(User.created_at.desc())
    if q:
        stmt = stmt.where(User.username.like(f"%{q}%"))
    if role:
        stmt = stmt.where(User.role == _check_role(role))
    if is_disabled is not None:
        stmt = stmt.where(User.is_disabled == is_disabled)
    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    items = db.scalars(stmt.limit(limit).offset(offset)).all()
    return UsersListResponse(
        items=[UserItem.model_validate(u, from_attributes=True) for u in items],
        total=total,
    )


class CreateUserRequest(BaseModel):
    username: str
    password: str
    role: str = "user"
    is_disabled: bool = False


@router.post("/users", response_model=UserItem, status_code=201)
def create_user(_: AdminUserDep, db: DbDep, req: CreateUserRequest):
    username = req.username.strip()
    validate_credentials(username, req.password)
    role = _check_role(req.role or "user")
    if db.scalar(select(User).where(User.username == username)):
        http_error(409, "conflict", "Username already exists")

    user = User(username=username, password_hash=hash_password(req.password), role=role, is_disabled=req.is_disabled)
    db.add(user)
    commit_db(db)
    db.refresh(user)
    return UserItem.model_validate(user, from_attributes=True)


class PatchUserRequest(BaseModel):
    is_disabled: bool | None = None
    role: str | None = None


@router.patch("/users/{user_id}", response_model=UserItem)
def patch_user(admin: AdminUserDep, db: DbDep, user_id: str, req: PatchUserRequest):
    user = db.get(User, user_id)
    if not user:
        http_error(404, "not_found", "User not found")
    if user.id == admin.id and req.is_disabled:
        http_error(409, "conflict", "Cannot disable yourself")
    if req.role is not None:
        req.role = _check_role(req.role)

    # Keep at least one active admin.
    if (req.role == "user" or req.is_disabled is True) and user.role == "admin" and not user.is_disabled:
        active_admins = db.scalar(
            select(func.count()).select_from(User).where(and_(User.role == "admin", User.is_disabled == False))  # noqa: E712
        )
        if (active_admins or 0) <= 1:
            http_error(409, "conflict", "Must keep at least one active admin")

    if req.is_disabled is not None:
        user.is_disabled = req.is_disabled
    if req.role is not None:
        user.role = req.role
    db.add(user)
    commit_db(db)
    return UserItem.model_validate(user, from_attributes=True)


class ResetPasswordRequest(BaseModel):
    new_password: str


@router.post("/users/{user_id}/reset_password")
def reset_password(_: AdminUserDep, db: DbDep, user_id: str, req: ResetPasswordRequest):
    if not (8 <= len(req.new_password) <= 72):
        http_error(422, "invalid_request", "Invalid password length")
    user = db.get(User, user_id)
    if not user:
        http_error(404, "not_found", "User not found")
    user.password_hash = hash_password(req.new_password)
    db.add(user)
    commit_db(db)
    return {"ok": True}
