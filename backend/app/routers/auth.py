from __future__ import annotations

import re
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import select

from ..auth import create_access_token, hash_password, verify_password
from ..deps import CurrentUserDep, DbDep
from ..models import User
from ..settings import SETTINGS
from ..utils.errors import http_error


router = APIRouter(prefix="/auth", tags=["auth"])

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_.-]{3,32}$")


class Credentials(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: str
    username: str
    role: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    user: UserOut


class ProfileResponse(BaseModel):
    id: str
    username: str
    role: str
    is_disabled: bool
    created_at: datetime


def validate_credentials(username: str, password: str) -> None:
    if not USERNAME_RE.match(username):
        http_error(422, "invalid_request", "Invalid username")
    if not (8 <= len(password) <= 72):
        http_error(422, "invalid_request", "Invalid password length")


def token_response(user: User) -> TokenResponse:
    token = create_access_token(user_id=user.id, username=user.username, role=user.role)
    return TokenResponse(access_token=token, user=UserOut(id=user.id, username=user.username, role=user.role))


@router.post("/signup", response_model=TokenResponse)
def signup(req: Credentials, db: DbDep):
    if not SETTINGS.allow_signup:
        http_error(403, "signup_disabled", "Signup disabled")

    username = req.username.strip()
    validate_credentials(username, req.password)
    if db.scalar(select(User).where(User.username == username)):
        http_error(409, "conflict", "Username already exists")

    user = User(username=username, password_hash=hash_password(req.password), role="user", is_disabled=False)
    db.add(user)
    db.commit()
    return token_response(user)


@router.post("/login", response_model=TokenResponse)
def login(req: Credentials, db: DbDep):
    user: User | None = db.scalar(select(User).where(User.username == req.username.strip()))
    if not user or not verify_password(req.password, user.password_hash):
        http_error(401, "unauthorized", "Invalid credentials")
    if user.is_disabled:
        http_error(403, "forbidden", "User disabled")
    return token_response(user)


@router.get("/me", response_model=ProfileResponse)
def me(user: CurrentUserDep):
    return ProfileResponse.model_validate(user, from_attributes=True)
