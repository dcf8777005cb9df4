from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

import bcrypt
import jwt
from passlib.context import CryptContext

from .settings import SETTINGS


# passlib reads bcrypt.__about__.__version__, which bcrypt>=4.1 no longer ships.
if not hasattr(bcrypt, "__about__") and hasattr(bcrypt, "__version__"):
    class _BcryptAbout:
        __version__ = bcrypt.__version__

    bcrypt.__about__ = _BcryptAbout()  # type: ignore[attr-defined]

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

Role = Literal["user", "admin"]


class InvalidToken(Exception):
    pass


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    username: str
    role: Role


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(*, user_id: str, username: str, role: Role) -> str:
    now = datetime.now(tz=timezone.utc)
    exp = now + timedelta(seconds=SETTINGS.jwt_ttl_seconds)
    payload = {
        "sub": user_id,
        "username": username,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, SETTINGS.jwt_secret, algorithm="HS256")


def decode_access_token(token: str) -> TokenClaims:
    try:
        payload: dict[str, Any] = jwt.decode(token, SETTINGS.jwt_secret, algorithms=["HS256"])
    except jwt.PyJWTError as e:
        raise InvalidToken(str(e)) from e

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise InvalidToken("missing_sub")
    role = payload.get("role")
    if role not in ("user", "admin"):
        role = "user"
    return TokenClaims(user_id=user_id, username=str(payload.get("username") or ""), role=role)
