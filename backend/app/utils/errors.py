#
# Error helpers.
#
from __future__ import annotations

from typing import Any, NoReturn

from fastapi import HTTPException


def error_body(code: str, message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"code": code, "message": message}
    body.update(extra)
    return {"error": body}


def http_error(status_code: int, code: str, message: str) -> NoReturn:
    raise HTTPException(status_code=status_code, detail=error_body(code, message))
