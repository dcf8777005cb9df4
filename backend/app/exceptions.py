from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from .services.errors import LoadError
from .utils.errors import error_body


logger = logging.getLogger(__name__)

_LOAD_ERROR_STATUS = {"not_found": 404, "store_unavailable": 503}


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException):  # type: ignore[override]
        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content=exc.detail)
        return JSONResponse(status_code=exc.status_code, content=error_body("http_error", str(exc.detail)))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_: Request, exc: RequestValidationError):  # type: ignore[override]
        return JSONResponse(
            status_code=422,
            content=error_body("invalid_request", "Validation failed", details=jsonable_errors(exc)),
        )

    @app.exception_handler(LoadError)
    async def load_error_handler(_: Request, exc: LoadError):  # type: ignore[override]
        status_code = _LOAD_ERROR_STATUS.get(exc.code, 500)
        return JSONResponse(status_code=status_code, content=error_body(exc.code, exc.message))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_: Request, exc: Exception):  # type: ignore[override]
        logger.exception("unhandled error: %s", exc)
        return JSONResponse(status_code=500, content=error_body("internal_error", str(exc)))


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # `ctx` may hold exception instances that JSONResponse cannot encode.
    items = []
    for err in exc.errors():
        item = dict(err)
        if "ctx" in item:
            item["ctx"] = {k: str(v) for k, v in (item.get("ctx") or {}).items()}
        items.append(item)
    return items
