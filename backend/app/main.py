from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import and_, func, select

from .auth import hash_password
from .db import db_session, init_db
from .exceptions import install_exception_handlers
from .models import User
from .routers import admin, auth, code, languages, problems
from .settings import SETTINGS


logger = logging.getLogger(__name__)


def _bootstrap_admin() -> None:
    if not SETTINGS.admin_username or not SETTINGS.admin_password:
        return

    with db_session() as db:
        active_admins = db.scalar(
            select(func.count()).select_from(User).where(and_(User.role == "admin", User.is_disabled == False))  # noqa: E712
        )
        if (active_admins or 0) > 0:
            return

        admin_user = User(
            username=SETTINGS.admin_username.strip(),
            password_hash=hash_password(SETTINGS.admin_password),
            role="admin",
            is_disabled=False,
        )
        db.add(admin_user)
        db.commit()
        logger.info("bootstrapped admin user %s", admin_user.username)


def create_app() -> FastAPI:
    SETTINGS.ensure_dirs()
    init_db()
    _bootstrap_admin()

    app = FastAPI(title="online-judge", version="0.1.0")
    install_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")
    app.include_router(languages.router, prefix="/api")
    app.include_router(problems.router, prefix="/api")
    app.include_router(code.router, prefix="/api")

    logger.info("online-judge ready: executor=%s db=%s", SETTINGS.executor, SETTINGS.db_path)
    return app


app = create_app()
