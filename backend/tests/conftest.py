from __future__ import annotations

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from fakes import FakeBackend


def _init_test_env() -> None:
    """
    Initialize isolated test env before importing backend modules.

    This must run at module import time, because backend settings/database
    are created during module import and read env vars only once.
    """

    root = Path(tempfile.mkdtemp(prefix="online-judge-pytest-"))
    os.environ["OJ_DB_PATH"] = str(root / "test.db")
    os.environ["OJ_WORK_ROOT"] = str(root / "work")
    os.environ.setdefault("OJ_JWT_SECRET", "test-secret")
    os.environ.setdefault("OJ_ALLOW_SIGNUP", "1")
    os.environ.setdefault("OJ_ADMIN_USERNAME", "admin")
    os.environ.setdefault("OJ_ADMIN_PASSWORD", "admin-password-123")
    os.environ.setdefault("OJ_EXECUTOR", "remote")
    os.environ.setdefault("OJ_COMPILER_BASE_URL", "http://compiler.invalid")


_init_test_env()


def pytest_sessionstart(session: pytest.Session) -> None:
    started_at = datetime.now(tz=timezone.utc).isoformat(timespec="seconds")
    print(f"[online-judge-test] status=running started_at={started_at}", flush=True)


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    finished_at = datetime.now(tz=timezone.utc).isoformat(timespec="seconds")
    result = "ok" if exitstatus == 0 else "failed"
    print(f"[online-judge-test] status=finished result={result} exit_code={exitstatus} finished_at={finished_at}", flush=True)


def _ensure_test_admin_user() -> None:
    """Ensure predictable admin credentials in the isolated test database."""

    from backend.app.auth import hash_password  # noqa: WPS433
    from backend.app.db import SessionLocal  # noqa: WPS433
    from backend.app.models import User  # noqa: WPS433

    username = str(os.environ.get("OJ_ADMIN_USERNAME") or "admin").strip()
    password = str(os.environ.get("OJ_ADMIN_PASSWORD") or "admin-password-123")

    with SessionLocal() as db:
        user = db.scalar(select(User).where(User.username == username))
        if user is None:
            user = User(username=username, password_hash=hash_password(password), role="admin", is_disabled=False)
            db.add(user)
        else:
            user.password_hash = hash_password(password)
            user.role = "admin"
            user.is_disabled = False
        db.commit()


@pytest.fixture(scope="session")
def app():
    from backend.app.main import app as fastapi_app  # noqa: WPS433

    _ensure_test_admin_user()
    return fastapi_app


@pytest.fixture(scope="session")
def client(app):
    return TestClient(app)


@pytest.fixture
def fake_backend(app):
    from backend.app.services.execution import get_execution_backend  # noqa: WPS433

    backend = FakeBackend()
    app.dependency_overrides[get_execution_backend] = lambda: backend
    yield backend
    app.dependency_overrides.pop(get_execution_backend, None)


def login(client, username: str, password: str) -> str:
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200
    return resp.json()["access_token"]


@pytest.fixture
def admin_headers(client) -> dict[str, str]:
    token = login(client, "admin", "admin-password-123")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers(client) -> dict[str, str]:
    username = f"user_{uuid4().hex[:8]}"
    resp = client.post("/api/auth/signup", json={"username": username, "password": "password123"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def make_problem(client, admin_headers):
    def _make(test_cases: list[tuple[str, str]], title: str = "A + B") -> str:
        resp = client.post(
            "/api/problems",
            headers=admin_headers,
            json={
                "title": title,
                "statement_md": "# A + B\n",
                "test_cases": [{"input": i, "output": o} for i, o in test_cases],
            },
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["id"]

    return _make
