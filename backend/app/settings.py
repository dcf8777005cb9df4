from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OJ_", extra="ignore")

    # Paths
    db_path: str = "data/online_judge.db"
    work_root: str = "data/work"

    # Auth
    jwt_secret: str = Field(default="dev-secret-change-me")
    jwt_ttl_seconds: int = 86400
    allow_signup: bool = True
    admin_username: str | None = None
    admin_password: str | None = None

    # Execution backend
    executor: Literal["remote", "local", "docker"] = "remote"
    # Compiler service contract: POST {"language","code","input"} -> {"output"}
    compiler_base_url: str = "http://localhost:8000"
    compiler_run_path: str = "/run"
    compiler_timeout_seconds: float = 30.0

    # Per-run limits (local/docker executors)
    time_limit_ms: int = 5000
    max_output_bytes: int = 1_048_576  # 1MB

    # Docker executor
    docker_api_timeout_seconds: int = 120
    docker_memory_mb: int = 256
    docker_pids_limit: int = 64
    docker_image_cpp: str = "gcc:13"
    docker_image_c: str = "gcc:13"
    docker_image_py: str = "python:3.12-slim"
    docker_image_java: str = "eclipse-temurin:21-jdk"

    # Evaluation
    reject_concurrent_runs: bool = True

    def ensure_dirs(self) -> None:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        Path(self.work_root).mkdir(parents=True, exist_ok=True)


SETTINGS = Settings()
