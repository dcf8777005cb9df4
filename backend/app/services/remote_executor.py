from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from ..languages import Language
from ..settings import SETTINGS
from .execution import ExecutionError, ExecutionResult


_KNOWN_ERROR_CODES = {"compile_error", "runtime_error", "timeout", "output_limit_exceeded"}


def build_run_url(*, base_url: str, run_path: str) -> str:
    path = run_path.strip() or "/run"
    if not path.startswith("/"):
        path = f"/{path}"
    return base_url.rstrip("/") + path


def _error_from_payload(data: Any, *, status_code: int) -> ExecutionError:
    # Compiler service failures look like {"error": "...", "type": "compile_error"}
    # or {"error": {"code": ..., "message": ...}}.
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            code = str(err.get("code") or "")
            message = str(err.get("message") or "")
        else:
            code = str(data.get("type") or "")
            message = str(err or data.get("stderr") or "")
        if code not in _KNOWN_ERROR_CODES:
            code = "runtime_error"
        if message:
            return ExecutionError(code, message)
    return ExecutionError("executor_bad_response", f"Compiler service HTTP {status_code}")


@dataclass
class RemoteExecutor:
    """Execution backend that delegates to an HTTP compiler service."""

    base_url: str
    run_path: str = "/run"
    timeout_seconds: float = 30.0
    transport: httpx.BaseTransport | None = None

    @classmethod
    def from_settings(cls) -> "RemoteExecutor":
        return cls(
            base_url=SETTINGS.compiler_base_url,
            run_path=SETTINGS.compiler_run_path,
            timeout_seconds=SETTINGS.compiler_timeout_seconds,
        )

    def execute(self, language: Language, source: str, stdin: str) -> ExecutionResult:
        url = build_run_url(base_url=self.base_url, run_path=self.run_path)
        payload = {"language": language.value, "code": source, "input": stdin}
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport, trust_env=False) as client:
                resp = client.post(url, json=payload)
        except httpx.TimeoutException as e:
            raise ExecutionError("timeout", f"Compiler service timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ExecutionError("executor_unavailable", f"{type(e).__name__}: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.status_code >= 400:
            if resp.status_code in (502, 503, 504) and not isinstance(data, dict):
                raise ExecutionError("executor_unavailable", f"Compiler service HTTP {resp.status_code}")
            raise _error_from_payload(data, status_code=resp.status_code)

        if not isinstance(data, dict) or not isinstance(data.get("output"), str):
            raise ExecutionError("executor_bad_response", "Invalid payload shape")
        return ExecutionResult(stdout=data["output"])
