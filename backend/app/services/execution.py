from __future__ import annotations

# Code execution collaborator.
#
# One call runs one program once: (language, source, stdin) -> stdout. Any
# compile error, runtime crash, timeout or transport failure surfaces as
# `ExecutionError`; callers never see partial output from a failed run.

from dataclasses import dataclass
from typing import Protocol

from ..languages import Language
from ..settings import SETTINGS
from .errors import ServiceError


class ExecutionError(ServiceError):
    """compile_error | runtime_error | timeout | output_limit_exceeded | executor_unavailable | executor_bad_response"""


@dataclass(frozen=True)
class ExecutionResult:
    stdout: str


class ExecutionBackend(Protocol):
    def execute(self, language: Language, source: str, stdin: str) -> ExecutionResult: ...


def get_execution_backend() -> ExecutionBackend:
    if SETTINGS.executor == "local":
        from .local_executor import LocalExecutor  # noqa: WPS433

        return LocalExecutor.from_settings()
    if SETTINGS.executor == "docker":
        from .docker_executor import DockerExecutor  # noqa: WPS433

        return DockerExecutor.from_settings()

    from .remote_executor import RemoteExecutor  # noqa: WPS433

    return RemoteExecutor.from_settings()
