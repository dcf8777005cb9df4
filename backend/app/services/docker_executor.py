from __future__ import annotations

# Docker execution backend.
#
# One throwaway container per run: source and stdin are copied in with
# put_archive before start, the language's compile/run commands execute under
# `sh -c`, and the container is force-removed afterwards. Containers have no
# network, capped memory/pids and drop all capabilities.

import io
import os
import shlex
import tarfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

import docker
from docker.models.containers import Container
from docker.types import Ulimit

from ..languages import Language, get_profile
from ..settings import SETTINGS
from .execution import ExecutionError, ExecutionResult


WORK_DIR = "/tmp/run"
COMPILE_FAILED_EXIT = 97
COMPILE_TIMED_OUT_EXIT = 98
COMPILE_TIMEOUT_SECONDS = 30
# `timeout` exits 124 when it fired; 137 when the KILL took the process down.
TIMEOUT_EXITS = (124, 137)
MAX_DIAGNOSTIC_CHARS = 2000

_IMAGE_PULL_LOCK = threading.Lock()
_READY_IMAGES: set[str] = set()


def docker_client() -> docker.DockerClient:
    return docker.from_env(timeout=SETTINGS.docker_api_timeout_seconds)


def ensure_image_ready(*, client: docker.DockerClient, image: str) -> None:
    # Pull once per process.
    if image in _READY_IMAGES:
        return

    with _IMAGE_PULL_LOCK:
        if image in _READY_IMAGES:
            return
        try:
            client.images.get(image)
        except docker.errors.ImageNotFound:
            client.images.pull(image)
        _READY_IMAGES.add(image)


def make_tar_bytes(files: dict[str, bytes], *, root: str) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tf:
        dir_info = tarfile.TarInfo(name=root)
        dir_info.type = tarfile.DIRTYPE
        dir_info.mode = 0o777
        tf.addfile(dir_info)
        for name, data in files.items():
            info = tarfile.TarInfo(name=f"{root}/{name}")
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def _timeout_arg(ms: int) -> str:
    # `timeout 0` disables the limit.
    return f"{max(ms, 1) / 1000:g}"


def build_shell_command(
    language: Language,
    *,
    time_limit_ms: int,
    compile_timeout_seconds: int = COMPILE_TIMEOUT_SECONDS,
) -> str:
    # Compile and run each get their own budget via coreutils `timeout`, so
    # the run limit starts after compilation. Exit codes tell the phases apart.
    profile = get_profile(language)
    run = f"exec timeout -s KILL {_timeout_arg(time_limit_ms)} {shlex.join(profile.run_cmd)} < input.txt"
    if profile.compile_cmd is None:
        return run
    timed_out = " -o ".join(f"$rc -eq {code}" for code in TIMEOUT_EXITS)
    compile_step = (
        f"timeout -s KILL {compile_timeout_seconds} {shlex.join(profile.compile_cmd)}; rc=$?; "
        f"if [ {timed_out} ]; then exit {COMPILE_TIMED_OUT_EXIT}; fi; "
        f"if [ $rc -ne 0 ]; then exit {COMPILE_FAILED_EXIT}; fi"
    )
    return f"{compile_step}; {run}"


def default_images() -> dict[Language, str]:
    return {
        Language.CPP: SETTINGS.docker_image_cpp,
        Language.C: SETTINGS.docker_image_c,
        Language.PY: SETTINGS.docker_image_py,
        Language.JAVA: SETTINGS.docker_image_java,
    }


def _decode(data: Any) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("utf-8", errors="replace")
    return str(data or "")


def _clip(text: str) -> str:
    text = text.strip()
    return text if len(text) <= MAX_DIAGNOSTIC_CHARS else text[:MAX_DIAGNOSTIC_CHARS] + "..."


@dataclass
class DockerExecutor:
    images: dict[Language, str]
    time_limit_ms: int = 5000
    memory_mb: int = 256
    pids_limit: int = 64
    max_output_bytes: int = 1_048_576
    client_factory: Callable[[], Any] = field(default=docker_client)
    poll_interval_seconds: float = 0.05
    compile_timeout_seconds: int = COMPILE_TIMEOUT_SECONDS
    # Slack for container start-up and process teardown on top of the budgets.
    wait_grace_seconds: float = 2.0

    @classmethod
    def from_settings(cls) -> "DockerExecutor":
        return cls(
            images=default_images(),
            time_limit_ms=SETTINGS.time_limit_ms,
            memory_mb=SETTINGS.docker_memory_mb,
            pids_limit=SETTINGS.docker_pids_limit,
            max_output_bytes=SETTINGS.max_output_bytes,
        )

    def create_container(self, client: Any, language: Language) -> Container:
        image = self.images[language]
        ensure_image_ready(client=client, image=image)
        return client.containers.create(
            image=image,
            name=f"oj_run_{language.value}_{uuid.uuid4().hex[:12]}",
            command=[
                "sh",
                "-c",
                build_shell_command(
                    language,
                    time_limit_ms=self.time_limit_ms,
                    compile_timeout_seconds=self.compile_timeout_seconds,
                ),
            ],
            working_dir=WORK_DIR,
            user=f"{os.getuid()}:{os.getgid()}",
            network_mode="none",
            mem_limit=f"{self.memory_mb}m",
            memswap_limit=f"{self.memory_mb}m",
            pids_limit=self.pids_limit,
            cap_drop=["ALL"],
            security_opt=["no-new-privileges"],
            ulimits=[Ulimit(name="nofile", soft=256, hard=256)],
            labels={"online_judge.stage": "run", "online_judge.language": language.value},
            detach=True,
        )

    def wait_budget_seconds(self, language: Language) -> float:
        budget = self.time_limit_ms / 1000.0 + self.wait_grace_seconds
        if get_profile(language).compile_cmd is not None:
            budget += self.compile_timeout_seconds
        return budget

    def wait_exit(self, container: Container, *, budget_seconds: float) -> dict[str, Any] | None:
        # Returns the container State, or None when the outer deadline was hit.
        deadline = time.monotonic() + budget_seconds
        while True:
            container.reload()
            if container.status in ("exited", "dead"):
                return container.attrs.get("State") or {}
            if time.monotonic() >= deadline:
                container.kill()
                return None
            time.sleep(self.poll_interval_seconds)

    def execute(self, language: Language, source: str, stdin: str) -> ExecutionResult:
        try:
            client = self.client_factory()
            container = self.create_container(client, language)
        except docker.errors.DockerException as e:
            raise ExecutionError("executor_unavailable", f"{type(e).__name__}: {e}") from e

        try:
            files = {
                get_profile(language).source_name: source.encode("utf-8"),
                "input.txt": stdin.encode("utf-8"),
            }
            container.put_archive("/tmp", make_tar_bytes(files, root="run"))
            container.start()
            state = self.wait_exit(container, budget_seconds=self.wait_budget_seconds(language))
            stdout = _decode(container.logs(stdout=True, stderr=False))
            stderr = _decode(container.logs(stdout=False, stderr=True))
        except docker.errors.DockerException as e:
            raise ExecutionError("executor_unavailable", f"{type(e).__name__}: {e}") from e
        finally:
            try:
                container.remove(force=True)
            except docker.errors.DockerException:
                pass

        if state is None:
            raise ExecutionError("timeout", f"Time limit exceeded ({self.time_limit_ms} ms)")
        exit_code = int(state.get("ExitCode") or 0)
        compiled = get_profile(language).compile_cmd is not None
        if compiled and exit_code == COMPILE_TIMED_OUT_EXIT:
            raise ExecutionError("compile_error", f"Compilation timed out ({self.compile_timeout_seconds} s)")
        if compiled and exit_code == COMPILE_FAILED_EXIT:
            raise ExecutionError("compile_error", _clip(stderr) or "Compilation failed")
        if len(stdout.encode("utf-8")) > self.max_output_bytes:
            raise ExecutionError("output_limit_exceeded", f"Output exceeded {self.max_output_bytes} bytes")
        if state.get("OOMKilled"):
            raise ExecutionError("runtime_error", f"Memory limit exceeded ({self.memory_mb} MB)")
        if exit_code in TIMEOUT_EXITS:
            raise ExecutionError("timeout", f"Time limit exceeded ({self.time_limit_ms} ms)")
        if exit_code != 0:
            message = f"Process exited with code {exit_code}"
            if stderr.strip():
                message = f"{message}: {_clip(stderr)}"
            raise ExecutionError("runtime_error", message)
        return ExecutionResult(stdout=stdout)
