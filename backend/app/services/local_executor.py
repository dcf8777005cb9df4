from __future__ import annotations

# Local subprocess execution backend.
#
# Each call gets its own scratch dir under `SETTINGS.work_root`: the source is
# written there, compiled when the language needs it, then run once with stdin.
# The program runs in its own process group so a timeout or output overflow
# can SIGKILL everything it spawned.

import os
import selectors
import shutil
import signal
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path

from ..languages import Language, get_profile
from ..settings import SETTINGS
from .execution import ExecutionError, ExecutionResult


MAX_DIAGNOSTIC_CHARS = 2000
COMPILE_TIMEOUT_SECONDS = 30
STDIN_CHUNK_BYTES = 16384


def setsid_preexec() -> None:
    os.setsid()


def kill_process_group(proc: subprocess.Popen[bytes]) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        return
    except PermissionError:
        proc.kill()


def clip(text: str, limit: int = MAX_DIAGNOSTIC_CHARS) -> str:
    text = text.strip()
    if len(text) > limit:
        return text[:limit] + "..."
    return text


@dataclass
class RunState:
    stdout: bytearray = field(default_factory=bytearray)
    stderr: bytearray = field(default_factory=bytearray)
    timeout: bool = False
    output_limit_exceeded: bool = False


def _close_quietly(stream) -> None:
    if stream is None or stream.closed:
        return
    try:
        stream.close()
    except OSError:
        pass


def communicate(
    proc: subprocess.Popen[bytes],
    state: RunState,
    input_bytes: bytes,
    *,
    time_limit_ms: int,
    output_limit_bytes: int,
) -> None:
    # stdin is fed non-blocking from the drain loop; the deadline covers
    # writing input as well as reading output.
    assert proc.stdin and proc.stdout and proc.stderr
    deadline = time.monotonic() + time_limit_ms / 1000.0

    sel = selectors.DefaultSelector()
    sel.register(proc.stdout, selectors.EVENT_READ, data="stdout")
    sel.register(proc.stderr, selectors.EVENT_READ, data="stderr")
    pending = memoryview(input_bytes)
    if pending:
        os.set_blocking(proc.stdin.fileno(), False)
        sel.register(proc.stdin, selectors.EVENT_WRITE, data="stdin")
    else:
        _close_quietly(proc.stdin)

    try:
        while sel.get_map():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                state.timeout = True
                kill_process_group(proc)
                return
            for key, _mask in sel.select(timeout=min(0.05, remaining)):
                if key.data == "stdin":
                    try:
                        written = os.write(key.fd, pending[:STDIN_CHUNK_BYTES])
                    except BlockingIOError:
                        continue
                    except BrokenPipeError:
                        # Program exited or closed stdin without reading all of it.
                        written = len(pending)
                    pending = pending[written:]
                    if not pending:
                        sel.unregister(key.fileobj)
                        _close_quietly(proc.stdin)
                    continue

                data = key.fileobj.read1(4096)  # type: ignore[union-attr]
                if not data:
                    sel.unregister(key.fileobj)
                    continue
                buf = state.stdout if key.data == "stdout" else state.stderr
                buf.extend(data)
                if len(state.stdout) + len(state.stderr) > output_limit_bytes:
                    state.output_limit_exceeded = True
                    kill_process_group(proc)
                    return
    finally:
        sel.close()
        _close_quietly(proc.stdin)


@dataclass
class LocalExecutor:
    work_root: Path
    time_limit_ms: int = 5000
    output_limit_bytes: int = 1_048_576

    @classmethod
    def from_settings(cls) -> "LocalExecutor":
        return cls(
            work_root=Path(SETTINGS.work_root),
            time_limit_ms=SETTINGS.time_limit_ms,
            output_limit_bytes=SETTINGS.max_output_bytes,
        )

    def compile(self, language: Language, work_dir: Path) -> None:
        profile = get_profile(language)
        if profile.compile_cmd is None:
            return
        try:
            cp = subprocess.run(
                list(profile.compile_cmd),
                cwd=str(work_dir),
                capture_output=True,
                timeout=COMPILE_TIMEOUT_SECONDS,
            )
        except FileNotFoundError as e:
            raise ExecutionError("executor_unavailable", f"Compiler not found: {profile.compile_cmd[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise ExecutionError("compile_error", "Compilation timed out") from e
        if cp.returncode != 0:
            diagnostics = clip(cp.stderr.decode("utf-8", errors="replace") or cp.stdout.decode("utf-8", errors="replace"))
            raise ExecutionError("compile_error", diagnostics or f"Compiler exited with {cp.returncode}")

    def run(self, language: Language, work_dir: Path, stdin: str) -> str:
        profile = get_profile(language)
        try:
            proc = subprocess.Popen(
                list(profile.run_cmd),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(work_dir),
                preexec_fn=setsid_preexec,
            )
        except FileNotFoundError as e:
            raise ExecutionError("executor_unavailable", f"Runtime not found: {profile.run_cmd[0]}") from e

        state = RunState()
        communicate(
            proc,
            state,
            stdin.encode("utf-8"),
            time_limit_ms=self.time_limit_ms,
            output_limit_bytes=self.output_limit_bytes,
        )
        try:
            exit_code = proc.wait(timeout=1)
        except subprocess.TimeoutExpired:
            kill_process_group(proc)
            exit_code = proc.wait()
        finally:
            for stream in (proc.stdout, proc.stderr):
                if stream is not None:
                    stream.close()

        if state.timeout:
            raise ExecutionError("timeout", f"Time limit exceeded ({self.time_limit_ms} ms)")
        if state.output_limit_exceeded:
            raise ExecutionError("output_limit_exceeded", f"Output exceeded {self.output_limit_bytes} bytes")
        if exit_code != 0:
            stderr_text = clip(state.stderr.decode("utf-8", errors="replace"))
            message = f"Process exited with code {exit_code}"
            if stderr_text:
                message = f"{message}: {stderr_text}"
            raise ExecutionError("runtime_error", message)
        return state.stdout.decode("utf-8", errors="replace")

    def execute(self, language: Language, source: str, stdin: str) -> ExecutionResult:
        self.work_root.mkdir(parents=True, exist_ok=True)
        work_dir = Path(tempfile.mkdtemp(prefix=f"run-{language.value}-", dir=str(self.work_root)))
        try:
            (work_dir / get_profile(language).source_name).write_text(source, encoding="utf-8")
            self.compile(language, work_dir)
            return ExecutionResult(stdout=self.run(language, work_dir, stdin))
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)
