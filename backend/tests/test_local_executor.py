from __future__ import annotations

import shutil
import sys
import threading
import time

import pytest

from backend.app.languages import Language
from backend.app.services.execution import ExecutionError
from backend.app.services.local_executor import LocalExecutor


pytestmark = pytest.mark.skipif(
    shutil.which("python3") is None or not sys.platform.startswith("linux"),
    reason="needs python3 on a POSIX host",
)


@pytest.fixture
def executor(tmp_path) -> LocalExecutor:
    return LocalExecutor(work_root=tmp_path / "work", time_limit_ms=3000, output_limit_bytes=4096)


def test_runs_python_with_stdin(executor: LocalExecutor) -> None:
    src = "a, b = map(int, input().split())\nprint(a + b)\n"
    result = executor.execute(Language.PY, src, "1 2\n")

    assert result.stdout == "3\n"


def test_scratch_dir_is_removed(executor: LocalExecutor) -> None:
    executor.execute(Language.PY, "print(1)", "")

    assert list(executor.work_root.iterdir()) == []


def test_runtime_error(executor: LocalExecutor) -> None:
    with pytest.raises(ExecutionError) as exc_info:
        executor.execute(Language.PY, "raise SystemExit(3)", "")

    assert exc_info.value.code == "runtime_error"
    assert "code 3" in exc_info.value.message


def test_timeout(tmp_path) -> None:
    executor = LocalExecutor(work_root=tmp_path, time_limit_ms=300, output_limit_bytes=4096)

    with pytest.raises(ExecutionError) as exc_info:
        executor.execute(Language.PY, "while True:\n    pass\n", "")

    assert exc_info.value.code == "timeout"


def test_output_limit(executor: LocalExecutor) -> None:
    with pytest.raises(ExecutionError) as exc_info:
        executor.execute(Language.PY, "while True:\n    print('x' * 100)\n", "")

    assert exc_info.value.code == "output_limit_exceeded"


def _execute_in_thread(executor: LocalExecutor, *args, join_seconds: float = 10.0):
    outcome: dict = {}

    def _target() -> None:
        try:
            outcome["result"] = executor.execute(*args)
        except Exception as e:  # noqa: BLE001
            outcome["error"] = e

    worker = threading.Thread(target=_target, daemon=True)
    worker.start()
    worker.join(join_seconds)
    assert not worker.is_alive(), f"execute() still blocked {join_seconds}s later"
    return outcome


def test_timeout_applies_when_large_stdin_is_never_read(tmp_path) -> None:
    executor = LocalExecutor(work_root=tmp_path, time_limit_ms=500, output_limit_bytes=4096)
    src = "import time\nwhile True:\n    time.sleep(1)\n"

    started = time.monotonic()
    outcome = _execute_in_thread(executor, Language.PY, src, "x" * 500_000)

    assert isinstance(outcome.get("error"), ExecutionError)
    assert outcome["error"].code == "timeout"
    assert time.monotonic() - started < 5


def test_large_stdin_is_fully_delivered(executor: LocalExecutor) -> None:
    src = "import sys\nprint(len(sys.stdin.read()))\n"
    outcome = _execute_in_thread(executor, Language.PY, src, "x" * 500_000)

    assert outcome["result"].stdout == "500000\n"


def test_output_before_reading_stdin_does_not_deadlock(tmp_path) -> None:
    executor = LocalExecutor(work_root=tmp_path, time_limit_ms=5000, output_limit_bytes=1_048_576)
    src = (
        "import sys\n"
        "sys.stdout.write('y' * 200000)\n"
        "sys.stdout.flush()\n"
        "print(len(sys.stdin.read()))\n"
    )
    outcome = _execute_in_thread(executor, Language.PY, src, "x" * 300_000)

    stdout = outcome["result"].stdout
    assert stdout.startswith("y" * 200000)
    assert stdout.endswith("300000\n")


def test_program_that_exits_without_reading_stdin(executor: LocalExecutor) -> None:
    outcome = _execute_in_thread(executor, Language.PY, "print('done')", "x" * 500_000)

    assert outcome["result"].stdout == "done\n"


@pytest.mark.skipif(shutil.which("gcc") is None, reason="needs gcc")
def test_compile_error(executor: LocalExecutor) -> None:
    with pytest.raises(ExecutionError) as exc_info:
        executor.execute(Language.C, "int main( {\n", "")

    assert exc_info.value.code == "compile_error"
    assert exc_info.value.message
    assert list(executor.work_root.iterdir()) == []


@pytest.mark.skipif(shutil.which("gcc") is None, reason="needs gcc")
def test_compiled_c_program_runs(executor: LocalExecutor) -> None:
    src = '#include <stdio.h>\nint main(){int a,b;scanf("%d %d",&a,&b);printf("%d\\n",a+b);return 0;}\n'

    assert executor.execute(Language.C, src, "2 3\n").stdout == "5\n"
