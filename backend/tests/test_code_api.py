from __future__ import annotations

from backend.app.languages import Language
from backend.app.services.code_store import SqlCodeStore
from backend.app.services.errors import PersistenceError
from backend.app.services.evaluator import EvaluationContext
from backend.app.services.execution import ExecutionError
from backend.app.services.singletons import RUN_GUARD


def _run(client, headers, problem_id: str, code: str, language: str = "cpp"):
    return client.post(f"/api/problems/{problem_id}/run", headers=headers, json={"language": language, "code": code})


def test_run_all_pass_is_solved(client, user_headers, make_problem, fake_backend):
    problem_id = make_problem([("1 2\n", "3"), ("2 2\n", "4")])
    fake_backend.outputs.update({"1 2\n": "3\n", "2 2\n": "4\n"})

    resp = _run(client, user_headers, problem_id, "int main(){}")

    assert resp.status_code == 200
    data = resp.json()
    assert data["verdict"] == "solved"
    assert data["no_test_cases"] is False
    assert [r["passed"] for r in data["results"]] == [True, True]
    assert [r["index"] for r in data["results"]] == [0, 1]
    assert data["persistence"] == {"status": "saved", "error": None}
    assert data["warning"] is None
    assert data["output_text"].startswith("Test Case 1:\nPassed\nExpected: 3\nOutput: 3\n")


def test_run_with_execution_error_is_attempted(client, user_headers, make_problem, fake_backend):
    problem_id = make_problem([("a", "a"), ("b", "b"), ("c", "c")])
    fake_backend.outputs["b"] = ExecutionError("timeout", "Time limit exceeded")

    data = _run(client, user_headers, problem_id, "print(input())", language="py").json()

    assert data["verdict"] == "attempted"
    assert [r["passed"] for r in data["results"]] == [True, False, True]
    assert data["results"][1]["execution_error"] == "Time limit exceeded"
    assert data["results"][1]["actual_output"] == "Error executing code: Time limit exceeded"
    assert len(fake_backend.calls) == 3


def test_run_without_test_cases(client, user_headers, make_problem, fake_backend):
    problem_id = make_problem([])

    data = _run(client, user_headers, problem_id, "print(1)", language="py").json()

    assert data["verdict"] == "unsolved"
    assert data["results"] == []
    assert data["no_test_cases"] is True
    assert data["output_text"] == "No test cases available"
    assert fake_backend.calls == []

    stored = client.get(f"/api/problems/{problem_id}/code", headers=user_headers, params={"language": "py"}).json()
    assert stored["is_template"] is False
    assert stored["status"] == "unsolved"


def test_code_restore_and_template_fallback(client, user_headers, make_problem, fake_backend):
    problem_id = make_problem([("x", "x")])

    template = client.get(f"/api/problems/{problem_id}/code", headers=user_headers, params={"language": "java"}).json()
    assert template["is_template"] is True
    assert template["status"] == "unsolved"
    assert "class Main" in template["code"]

    _run(client, user_headers, problem_id, "first", language="java")
    _run(client, user_headers, problem_id, "second", language="java")

    stored = client.get(f"/api/problems/{problem_id}/code", headers=user_headers, params={"language": "java"}).json()
    assert stored["is_template"] is False
    assert stored["code"] == "second"
    assert stored["status"] == "solved"

    # Slots are per language.
    other = client.get(f"/api/problems/{problem_id}/code", headers=user_headers, params={"language": "c"}).json()
    assert other["is_template"] is True


def test_submissions_are_appended_newest_first(client, user_headers, make_problem, fake_backend):
    problem_id = make_problem([("x", "x")])
    fake_backend.outputs["x"] = "nope"
    _run(client, user_headers, problem_id, "v1", language="py")
    fake_backend.outputs["x"] = "x"
    _run(client, user_headers, problem_id, "v2", language="py")

    resp = client.get(f"/api/problems/{problem_id}/submissions", headers=user_headers)

    assert resp.status_code == 200
    items = resp.json()["items"]
    assert len(items) == 2
    assert {i["code"] for i in items} == {"v1", "v2"}
    assert {i["code"]: i["status"] for i in items} == {"v1": "unsolved", "v2": "solved"}
    assert all(i["username"].startswith("user_") for i in items)


def test_persistence_failure_returns_results_with_warning(client, user_headers, make_problem, fake_backend, monkeypatch):
    problem_id = make_problem([("x", "x")])

    def _fail(self, **kwargs):
        raise PersistenceError("save_failed", "database is locked")

    monkeypatch.setattr(SqlCodeStore, "save_user_code", _fail)

    resp = _run(client, user_headers, problem_id, "print(input())", language="py")

    assert resp.status_code == 200
    data = resp.json()
    assert data["verdict"] == "solved"
    assert data["persistence"] == {"status": "failed", "error": "database is locked"}
    assert data["warning"] == "Failed to save code: database is locked"


def test_run_rejects_unknown_problem_and_bad_input(client, user_headers, fake_backend):
    missing = _run(client, user_headers, "missing", "print(1)", language="py")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "not_found"

    bad_lang = client.post("/api/problems/missing/run", headers=user_headers, json={"language": "rust", "code": "x"})
    assert bad_lang.status_code == 422

    blank = client.post("/api/problems/missing/run", headers=user_headers, json={"language": "py", "code": "   "})
    assert blank.status_code == 422


def test_run_requires_login(client, make_problem):
    problem_id = make_problem([("x", "x")])
    assert client.post(f"/api/problems/{problem_id}/run", json={"language": "py", "code": "x"}).status_code == 401


def test_concurrent_run_for_same_slot_is_rejected(client, user_headers, make_problem, fake_backend):
    problem_id = make_problem([("x", "x")])
    user_id = client.get("/api/auth/me", headers=user_headers).json()["id"]

    with RUN_GUARD.hold(EvaluationContext(user_id=user_id, problem_id=problem_id), Language.PY):
        busy = _run(client, user_headers, problem_id, "print(1)", language="py")
        other_language = _run(client, user_headers, problem_id, "int main(){}", language="cpp")

    assert busy.status_code == 409
    assert busy.json()["error"]["code"] == "run_in_progress"
    assert other_language.status_code == 200
    assert _run(client, user_headers, problem_id, "print(1)", language="py").status_code == 200
