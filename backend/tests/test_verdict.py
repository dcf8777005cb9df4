from __future__ import annotations

import pytest

from backend.app.services.case_runner import CaseResult
from backend.app.services.verdict import Verdict, aggregate, parse_verdict


def _results(*passed: bool) -> list[CaseResult]:
    return [CaseResult(input="", expected="", actual_output="", passed=p) for p in passed]


def test_empty_is_unsolved() -> None:
    assert aggregate([]) is Verdict.UNSOLVED


@pytest.mark.parametrize("n", [1, 2, 5])
def test_all_passed_is_solved(n: int) -> None:
    assert aggregate(_results(*([True] * n))) is Verdict.SOLVED


@pytest.mark.parametrize("passed", [(True, False), (False, True, False), (False, False, True, True)])
def test_mixed_is_attempted(passed: tuple[bool, ...]) -> None:
    assert aggregate(_results(*passed)) is Verdict.ATTEMPTED


@pytest.mark.parametrize("n", [1, 3])
def test_all_failed_is_unsolved(n: int) -> None:
    assert aggregate(_results(*([False] * n))) is Verdict.UNSOLVED


def test_aggregate_accepts_generator() -> None:
    assert aggregate(r for r in _results(True, True)) is Verdict.SOLVED


def test_parse_verdict_falls_back_to_unsolved() -> None:
    assert parse_verdict("Solved") is Verdict.SOLVED
    assert parse_verdict("attempted") is Verdict.ATTEMPTED
    assert parse_verdict("bogus") is Verdict.UNSOLVED
    assert parse_verdict(None) is Verdict.UNSOLVED
