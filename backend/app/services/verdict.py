from __future__ import annotations

from enum import Enum
from typing import Iterable, Protocol


class Verdict(str, Enum):
    UNSOLVED = "unsolved"
    ATTEMPTED = "attempted"
    SOLVED = "solved"


class _HasPassed(Protocol):
    passed: bool


def aggregate(results: Iterable[_HasPassed]) -> Verdict:
    """Fold per-case results into one verdict.

    No results is never solved: an empty sequence is `UNSOLVED`.
    """

    total = 0
    passed = 0
    for result in results:
        total += 1
        if result.passed:
            passed += 1

    if total == 0 or passed == 0:
        return Verdict.UNSOLVED
    if passed == total:
        return Verdict.SOLVED
    return Verdict.ATTEMPTED


def parse_verdict(value: str | None) -> Verdict:
    try:
        return Verdict(str(value or "").strip().lower())
    except ValueError:
        return Verdict.UNSOLVED
