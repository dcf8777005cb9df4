#
# Process-wide singletons.
#
from __future__ import annotations

from .evaluator import RunGuard


RUN_GUARD = RunGuard()
