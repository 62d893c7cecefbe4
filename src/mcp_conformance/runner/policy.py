"""Pass/fail policy for scenario runs.

A run fails on any FAILURE, on any WARNING in client mode, on an adapter
failure the scenario does not allow, or on an engine error. A baseline
can only excuse ids it lists for that scenario; the checks themselves are
never altered.
"""

from typing import Iterable, Optional

from ..baseline import BaselineVerdict, ExpectedFailures
from ..models import ScenarioRun

SCENARIO_ERROR_ID = "scenario-error"


def evaluate_run(run: ScenarioRun, baseline: Optional[ExpectedFailures] = None) -> BaselineVerdict:
    verdict = (baseline or ExpectedFailures()).evaluate(run)
    if run.error:
        # Engine errors are never excusable
        verdict.unexpected_failures.append(SCENARIO_ERROR_ID)
    return verdict


def exit_code(verdicts: Iterable[BaselineVerdict]) -> int:
    """0 when every verdict passed, else 1."""
    return 0 if all(verdict.passed for verdict in verdicts) else 1
