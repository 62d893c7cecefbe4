"""Expected-failures baseline for CI gating.

A baseline file lists, per scenario, the check ids that are known to fail.
It can be flat::

    auth/scope-step-up:
      - scope-step-up-escalation

or split by mode::

    client:
      auth/scope-step-up: [scope-step-up-escalation]
    server:
      tools-call-simple-text: ["*"]

``"*"`` allows every failure of a scenario. Two pseudo-ids cover adapter
outcomes: ``client-timeout`` and ``client-exit-error``. YAML and JSON files
are both accepted (JSON is valid YAML).
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from .errors import BaselineError
from .models import ScenarioRun

logger = logging.getLogger(__name__)

WILDCARD = "*"
CLIENT_TIMEOUT_ID = "client-timeout"
CLIENT_EXIT_ERROR_ID = "client-exit-error"
MODES = ("client", "server")


class BaselineVerdict(BaseModel):
    """How one scenario's failures compare with the baseline."""
    scenario: str
    unexpected_failures: List[str] = Field(default_factory=list, description="Failing ids not in the baseline")
    expected_failures: List[str] = Field(default_factory=list, description="Failing ids the baseline allows")
    stale_entries: List[str] = Field(default_factory=list, description="Allowed ids that no longer fail")

    @property
    def passed(self) -> bool:
        return not self.unexpected_failures


class ExpectedFailures:
    """Parsed baseline: mode -> scenario -> allowed ids."""

    def __init__(self, entries: Optional[Dict[str, Dict[str, List[str]]]] = None, source: Optional[str] = None):
        self.entries = entries or {mode: {} for mode in MODES}
        self.source = source

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ExpectedFailures":
        """Read a YAML or JSON baseline file.

        Raises:
            BaselineError: If the file is missing, unparsable or has the wrong shape
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise BaselineError(f"Cannot read expected-failures file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise BaselineError(f"Cannot parse expected-failures file {path}: {e}") from e
        baseline = cls.from_data(data, source=str(path))
        logger.info(f"Loaded expected failures for {baseline.scenario_count()} scenario(s) from {path}")
        return baseline

    @classmethod
    def from_data(cls, data, source: Optional[str] = None) -> "ExpectedFailures":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise BaselineError(f"Expected-failures root must be a mapping, got {type(data).__name__}")

        entries: Dict[str, Dict[str, List[str]]] = {mode: {} for mode in MODES}
        if any(key in MODES for key in data):
            unknown = [key for key in data if key not in MODES]
            if unknown:
                raise BaselineError(f"Unknown sections in expected-failures file: {', '.join(map(str, unknown))}")
            for mode in MODES:
                entries[mode] = cls._parse_section(data.get(mode) or {}, mode)
        else:
            section = cls._parse_section(data, "root")
            for mode in MODES:
                entries[mode] = dict(section)
        return cls(entries, source)

    @staticmethod
    def _parse_section(section, label: str) -> Dict[str, List[str]]:
        if not isinstance(section, dict):
            raise BaselineError(f"Section '{label}' must map scenario names to lists of check ids")
        parsed = {}
        for scenario, ids in section.items():
            if ids is None:
                ids = [WILDCARD]
            if isinstance(ids, str):
                ids = [ids]
            if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
                raise BaselineError(f"Scenario '{scenario}' in '{label}' must list check ids as strings")
            parsed[str(scenario)] = list(ids)
        return parsed

    def scenario_count(self) -> int:
        return len({name for section in self.entries.values() for name in section})

    def allowed(self, scenario: str, mode: str = "client") -> List[str]:
        return list(self.entries.get(mode, {}).get(scenario, []))

    def evaluate(self, run: ScenarioRun, count_warnings: Optional[bool] = None) -> BaselineVerdict:
        """Classify a run's failing ids; the run's checks are left untouched.

        Args:
            run: Completed scenario run
            count_warnings: Whether WARNING ids count as failures; defaults to True in client mode

        Returns:
            Verdict with unexpected, expected and stale ids
        """
        if count_warnings is None:
            count_warnings = run.mode == "client"

        failing = run.failing_ids(count_warnings)
        if run.client_failed:
            failing.append(CLIENT_TIMEOUT_ID if run.outcome.timed_out else CLIENT_EXIT_ERROR_ID)

        allowed = self.allowed(run.scenario, run.mode)
        if WILDCARD in allowed:
            return BaselineVerdict(scenario=run.scenario, expected_failures=failing)

        verdict = BaselineVerdict(
            scenario=run.scenario,
            unexpected_failures=[i for i in failing if i not in allowed],
            expected_failures=[i for i in failing if i in allowed],
            stale_entries=[i for i in allowed if i not in failing],
        )
        if verdict.stale_entries:
            logger.info(f"{run.scenario}: baseline entries no longer failing: {verdict.stale_entries}")
        return verdict
