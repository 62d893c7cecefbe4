"""Persist scenario results to disk."""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from ..models import ClientOutcome, ConformanceCheck

logger = logging.getLogger(__name__)

CHECKS_FILE = "checks.json"
STDOUT_FILE = "stdout.txt"
STDERR_FILE = "stderr.txt"


def scenario_slug(scenario: str) -> str:
    """Filesystem-safe form of a hierarchical scenario name."""
    return re.sub(r"[^A-Za-z0-9._-]+", "-", scenario).strip("-")


def result_dir_name(scenario: str, prefix: str = "", now: Optional[datetime] = None) -> str:
    """``[prefix-]<slug>-<timestamp>`` with ``:`` and ``.`` replaced by ``-``."""
    now = now or datetime.now(timezone.utc)
    timestamp = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    timestamp = re.sub(r"[:.]", "-", timestamp)
    slug = scenario_slug(scenario)
    if prefix:
        slug = f"{prefix}-{slug}"
    return f"{slug}-{timestamp}"


def checks_to_json(checks: List[ConformanceCheck]) -> str:
    return json.dumps([check.to_dict() for check in checks], indent=2)


class ResultWriter:
    """Writes checks.json (and client output) under a base directory.

    A writer without a base directory persists nothing, which is what
    library callers and tests usually want.
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None, prefix: str = ""):
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.prefix = prefix

    @property
    def enabled(self) -> bool:
        return self.base_dir is not None

    def create_dir(self, scenario: str) -> Optional[Path]:
        if self.base_dir is None:
            return None
        result_dir = self.base_dir / result_dir_name(scenario, self.prefix)
        result_dir.mkdir(parents=True, exist_ok=True)
        return result_dir

    def write(
        self,
        scenario: str,
        checks: List[ConformanceCheck],
        outcome: Optional[ClientOutcome] = None,
        result_dir: Optional[Path] = None,
    ) -> Optional[Path]:
        """Write one scenario's results and return the directory used."""
        result_dir = result_dir or self.create_dir(scenario)
        if result_dir is None:
            return None

        (result_dir / CHECKS_FILE).write_text(checks_to_json(checks), encoding="utf-8")
        if outcome is not None:
            (result_dir / STDOUT_FILE).write_text(outcome.stdout, encoding="utf-8")
            (result_dir / STDERR_FILE).write_text(outcome.stderr, encoding="utf-8")

        logger.info(f"Results saved to {result_dir}")
        return result_dir
