"""Append-only, thread-safe ledger of conformance checks."""

import logging
import threading
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .models import CheckStatus, ConformanceCheck, SpecReference
from .shared.log_levels import TRACE

logger = logging.getLogger(__name__)


class CheckLedger:
    """Ordered record of every check a scenario observed.

    Mock-server handlers may run concurrently, so appends go through a lock.
    There is no way to remove or rewrite an entry.
    """

    def __init__(self, scenario: str = ""):
        self.scenario = scenario
        self._checks: List[ConformanceCheck] = []
        self._lock = threading.Lock()

    def append(self, check: ConformanceCheck) -> ConformanceCheck:
        with self._lock:
            self._checks.append(check)
        logger.log(TRACE, f"[{self.scenario}] {check.status.value} {check.id}: {check.description}")
        return check

    def record(
        self,
        id: str,
        name: str,
        description: str,
        status: CheckStatus,
        spec_references: Optional[Sequence[SpecReference]] = None,
        details: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
        timestamp: Optional[str] = None,
        logs: Optional[List[str]] = None,
    ) -> ConformanceCheck:
        """Build a check from its parts and append it.

        Args:
            id: Stable slug for the assertion
            name: Human-readable name
            description: What was observed
            status: Check outcome
            spec_references: Clauses the check enforces
            details: Structured evidence
            error_message: Error text for failures
            timestamp: Observation time (defaults to now)
            logs: Relevant log lines

        Returns:
            The appended check
        """
        fields: Dict[str, Any] = {
            "id": id,
            "name": name,
            "description": description,
            "status": status,
            "spec_references": list(spec_references or []),
            "details": dict(details or {}),
            "error_message": error_message,
            "logs": logs,
        }
        if timestamp:
            fields["timestamp"] = timestamp
        return self.append(ConformanceCheck(**fields))

    def snapshot(self) -> List[ConformanceCheck]:
        """Copy of the checks recorded so far, in order."""
        with self._lock:
            return list(self._checks)

    def has(self, check_id: str) -> bool:
        return self.find(check_id) is not None

    def find(self, check_id: str) -> Optional[ConformanceCheck]:
        """First check with the given id, if any."""
        with self._lock:
            for check in self._checks:
                if check.id == check_id:
                    return check
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._checks)

    def __iter__(self) -> Iterator[ConformanceCheck]:
        return iter(self.snapshot())
