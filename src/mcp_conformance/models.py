"""Data models for conformance checks, scenario URLs and client outcomes."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CheckStatus(str, Enum):
    """Outcome of a single conformance assertion."""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    WARNING = "WARNING"
    SKIPPED = "SKIPPED"
    INFO = "INFO"


class ScenarioState(str, Enum):
    """Lifecycle state of a scenario instance."""
    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


class SpecReference(BaseModel):
    """Citation of a normative clause."""
    id: str = Field(..., description="Short stable identifier of the clause")
    url: Optional[str] = Field(None, description="Link to the clause")

    model_config = ConfigDict(frozen=True)


class ConformanceCheck(BaseModel):
    """One pass/fail/warning observation tied to specification clauses."""

    id: str = Field(..., description="Stable slug identifying the assertion")
    name: str = Field(..., description="Human-readable check name")
    description: str = Field(..., description="What was observed, and what was expected")
    status: CheckStatus = Field(..., description="Check outcome")
    timestamp: str = Field(default_factory=utc_timestamp, description="ISO-8601 UTC time of the observation")
    spec_references: List[SpecReference] = Field(
        default_factory=list,
        alias="specReferences",
        description="Normative clauses this check enforces",
    )
    details: Dict[str, Any] = Field(default_factory=dict, description="Structured evidence")
    error_message: Optional[str] = Field(None, alias="errorMessage", description="Error text for failures")
    logs: Optional[List[str]] = Field(None, description="Relevant log lines")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    @property
    def is_failure(self) -> bool:
        return self.status == CheckStatus.FAILURE

    @property
    def is_warning(self) -> bool:
        return self.status == CheckStatus.WARNING

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used in checks.json."""
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        if not data.get("specReferences"):
            data.pop("specReferences", None)
        if not data.get("details"):
            data.pop("details", None)
        return data


class ScenarioUrls(BaseModel):
    """What a started scenario hands to the client-under-test."""
    server_url: str = Field(..., description="Endpoint the client must connect to")
    context: Optional[Dict[str, Any]] = Field(None, description="Out-of-band scenario data (ids, keys, tenant)")


class ClientOutcome(BaseModel):
    """Result of executing the client-under-test once."""
    exit_code: int = Field(0, description="Process exit code (1 for an in-process exception)")
    stdout: str = Field("", description="Captured standard output")
    stderr: str = Field("", description="Captured standard error")
    timed_out: bool = Field(False, description="True when the wall-clock timeout expired")
    error: Optional[str] = Field(None, description="Exception text from an in-process client")
    duration_ms: float = Field(0.0, description="Wall-clock execution time")

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.exit_code == 0 and self.error is None

    def describe(self) -> str:
        if self.timed_out:
            return "client timed out"
        if self.error:
            return f"client raised: {self.error}"
        if self.exit_code != 0:
            return f"client exited with code {self.exit_code}"
        return "client completed"


class CheckCounts(BaseModel):
    """Tallies used by the pass/fail policy and the summary."""
    passed: int = 0
    failed: int = 0
    warnings: int = 0
    info: int = 0
    skipped: int = 0

    @property
    def denominator(self) -> int:
        return self.passed + self.failed

    @classmethod
    def from_checks(cls, checks: List[ConformanceCheck]) -> "CheckCounts":
        counts = cls()
        for check in checks:
            if check.status == CheckStatus.SUCCESS:
                counts.passed += 1
            elif check.status == CheckStatus.FAILURE:
                counts.failed += 1
            elif check.status == CheckStatus.WARNING:
                counts.warnings += 1
            elif check.status == CheckStatus.INFO:
                counts.info += 1
            elif check.status == CheckStatus.SKIPPED:
                counts.skipped += 1
        return counts


class ScenarioRun(BaseModel):
    """Everything observed while running one scenario."""
    scenario: str = Field(..., description="Scenario name")
    mode: str = Field("client", description="'client' (mock servers) or 'server' (live server under test)")
    description: str = Field("", description="Scenario description")
    checks: List[ConformanceCheck] = Field(default_factory=list)
    outcome: Optional[ClientOutcome] = Field(None, description="Adapter outcome, client mode only")
    allow_client_error: bool = Field(False, description="Adapter failure is expected for this scenario")
    result_dir: Optional[str] = Field(None, description="Where results were written")
    error: Optional[str] = Field(None, description="Engine-level error that aborted the scenario")

    @property
    def counts(self) -> CheckCounts:
        return CheckCounts.from_checks(self.checks)

    @property
    def client_failed(self) -> bool:
        """Adapter-level failure that counts against the run."""
        if self.outcome is None or self.allow_client_error:
            return False
        return not self.outcome.succeeded

    def failing_ids(self, count_warnings: bool) -> List[str]:
        """Distinct ids with at least one FAILURE (or WARNING) entry, in first-seen order."""
        bad = {CheckStatus.FAILURE}
        if count_warnings:
            bad.add(CheckStatus.WARNING)
        seen: List[str] = []
        for check in self.checks:
            if check.status in bad and check.id not in seen:
                seen.append(check.id)
        return seen
