"""Scenario lifecycle shared by every conformance scenario."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..errors import ScenarioStateError
from ..ledger import CheckLedger
from ..models import CheckStatus, ConformanceCheck, ScenarioState, ScenarioUrls, SpecReference
from ..servers.lifecycle import ServerLifecycle
from ..shared.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpectedCheck:
    """An assertion the scenario must observe, backfilled as FAILURE if it never happens."""
    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    spec_references: Tuple[SpecReference, ...] = field(default_factory=tuple)

    def missing_check(self) -> ConformanceCheck:
        return ConformanceCheck(
            id=self.id,
            name=self.name or f"Expected Check Missing: {self.id}",
            description=self.description or f"Expected Check Missing: {self.id}",
            status=CheckStatus.FAILURE,
            spec_references=list(self.spec_references),
            details={"expected": "check observed during the flow", "actual": "never observed"},
        )


def expect(*ids: str, spec_references: Sequence[SpecReference] = ()) -> List[ExpectedCheck]:
    """Shorthand for a list of expectations with the default missing-check wording."""
    return [ExpectedCheck(check_id, spec_references=tuple(spec_references)) for check_id in ids]


class Scenario(ABC):
    """A unit of test: mock servers plus a private check ledger.

    Subclasses implement ``setup()`` to build and bind their servers, and
    may override ``post_hoc_checks()`` for assertions that can only be made
    once the client is done (for example, that something never happened).
    """

    name: str = ""
    description: str = ""
    allow_client_error: bool = False
    expected_checks: Sequence[ExpectedCheck] = ()

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.state = ScenarioState.NOT_STARTED
        self.ledger = CheckLedger(self.name)
        self._servers: List[ServerLifecycle] = []
        self._final: Optional[Tuple[int, List[ConformanceCheck]]] = None

    def new_server(self, label: str) -> ServerLifecycle:
        """Create a lifecycle owned (and stopped) by this scenario."""
        server = ServerLifecycle(f"{self.name}:{label}", self.settings)
        self._servers.append(server)
        return server

    async def start(self) -> ScenarioUrls:
        """Bind the mock servers and return what the client needs to connect."""
        if self.state == ScenarioState.RUNNING:
            raise ScenarioStateError(f"Scenario {self.name} is already running")

        self.ledger = CheckLedger(self.name)
        self._servers = []
        self._final = None
        self.state = ScenarioState.RUNNING
        logger.info(f"Starting scenario: {self.name}")
        try:
            return await self.setup()
        except BaseException:
            await self.stop()
            raise

    @abstractmethod
    async def setup(self) -> ScenarioUrls:
        """Create, wire and bind the scenario's servers."""

    async def stop(self) -> None:
        """Stop all servers in reverse start order. Safe to call repeatedly."""
        for server in reversed(self._servers):
            await server.stop()
        if self.state == ScenarioState.RUNNING:
            logger.info(f"Stopped scenario: {self.name}")
        self.state = ScenarioState.STOPPED

    def post_hoc_checks(self, checks: List[ConformanceCheck]) -> List[ConformanceCheck]:
        """Checks derived from the whole run rather than from a single request."""
        return []

    def get_checks(self) -> List[ConformanceCheck]:
        """Observed checks, post-hoc checks, then one FAILURE per missing expected id.

        The ledger itself is never modified. Once the scenario is stopped the
        result is reused until new checks are recorded, so repeated reads are
        identical; while it runs, post-hoc state is re-read on every call.
        """
        observed = self.ledger.snapshot()
        stopped = self.state == ScenarioState.STOPPED
        if stopped and self._final is not None and self._final[0] == len(observed):
            return list(self._final[1])

        checks = observed + self.post_hoc_checks(observed)
        seen = {check.id for check in checks}
        for expected in self.expected_checks:
            if expected.id not in seen:
                checks.append(expected.missing_check())
                seen.add(expected.id)

        if stopped:
            self._final = (len(observed), checks)
        return list(checks)


class ClientScenario(ABC):
    """A scenario where the engine is the client and a live server is under test."""

    name: str = ""
    description: str = ""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @abstractmethod
    async def run(self, server_url: str) -> List[ConformanceCheck]:
        """Exercise the server and return the checks observed."""
