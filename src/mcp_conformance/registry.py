"""Scenario registries.

A registry maps scenario names to factories rather than instances, so every
run (and every concurrent member of a suite) gets a fresh scenario with its
own servers and ledger. Suites are named groups of registered scenarios.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import ScenarioNotFoundError
from .scenarios import auth, server
from .scenarios.core import InitializeScenario, ToolsCallScenario
from .shared.config import Settings

logger = logging.getLogger(__name__)

ALL_SUITE = "all"


@dataclass
class RegistryEntry:
    name: str
    factory: Callable
    suites: Tuple[str, ...] = field(default_factory=tuple)

    def create(self, settings: Optional[Settings] = None):
        return self.factory(settings)


class ScenarioRegistry:
    """Name to scenario-factory mapping with suite membership.

    Iteration follows registration order. Every entry implicitly belongs to
    the ``all`` suite.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._entries: Dict[str, RegistryEntry] = {}
        self._suites: List[str] = []

    def register(self, name: str, factory: Callable, suites: Iterable[str] = ()) -> None:
        """Register a factory accepting optional settings.

        Raises:
            ValueError: If the name is already registered
        """
        if name in self._entries:
            raise ValueError(f"Scenario already registered: {name}")
        suites = tuple(suites)
        self._entries[name] = RegistryEntry(name, factory, suites)
        for suite in suites:
            if suite not in self._suites:
                self._suites.append(suite)
        logger.debug(f"Registered {self.kind} scenario {name} in suites {list(suites)}")

    def register_class(self, scenario_cls, suites: Iterable[str] = ()) -> None:
        self.register(scenario_cls.name, scenario_cls, suites)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> List[str]:
        return list(self._entries)

    def suites(self) -> List[str]:
        return self._suites + [ALL_SUITE]

    def get(self, name: str, settings: Optional[Settings] = None):
        """Build a fresh scenario instance.

        Raises:
            ScenarioNotFoundError: If no scenario has that name
        """
        entry = self._entries.get(name)
        if entry is None:
            raise ScenarioNotFoundError(name, self.names())
        return entry.create(settings)

    def suite(self, suite: str) -> List[str]:
        """Scenario names in a suite, in registration order.

        Raises:
            ScenarioNotFoundError: If the suite is unknown
        """
        if suite == ALL_SUITE:
            return self.names()
        if suite not in self._suites:
            raise ScenarioNotFoundError(suite, self.suites())
        return [entry.name for entry in self._entries.values() if suite in entry.suites]

    def describe(self) -> List[Tuple[str, str]]:
        """(name, first description line) for every scenario."""
        rows = []
        for entry in self._entries.values():
            description = (entry.create().description or "").strip().splitlines()
            rows.append((entry.name, description[0] if description else ""))
        return rows


def build_client_registry() -> ScenarioRegistry:
    """Scenarios where a client-under-test connects to mock servers."""
    registry = ScenarioRegistry("client")

    registry.register_class(InitializeScenario, suites=["core"])
    registry.register_class(ToolsCallScenario, suites=["core"])

    registry.register_class(auth.AuthBasicDCRScenario, suites=["auth"])
    for config in auth.SCENARIO_CONFIGS:
        registry.register(f"auth/{config.name}", partial(auth.MetadataDiscoveryScenario, config), suites=["auth"])
    registry.register_class(auth.Auth20250326OAuthMetadataBackcompatScenario, suites=["auth"])
    registry.register_class(auth.Auth20250326OAuthEndpointFallbackScenario, suites=["auth"])
    registry.register_class(auth.ScopeFromWwwAuthenticateScenario, suites=["auth"])
    registry.register_class(auth.ScopeFromScopesSupportedScenario, suites=["auth"])
    registry.register_class(auth.ScopeOmittedWhenUndefinedScenario, suites=["auth"])
    registry.register_class(auth.ScopeStepUpAuthScenario, suites=["auth"])
    registry.register_class(auth.ScopeRetryLimitScenario, suites=["auth"])
    registry.register_class(auth.ResourceMismatchScenario, suites=["auth"])
    for suffix, method in (
        ("basic", auth.CLIENT_SECRET_BASIC),
        ("post", auth.CLIENT_SECRET_POST),
        ("none", auth.PUBLIC_CLIENT),
    ):
        registry.register(
            f"auth/token-endpoint-auth-{suffix}",
            partial(auth.TokenEndpointAuthScenario, method),
            suites=["auth"],
        )

    registry.register_class(auth.ClientCredentialsJwtScenario, suites=["extensions"])
    registry.register_class(auth.ClientCredentialsBasicScenario, suites=["extensions"])
    registry.register_class(auth.CrossAppAccessCompleteFlowScenario, suites=["extensions"])
    return registry


def build_server_registry() -> ScenarioRegistry:
    """Scenarios where the engine exercises a live server."""
    registry = ScenarioRegistry("server")
    for scenario_cls in (
        server.ServerInitializeScenario,
        server.PingScenario,
        server.LoggingSetLevelScenario,
        server.ToolsListScenario,
        server.ToolsCallSimpleTextScenario,
        server.ResourcesListScenario,
        server.PromptsListScenario,
    ):
        registry.register_class(scenario_cls, suites=["active"])
    registry.register_class(server.DNSRebindingProtectionScenario, suites=["pending"])
    return registry


def build_default_registry() -> Tuple[ScenarioRegistry, ScenarioRegistry]:
    """Both registries: (client scenarios, server scenarios)."""
    return build_client_registry(), build_server_registry()
