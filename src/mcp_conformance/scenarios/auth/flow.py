"""Building blocks shared by the auth scenarios."""

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple

from ... import spec_references as refs
from ...models import ScenarioUrls, SpecReference
from ...servers.auth_server import AuthServerOptions, create_auth_server
from ...servers.lifecycle import ServerLifecycle
from ...servers.resource_server import (
    MCP_PATH,
    ROOT_AS_METADATA_PATH,
    ROOT_PRM_PATH,
    ResourceServerOptions,
    add_trap,
    create_resource_server,
)
from ...servers.token_verifier import MockTokenVerifier
from ..base import Scenario

STANDARD_FLOW_CHECKS = (
    "authorization-server-metadata",
    "client-registration",
    "authorization-request",
    "token-request",
)


@dataclass(frozen=True)
class Trap:
    """A conventional-but-wrong location that a conforming client never probes."""
    path: str
    check_id: str
    name: str
    description: str
    spec_references: Tuple[SpecReference, ...] = field(default_factory=tuple)
    error_description: Optional[str] = None


ROOT_PRM_TRAP = Trap(
    path=ROOT_PRM_PATH,
    check_id="prm-priority-order",
    name="PRM Priority Order",
    description="Client requested PRM metadata at root location on a server with path-based PRM",
    spec_references=(refs.RFC_PRM_DISCOVERY, refs.MCP_PRM_DISCOVERY),
    error_description="PRM metadata not available at root location",
)

ROOT_AS_METADATA_TRAP = Trap(
    path=ROOT_AS_METADATA_PATH,
    check_id="authorization-server-metadata-wrong-path",
    name="AuthorizationServerMetadataWrongPath",
    description=(
        "Client requested authorization server at the root path "
        "when the AS URL has a path-based location"
    ),
    spec_references=(refs.RFC_AUTH_SERVER_METADATA_REQUEST, refs.MCP_AUTH_DISCOVERY),
)


class AuthScenario(Scenario):
    """A mock authorization server paired with a mock resource server.

    Both servers share one token verifier so tokens issued by the
    authorization server are accepted by the resource server.
    """

    def __init__(self, settings=None):
        super().__init__(settings)
        self.verifier: Optional[MockTokenVerifier] = None

    def shared_verifier(self) -> MockTokenVerifier:
        """Verifier bound to the current run's ledger."""
        if self.verifier is None or self.verifier.ledger is not self.ledger:
            self.verifier = MockTokenVerifier(self.ledger)
        return self.verifier

    def _install_traps(self, app, traps: Sequence[Trap]) -> None:
        for trap in traps:
            add_trap(
                app,
                trap.path,
                self.ledger,
                trap.check_id,
                trap.name,
                trap.description,
                trap.spec_references,
                trap.error_description,
            )

    async def serve_auth(
        self,
        options: Optional[AuthServerOptions] = None,
        issuer_path: str = "",
        traps: Sequence[Trap] = (),
    ) -> Callable[[], str]:
        """Start the authorization server.

        Returns:
            Deferred accessor for the authorization server URL advertised in PRM,
            including ``issuer_path`` for tenant-style deployments
        """
        options = options or AuthServerOptions()
        if options.token_verifier is None:
            options.token_verifier = self.shared_verifier()

        server = self.new_server("auth")
        app = create_auth_server(self.ledger, server.get_url, options)
        self._install_traps(app, traps)
        await server.start(app)
        self.auth_server = server

        if issuer_path:
            return lambda: f"{server.get_url()}{issuer_path}"
        return server.get_url

    async def serve_resource(
        self,
        get_auth_server_url: Callable[[], str],
        options: Optional[ResourceServerOptions] = None,
        traps: Sequence[Trap] = (),
    ) -> ServerLifecycle:
        options = options or ResourceServerOptions()
        if options.token_verifier is None:
            options.token_verifier = self.shared_verifier()

        server = self.new_server("resource")
        app = create_resource_server(self.ledger, server.get_url, get_auth_server_url, options)
        self._install_traps(app, traps)
        await server.start(app)
        self.resource_server = server
        return server

    def mcp_urls(self, server: ServerLifecycle, **extra) -> ScenarioUrls:
        return ScenarioUrls(server_url=f"{server.get_url()}{MCP_PATH}", **extra)
